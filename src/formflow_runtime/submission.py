"""Submission orchestration — the multi-step submit protocol.

Triggered by :meth:`ConversationSession.next` on the last visible block.
Steps run strictly in order, each awaited before the next:

    submit answers ──► (files?) upload files ──► finalize ──► redirect | submitted

File answers are split in two: the first submit carries only their names
(see :func:`build_submittable_payload`), the upload step sends the bytes
(see :func:`build_uploads_payload`), and a final empty submit tells the
server that all files are attached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping
from urllib.parse import urlencode

from formflow_runtime.constants import CTA_SESSION_PARAM, FILE_NAME_SEPARATOR
from formflow_runtime.errors import MissingContextError, TransferError
from formflow_runtime.interfaces import FormApi, Navigator
from formflow_runtime.models.form import FormSession, PublicForm
from formflow_runtime.models.payload import (
    AnswerPayload,
    BlockAnswer,
    InteractionPayload,
    dump_answers,
)
from formflow_runtime.models.state import ConversationState

if TYPE_CHECKING:
    from formflow_runtime.conversation import ConversationSession

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Payload transforms (pure)
# ----------------------------------------------------------------------

def has_file_uploads(answers: Mapping[str, BlockAnswer]) -> bool:
    """True if any recorded single-record answer carries file handles."""
    return any(
        not isinstance(answer, list) and answer.has_files
        for answer in answers.values()
    )


def build_submittable_payload(answers: Mapping[str, BlockAnswer]) -> AnswerPayload:
    """Copy ``answers`` with file lists replaced by a readable join of file names.

    The input mapping and its records are left untouched, so the original
    file handles stay available for the upload step.
    """
    submittable: AnswerPayload = dict(answers)
    for block_id, answer in answers.items():
        if isinstance(answer, list) or not answer.has_files:
            continue
        names = FILE_NAME_SEPARATOR.join(f.name for f in answer.files)
        submittable[block_id] = answer.model_copy(update={"payload": names})
    return submittable


def build_uploads_payload(answers: Mapping[str, BlockAnswer]) -> dict[str, InteractionPayload]:
    """Return the file-bearing answers, keyed by block id."""
    return {
        block_id: answer
        for block_id, answer in answers.items()
        if not isinstance(answer, list) and answer.has_files
    }


def build_call_to_action_url(form: PublicForm | None, session: FormSession | None) -> str | None:
    """Compute the call-to-action URL for a finished session.

    Appends the session token when ``cta_append_session_id`` is set and the
    captured session parameters when ``cta_append_params`` is set.  Returns
    None when the form has no link or context is missing.
    """
    if form is None or session is None or not form.cta_link:
        return None

    params: list[tuple[str, str]] = []
    if form.cta_append_session_id and session.token:
        params.append((CTA_SESSION_PARAM, session.token))
    if form.cta_append_params and session.params:
        params.extend(session.params.items())

    if not params:
        return form.cta_link
    sep = "&" if "?" in form.cta_link else "?"
    return form.cta_link + sep + urlencode(params)


# ----------------------------------------------------------------------
# Orchestrator
# ----------------------------------------------------------------------

class SubmissionOrchestrator:
    """Runs the submit protocol for a conversation.

    Args:
        api: the upstream :class:`FormApi`
        navigator: performs call-to-action redirects; if ``None``, a form
            configured to redirect is marked submitted instead
    """

    def __init__(self, api: FormApi, navigator: Navigator | None = None) -> None:
        self._api = api
        self._navigator = navigator

    async def run(self, conversation: ConversationSession) -> bool:
        """Submit the conversation's answers.  Returns True once finished.

        Raises:
            MissingContextError: if form or session is not loaded; no
                network call is attempted.
            TransferError: if any submit or upload call fails.  The
                conversation is left ready for a retry.
            Exception: whatever the navigator raises.  The answers are
                already stored, so the conversation is marked submitted
                before the error propagates.
        """
        conversation._reset_uploads()
        conversation.is_processing = True

        form, session = conversation.form, conversation.session
        if form is None or session is None:
            conversation.is_processing = False
            raise MissingContextError("Cannot submit: form or session not set")

        conversation.state = ConversationState.SUBMITTING
        answers = conversation.payload
        with_files = has_file_uploads(answers)

        try:
            await self._api.submit(
                form.uuid,
                session.token,
                dump_answers(build_submittable_payload(answers)),
                with_files,
            )

            if with_files:
                conversation.state = ConversationState.UPLOADING_FILES
                uploads = build_uploads_payload(answers)
                conversation._init_file_upload(uploads)
                await self._api.upload_files(
                    form.uuid,
                    session.token,
                    uploads,
                    conversation._record_upload_progress,
                )
                # Files are attached; let the server close the session
                await self._api.submit(form.uuid, session.token, None, False)
        except Exception as exc:
            conversation.is_processing = False
            conversation.state = ConversationState.READY
            logger.warning("Submission of session %s failed: %s", session.token, exc)
            raise TransferError(f"Submission failed for form {form.uuid}") from exc

        url = build_call_to_action_url(form, session)
        if form.use_cta_redirect and url:
            if self._navigator is not None:
                # The page is leaving; submitted state is never shown
                conversation.state = ConversationState.REDIRECTED
                logger.info("Session %s submitted, redirecting to %s", session.token, url)
                try:
                    await self._navigator.redirect(url)
                except Exception:
                    # Answers are on the server already; only the redirect failed
                    logger.warning("Redirect to %s failed, marking session submitted", url)
                    self._mark_submitted(conversation, session.token)
                    raise
                conversation.is_processing = False
                return True
            logger.warning("Form %s requests a redirect but no navigator is configured", form.uuid)

        self._mark_submitted(conversation, session.token)
        return True

    @staticmethod
    def _mark_submitted(conversation: ConversationSession, token: str) -> None:
        conversation.is_submitted = True
        conversation.is_processing = False
        conversation.state = ConversationState.SUBMITTED
        logger.info("Session %s submitted", token)
