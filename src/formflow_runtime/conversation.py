"""ConversationSession — the stateful core of a respondent's pass through a form.

The session owns everything that changes while the respondent interacts:
the current position, the recorded answers, the upload-progress map and
the processing/submitted flags.  Everything else is derived on read:

  - ``visible_queue`` is recomputed from the flat queue and the current
    answers on every access, never cached, because an answer may change
    the visibility of any later block.
  - ``current_block_index`` is found by looking the current block id up in
    ``visible_queue``, so the position survives blocks appearing or
    disappearing around it.

Navigation never raises.  Out-of-range indexes and unknown goto targets
are logged and ignored.  If the current block itself becomes invisible,
``next()``/``back()`` re-anchor to the nearest visible block in queue
order and do nothing else on that call.

Usage::

    conversation = ConversationSession(api)
    await conversation.init_form("contact", params={})
    conversation.record_scalar_answer("name_input", "Ada")
    finished = await conversation.next()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from formflow_runtime.constants import upload_key
from formflow_runtime.errors import InitializationError
from formflow_runtime.evaluator import LogicEvaluator
from formflow_runtime.interfaces import FormApi, Navigator
from formflow_runtime.models.block import Block
from formflow_runtime.models.form import FormSession, PublicForm, Storyboard
from formflow_runtime.models.payload import (
    AnswerPayload,
    BlockAnswer,
    InteractionPayload,
    UploadProgress,
)
from formflow_runtime.models.state import ConversationState
from formflow_runtime.queue import build_queue
from formflow_runtime.submission import (
    SubmissionOrchestrator,
    build_call_to_action_url,
    build_submittable_payload,
    build_uploads_payload,
    has_file_uploads,
)

logger = logging.getLogger(__name__)


class ConversationSession:
    """Navigable, stateful view over a form's storyboard.

    Args:
        api: the upstream :class:`FormApi`
        navigator: used for call-to-action redirects after submission
    """

    def __init__(self, api: FormApi, navigator: Navigator | None = None) -> None:
        self._api = api
        self._evaluator = LogicEvaluator()
        self._submitter = SubmissionOrchestrator(api, navigator)

        self.form: PublicForm | None = None
        self.session: FormSession | None = None
        self.storyboard: Storyboard | None = None
        self.queue: list[Block] | None = None
        self.current: str | None = None
        self.state = ConversationState.UNINITIALIZED

        self.is_processing = False
        self.is_submitted = False
        self.is_input_mode = False

        self._payload: AnswerPayload = {}
        self._uploads: dict[str, UploadProgress] = {}

    # ==================================================================
    # Initialisation
    # ==================================================================

    async def init_form(
        self, form: str | PublicForm, params: dict[str, str] | None = None
    ) -> None:
        """Load the form, open a session and build the block queue.

        ``form`` is either a form id (the form is fetched) or an already
        loaded :class:`PublicForm`.  Session creation and storyboard fetch
        run concurrently.

        Raises:
            InitializationError: if any fetch fails.  The queue stays unset
                and the conversation is not navigable.
        """
        form_id = form if isinstance(form, str) else form.uuid

        try:
            if isinstance(form, str):
                loaded = await self._api.get_form(form_id)
            else:
                loaded = form
            session, storyboard = await asyncio.gather(
                self._api.create_session(form_id, dict(params or {})),
                self._api.get_storyboard(form_id),
            )
        except Exception as exc:
            self.state = ConversationState.FAILED
            logger.warning("Could not initialise form %s: %s", form_id, exc)
            raise InitializationError(f"Could not initialise form {form_id}") from exc

        self.form = loaded
        self.session = session
        self.storyboard = storyboard
        self.queue = build_queue(storyboard.blocks)

        visible = self.visible_queue
        self.current = visible[0].id if visible else None
        self.state = ConversationState.READY
        logger.info(
            "Form %s initialised: %d queued blocks, %d visible",
            form_id, len(self.queue), len(visible),
        )

    # ==================================================================
    # Derived views (recomputed on every read)
    # ==================================================================

    @property
    def payload(self) -> AnswerPayload:
        """Copy of the recorded answers.  Records themselves are frozen."""
        return {
            block_id: list(answer) if isinstance(answer, list) else answer
            for block_id, answer in self._payload.items()
        }

    @property
    def uploads(self) -> dict[str, UploadProgress]:
        """Copy of the upload-progress map."""
        return {key: entry.model_copy() for key, entry in self._uploads.items()}

    @property
    def visible_queue(self) -> list[Block]:
        """Blocks currently shown to the respondent, in queue order."""
        if not self.queue:
            return []
        return [
            block for block in self.queue
            if not block.is_group and self._evaluator.is_visible(block, self._payload)
        ]

    @property
    def current_block_index(self) -> int:
        """Index of the current block in ``visible_queue``, or -1."""
        return self.find_block_index(self.current) if self.current else -1

    @property
    def current_block(self) -> Block | None:
        """The block to render, or None if there is nothing to render."""
        visible = self.visible_queue
        if not visible or self.current is None:
            return None
        for block in visible:
            if block.id == self.current:
                return block
        return None

    @property
    def current_payload(self) -> BlockAnswer | None:
        if not self.current:
            return None
        answer = self._payload.get(self.current)
        if isinstance(answer, list):
            return list(answer)
        return answer

    @property
    def is_first_block(self) -> bool:
        if not self.visible_queue:
            return False
        return self.current_block_index == 0

    @property
    def is_last_block(self) -> bool:
        visible = self.visible_queue
        if not visible:
            return False
        return self.current_block_index + 1 >= len(visible)

    @property
    def count_current_selections(self) -> int:
        answer = self.current_payload
        if answer is None:
            return 0
        if isinstance(answer, list):
            return len(answer)
        return 1

    @property
    def has_required_fields(self) -> bool:
        """True if the current block or one of its interactions is required."""
        block = self.current_block
        if block is None:
            return False
        if block.is_required:
            return True
        return any(i.is_required for i in block.interactions)

    @property
    def has_unsaved_payload(self) -> bool:
        """True once answers were recorded that have not been submitted."""
        return not self.is_submitted and bool(self._payload)

    @property
    def submittable_payload(self) -> AnswerPayload:
        return build_submittable_payload(self._payload)

    @property
    def uploads_payload(self) -> dict[str, InteractionPayload]:
        return build_uploads_payload(self._payload)

    @property
    def has_file_uploads(self) -> bool:
        return has_file_uploads(self._payload)

    @property
    def call_to_action_url(self) -> str | None:
        return build_call_to_action_url(self.form, self.session)

    @property
    def upload_progress(self) -> int | None:
        """Overall upload progress in percent, or None if nothing is tracked."""
        if not self._uploads:
            return None
        total = sum(entry.total for entry in self._uploads.values())
        loaded = sum(entry.loaded for entry in self._uploads.values())
        if total <= 0:
            return 100
        return min(100, round(loaded / total * 100))

    # ==================================================================
    # Answer recording
    # ==================================================================

    def record_scalar_answer(self, interaction_id: str, value: Any) -> None:
        """Record ``value`` as the single answer of the current block.

        Overwrites any earlier answer for that block.
        """
        if not self.current:
            logger.warning("record_scalar_answer() without a current block, ignoring")
            return
        self._payload[self.current] = InteractionPayload(action_id=interaction_id, payload=value)

    def record_multi_answer(
        self, interaction_id: str, value: Any, keep_checked: bool | None = None
    ) -> None:
        """Toggle ``interaction_id`` inside the current block's answer sequence.

        If the current answer is not a sequence yet it becomes a one-element
        sequence.  If the interaction is already present it is replaced in
        place when ``keep_checked`` is true, and removed otherwise.
        """
        if not self.current:
            logger.warning("record_multi_answer() without a current block, ignoring")
            return

        given = InteractionPayload(action_id=interaction_id, payload=value)
        existing = self._payload.get(self.current)

        if not isinstance(existing, list):
            self._payload[self.current] = [given]
            return

        records = list(existing)
        found = next(
            (i for i, rec in enumerate(records) if rec.action_id == interaction_id),
            -1,
        )
        if found == -1:
            records.append(given)
        elif keep_checked:
            records[found] = given
        else:
            del records[found]
        self._payload[self.current] = records

    def enable_input_mode(self) -> None:
        self.is_input_mode = True

    def disable_input_mode(self) -> None:
        self.is_input_mode = False

    # ==================================================================
    # Navigation
    # ==================================================================

    def find_block_index(self, block_id: str) -> int:
        for index, block in enumerate(self.visible_queue):
            if block.id == block_id:
                return index
        return -1

    def go_to_index(self, index: int) -> None:
        visible = self.visible_queue
        if 0 <= index < len(visible):
            self.current = visible[index].id
        else:
            logger.warning("Index out of bounds: %d (visible blocks: %d)", index, len(visible))

    def execute_goto_action(self, target_block_id: str) -> None:
        index = self.find_block_index(target_block_id)
        if index == -1:
            logger.warning("Target block %s not found in visible queue", target_block_id)
            return
        self.go_to_index(index)

    def back(self) -> None:
        """Move to the previous visible block; no-op on the first one."""
        if self.current_block_index == -1:
            self._reanchor(forward=False)
            return
        if self.is_first_block:
            return
        self.go_to_index(self.current_block_index - 1)

    async def next(self) -> bool:
        """Advance the conversation, or submit it from the last block.

        Returns:
            True once the submission has finished (also on every later
            call, which never submits again), False if the conversation
            moved (or stayed) within the queue.

        Raises:
            MissingContextError: at the last block without form or session.
            TransferError: if the submission failed; retry by calling
                ``next()`` again.
        """
        if self.is_processing:
            logger.warning("next() called while a submission is in flight, ignoring")
            return False

        if self.state in (ConversationState.SUBMITTED, ConversationState.REDIRECTED):
            logger.warning("next() called on a finished conversation (%s), ignoring", self.state.value)
            return True

        block = self.current_block
        if block is None:
            self._reanchor(forward=True)
            return False

        target = self._evaluator.evaluate_goto(block, self._payload)
        if target is not None:
            self.execute_goto_action(target)
            return False

        if self.is_last_block:
            return await self._submitter.run(self)

        self.go_to_index(self.current_block_index + 1)
        return False

    def _reanchor(self, *, forward: bool) -> None:
        """Move ``current`` to the nearest visible block in flat-queue order.

        Used when the current block has dropped out of the visible queue.
        Looks forward (or backward) from the current block's queue position
        first, then the other way.
        """
        visible = self.visible_queue
        if not visible:
            logger.warning("No visible blocks to re-anchor to")
            self.current = None
            return

        queue = self.queue or []
        position = next((i for i, b in enumerate(queue) if b.id == self.current), None)
        logger.warning("Current block %s is not visible, re-anchoring", self.current)
        if position is None:
            self.current = visible[0].id
            return

        visible_ids = {b.id for b in visible}
        after = [b.id for b in queue[position + 1:] if b.id in visible_ids]
        before = [b.id for b in queue[:position] if b.id in visible_ids]
        if forward:
            self.current = after[0] if after else before[-1]
        else:
            self.current = before[-1] if before else after[0]

    # ==================================================================
    # Upload bookkeeping (driven by SubmissionOrchestrator)
    # ==================================================================

    def _reset_uploads(self) -> None:
        self._uploads = {}

    def _init_file_upload(self, uploads: dict[str, InteractionPayload]) -> None:
        """Create one progress entry per file, keyed by ``action[index]``."""
        for record in uploads.values():
            for index, handle in enumerate(record.files):
                self._uploads[upload_key(record.action_id, index)] = UploadProgress(
                    total=handle.size, loaded=0,
                )

    def _record_upload_progress(self, key: str, loaded: int) -> None:
        # Progress is cosmetic; a bookkeeping failure must not abort uploads
        try:
            self._uploads[key].loaded = loaded
        except Exception:
            logger.warning("Could not update upload progress for %s", key, exc_info=True)
