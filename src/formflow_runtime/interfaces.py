"""Abstract interfaces for the collaborators of a conversation.

The runtime never talks to the network or the browser directly.  It calls
these ABCs, and concrete implementations live elsewhere
(``formflow_client.HttpFormApi`` for the REST API).

Typical integration flow::

    api: FormApi = HttpFormApi(settings)
    conversation = ConversationSession(api, navigator=MyNavigator())
    await conversation.init_form("contact", params={"utm_source": "mail"})
    # ... record answers, call next() until it returns True ...
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

from formflow_runtime.models.form import FormSession, PublicForm, Storyboard
from formflow_runtime.models.payload import InteractionPayload

# Called with (upload key, bytes sent so far) while a file is transferred.
ProgressCallback = Callable[[str, int], None]


class FormApi(ABC):
    """Upstream form API consumed by the conversation runtime.

    Every method is a suspension point and may raise; the runtime decides
    how failures surface to its own callers.
    """

    @abstractmethod
    async def get_form(self, form_id: str) -> PublicForm:
        """Fetch the respondent-facing form definition."""
        ...

    @abstractmethod
    async def create_session(self, form_id: str, params: dict[str, str]) -> FormSession:
        """Open a new respondent session, capturing the page query parameters."""
        ...

    @abstractmethod
    async def get_storyboard(self, form_id: str) -> Storyboard:
        """Fetch the block tree of the form."""
        ...

    @abstractmethod
    async def submit(
        self,
        form_id: str,
        token: str,
        payload: dict[str, Any] | None,
        expect_more_files: bool,
    ) -> None:
        """Submit answers for the session.

        Parameters
        ----------
        payload:
            Serialised answers keyed by block id, or ``None`` for the
            finalize call that follows a file upload.
        expect_more_files:
            True when an upload phase will follow; the server must not
            treat the session as complete yet.
        """
        ...

    @abstractmethod
    async def upload_files(
        self,
        form_id: str,
        token: str,
        uploads: dict[str, InteractionPayload],
        on_progress: ProgressCallback,
    ) -> None:
        """Upload every file of ``uploads`` (keyed by block id).

        ``on_progress`` must be called with ``upload_key(action_id, index)``
        and the cumulative bytes sent for that file.  All files must be
        transferred before this coroutine returns; a single failure fails
        the call.
        """
        ...


class Navigator(ABC):
    """Leaves the conversation page (call-to-action redirect)."""

    @abstractmethod
    async def redirect(self, url: str) -> None:
        ...
