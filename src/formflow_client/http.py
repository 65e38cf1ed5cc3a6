"""HttpFormApi — async httpx client for the form REST API.

Implements :class:`formflow_runtime.interfaces.FormApi` against the
``/api/v1`` endpoints served by ``formflow-server`` (or any server that
speaks the same contract).

Usage::

    async with HttpFormApi(load_settings()) as api:
        conversation = ConversationSession(api)
        await conversation.init_form("contact", params={})

File uploads are sent one request per file with a streamed body; progress
is reported to the runtime after every chunk.  Files are uploaded
concurrently; the first failure cancels the uploads still running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx

from formflow_runtime.constants import upload_key
from formflow_runtime.interfaces import FormApi, ProgressCallback
from formflow_runtime.models.form import FormSession, PublicForm, Storyboard
from formflow_runtime.models.payload import FileHandle, InteractionPayload

from formflow_client.config import ClientSettings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpFormApi(FormApi):
    """Async HTTP client for the form API.

    Args:
        settings: client configuration; defaults to :class:`ClientSettings`
        transport: optional httpx transport (e.g. ``httpx.ASGITransport``
            to talk to an in-process server, or ``httpx.MockTransport``)
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpFormApi:
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._settings.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("HttpFormApi must be used as an async context manager")
        return self._client

    async def health_check(self) -> bool:
        """Check server health.  Returns True if the server is reachable."""
        try:
            resp = await self._http.get("/health")
            return resp.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    # ------------------------------------------------------------------
    # FormApi
    # ------------------------------------------------------------------

    async def get_form(self, form_id: str) -> PublicForm:
        data = await self._get(f"{API_PREFIX}/forms/{form_id}")
        return PublicForm(**data)

    async def create_session(self, form_id: str, params: dict[str, str]) -> FormSession:
        data = await self._post(f"{API_PREFIX}/forms/{form_id}/sessions", json={"params": params})
        return FormSession(**data)

    async def get_storyboard(self, form_id: str) -> Storyboard:
        data = await self._get(f"{API_PREFIX}/forms/{form_id}/storyboard")
        return Storyboard(**data)

    async def submit(
        self,
        form_id: str,
        token: str,
        payload: dict[str, Any] | None,
        expect_more_files: bool,
    ) -> None:
        await self._post(
            f"{API_PREFIX}/forms/{form_id}/sessions/{token}/submit",
            json={"payload": payload, "has_files": expect_more_files},
        )

    async def upload_files(
        self,
        form_id: str,
        token: str,
        uploads: dict[str, InteractionPayload],
        on_progress: ProgressCallback,
    ) -> None:
        tasks = []
        for block_id, record in uploads.items():
            for index, handle in enumerate(record.files):
                tasks.append(asyncio.create_task(self._upload_one(
                    form_id, token, block_id, record.action_id, index, handle, on_progress,
                )))
        if not tasks:
            return
        logger.info("Uploading %d files for session %s", len(tasks), token)

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        errors = [t.exception() for t in done if not t.cancelled() and t.exception() is not None]
        if not errors:
            return

        # One file failed: stop the others so nothing lands after a retry starts
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "Upload failed for session %s, cancelled %d pending uploads", token, len(pending),
        )
        raise errors[0]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _upload_one(
        self,
        form_id: str,
        token: str,
        block_id: str,
        action_id: str,
        index: int,
        handle: FileHandle,
        on_progress: ProgressCallback,
    ) -> None:
        key = upload_key(action_id, index)
        resp = await self._http.post(
            f"{API_PREFIX}/forms/{form_id}/sessions/{token}/uploads/{block_id}",
            params={"action_id": action_id, "index": index},
            headers={
                "Content-Type": handle.content_type,
                "X-Filename": handle.name,
            },
            content=self._stream(handle.content, key, on_progress),
        )
        resp.raise_for_status()

    async def _stream(
        self, data: bytes, key: str, on_progress: ProgressCallback
    ) -> AsyncIterator[bytes]:
        """Yield ``data`` in chunks, reporting cumulative bytes after each."""
        size = self._settings.upload_chunk_size
        loaded = 0
        for start in range(0, len(data), size):
            chunk = data[start:start + size]
            yield chunk
            loaded += len(chunk)
            on_progress(key, loaded)

    async def _get(self, path: str) -> dict:
        """GET, retry once on timeout."""
        try:
            resp = await self._http.get(path)
        except httpx.TimeoutException:
            resp = await self._http.get(path)
        resp.raise_for_status()
        return resp.json()

    async def _post(self, path: str, json: Any) -> dict:
        """POST JSON, retry once on timeout.

        Submissions are keyed by session token server-side, so a retried
        submit does not duplicate answers.
        """
        try:
            resp = await self._http.post(path, json=json)
        except httpx.TimeoutException:
            resp = await self._http.post(path, json=json)
        resp.raise_for_status()
        return resp.json()
