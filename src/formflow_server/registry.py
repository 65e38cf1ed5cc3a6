"""SessionRegistry — in-memory bookkeeping of respondent sessions.

Keeps, per session token, the answers and files received so far.  Answers
are stored one value per (block, interaction) pair and overwritten when the
same pair is submitted again, which makes a retried submission harmless.

This is a development stand-in for a real persistence layer; nothing
survives a restart.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from formflow_runtime.constants import upload_key
from formflow_runtime.models.block import Block, BlockType
from formflow_runtime.queue import build_queue
from formflow_runtime.storyboard import StoryboardStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredFile:
    """Metadata of one uploaded file (the bytes are not kept)."""

    block_id: str
    action_id: str
    index: int
    filename: str
    content_type: str
    size: int


@dataclass
class SessionRecord:
    """Everything received for one session token."""

    form_id: str
    token: str
    params: dict[str, str] = field(default_factory=dict)
    # (block_id, action_id) → submitted value
    responses: dict[tuple[str, str], Any] = field(default_factory=dict)
    # upload key (``action[index]``) → file metadata
    files: dict[str, StoredFile] = field(default_factory=dict)
    is_completed: bool = False
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None


class SessionRegistry:
    """Creates sessions and records submissions against a StoryboardStore."""

    def __init__(self, store: StoryboardStore) -> None:
        self._store = store
        self._sessions: dict[str, SessionRecord] = {}
        # form_id → {block_id: Block}, built lazily from the storyboard
        self._blocks: dict[str, dict[str, Block]] = {}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, form_id: str, params: dict[str, str]) -> SessionRecord:
        """Open a session for ``form_id``.  Raises KeyError for unknown forms."""
        self._store.get_form(form_id)
        record = SessionRecord(form_id=form_id, token=uuid.uuid4().hex, params=dict(params))
        self._sessions[record.token] = record
        logger.info("Session %s created for form %s", record.token, form_id)
        return record

    def get_session(self, form_id: str, token: str) -> SessionRecord:
        record = self._sessions.get(token)
        if record is None or record.form_id != form_id:
            raise ValueError(f"Session not found: form={form_id} token={token}")
        return record

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit(
        self,
        form_id: str,
        token: str,
        payload: dict[str, Any] | None,
        has_files: bool,
    ) -> SessionRecord:
        """Record answers; complete the session unless files are still expected.

        ``payload`` maps block ids to ``{actionId, payload}`` records or to
        lists of them.  An empty or ``None`` payload only updates the
        completion state (the finalize call after file uploads).

        Raises:
            ValueError: unknown session, block or interaction, or answers
                sent to a session that is already completed.
        """
        record = self.get_session(form_id, token)

        if payload:
            if record.is_completed:
                raise ValueError(f"Session {token} is already completed")
            for block_id, data in payload.items():
                block = self._get_block(form_id, block_id)
                self._submit_block(record, block, data)

        if not has_files and not record.is_completed:
            record.is_completed = True
            record.completed_at = _now()
            logger.info("Session %s completed", token)

        record.updated_at = _now()
        return record

    def _submit_block(self, record: SessionRecord, block: Block, data: Any) -> None:
        # A sequence answer is submitted record by record
        if isinstance(data, list):
            for chunk in data:
                self._submit_block(record, block, chunk)
            return

        if not isinstance(data, dict) or "actionId" not in data:
            raise ValueError(f"Malformed answer for block {block.id}")

        action_id = str(data["actionId"])
        self._require_interaction(block, action_id)
        record.responses[(block.id, action_id)] = data.get("payload")

    def store_file(
        self,
        form_id: str,
        token: str,
        *,
        block_id: str,
        action_id: str,
        index: int,
        filename: str,
        content_type: str,
        content: bytes,
    ) -> StoredFile:
        """Record an uploaded file for a file-type block.

        Raises:
            ValueError: unknown session, block or interaction, or the block
                does not accept files.
        """
        record = self.get_session(form_id, token)
        block = self._get_block(form_id, block_id)
        if block.type != BlockType.FILE.value:
            raise ValueError(f"Block {block_id} does not accept files")
        self._require_interaction(block, action_id)

        stored = StoredFile(
            block_id=block_id,
            action_id=action_id,
            index=index,
            filename=filename,
            content_type=content_type,
            size=len(content),
        )
        record.files[upload_key(action_id, index)] = stored
        record.updated_at = _now()
        logger.info("Stored file %s (%d bytes) for session %s", filename, stored.size, token)
        return stored

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _get_block(self, form_id: str, block_id: str) -> Block:
        blocks = self._blocks.get(form_id)
        if blocks is None:
            queue = build_queue(self._store.get_storyboard(form_id).blocks)
            blocks = {b.id: b for b in queue}
            self._blocks[form_id] = blocks

        block = blocks.get(block_id)
        if block is None or not block.has_response_action:
            raise ValueError(f"Block not found: form={form_id} block={block_id}")
        return block

    @staticmethod
    def _require_interaction(block: Block, action_id: str) -> None:
        for interaction in block.interactions:
            if interaction.id == action_id:
                return
        raise ValueError(f"Interaction not found: block={block.id} interaction={action_id}")
