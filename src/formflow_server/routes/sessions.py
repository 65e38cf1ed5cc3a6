"""Session endpoints — answer submission, file uploads, session inspection."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel

from formflow_server.dependencies import get_registry
from formflow_server.registry import SessionRecord, SessionRegistry

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class SubmitRequest(BaseModel):
    """Body for POST .../submit.

    ``payload`` is ``None`` for the finalize call after file uploads.
    """
    payload: dict[str, Any] | None = None
    has_files: bool = False


class StoredFileInfo(BaseModel):
    block_id: str
    action_id: str
    index: int
    filename: str
    content_type: str
    size: int


class SessionSummary(BaseModel):
    """What the server holds for a session."""
    form_id: str
    token: str
    params: dict[str, str]
    # block_id → {action_id: value}
    responses: dict[str, dict[str, Any]]
    files: dict[str, StoredFileInfo]
    is_completed: bool
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


def _to_summary(record: SessionRecord) -> SessionSummary:
    responses: dict[str, dict[str, Any]] = {}
    for (block_id, action_id), value in record.responses.items():
        responses.setdefault(block_id, {})[action_id] = value
    return SessionSummary(
        form_id=record.form_id,
        token=record.token,
        params=record.params,
        responses=responses,
        files={key: StoredFileInfo(**vars(f)) for key, f in record.files.items()},
        is_completed=record.is_completed,
        created_at=record.created_at,
        updated_at=record.updated_at,
        completed_at=record.completed_at,
    )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/forms/{form_id}/sessions/{token}")
async def get_session(
    form_id: str,
    token: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionSummary:
    """Return recorded answers and files for a session (404 if unknown)."""
    return _to_summary(registry.get_session(form_id, token))


@router.post("/forms/{form_id}/sessions/{token}/submit")
async def submit(
    form_id: str,
    token: str,
    body: SubmitRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> dict:
    """Record answers.  The session completes once ``has_files`` is false."""
    record = registry.submit(form_id, token, body.payload, body.has_files)
    return {"ok": True, "is_completed": record.is_completed}


@router.post("/forms/{form_id}/sessions/{token}/uploads/{block_id}", status_code=201)
async def upload_file(
    form_id: str,
    token: str,
    block_id: str,
    request: Request,
    action_id: str = Query(...),
    index: int = Query(0, ge=0),
    x_filename: str = Header("upload", alias="X-Filename"),
    content_type: str = Header("application/octet-stream", alias="Content-Type"),
    registry: SessionRegistry = Depends(get_registry),
) -> StoredFileInfo:
    """Receive one file as the raw request body."""
    content = await request.body()
    stored = registry.store_file(
        form_id,
        token,
        block_id=block_id,
        action_id=action_id,
        index=index,
        filename=x_filename,
        content_type=content_type,
        content=content,
    )
    return StoredFileInfo(**vars(stored))
