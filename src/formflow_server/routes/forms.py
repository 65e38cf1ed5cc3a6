"""Form endpoints — public form definition, storyboard, session creation."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from formflow_runtime.models.form import FormSession, PublicForm
from formflow_runtime.storyboard import StoryboardStore

from formflow_server.dependencies import get_registry, get_store
from formflow_server.registry import SessionRegistry

router = APIRouter(tags=["forms"])


class CreateSessionRequest(BaseModel):
    """Body for POST /forms/{form_id}/sessions."""
    params: dict[str, str] = Field(default_factory=dict)


@router.get("/forms/{form_id}")
async def get_form(
    form_id: str,
    store: StoryboardStore = Depends(get_store),
) -> PublicForm:
    """Return the respondent-facing form definition (404 if unknown)."""
    return store.get_form(form_id)


@router.get("/forms/{form_id}/storyboard")
async def get_storyboard(
    form_id: str,
    store: StoryboardStore = Depends(get_store),
) -> dict:
    """Return the block tree of the form as ``{"blocks": [...]}``."""
    storyboard = store.get_storyboard(form_id)
    return storyboard.model_dump(mode="json")


@router.post("/forms/{form_id}/sessions", status_code=201)
async def create_session(
    form_id: str,
    body: CreateSessionRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> FormSession:
    """Open a respondent session capturing the page's query parameters."""
    record = registry.create_session(form_id, body.params)
    return FormSession(token=record.token, params=record.params)
