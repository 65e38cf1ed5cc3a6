"""Form-level contracts consumed from the upstream API.

These models mirror the server responses the runtime reads:

  - PublicForm: the respondent-facing view of a form (call-to-action setup)
  - FormSession: the server-issued session (token + captured parameters)
  - Storyboard: the block tree of a form
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from formflow_runtime.models.block import Block


class PublicForm(BaseModel):
    """Respondent-facing form definition."""

    model_config = ConfigDict(extra="allow")

    uuid: str
    name: Optional[str] = None
    cta_link: Optional[str] = None
    cta_label: Optional[str] = None
    cta_append_session_id: bool = False
    cta_append_params: bool = False
    use_cta_redirect: bool = False


class FormSession(BaseModel):
    """Server-issued session; immutable for the lifetime of a conversation."""

    model_config = ConfigDict(frozen=True)

    token: str
    params: dict[str, str] = Field(default_factory=dict)


class Storyboard(BaseModel):
    """The authored block tree of a form."""

    blocks: List[Block] = Field(default_factory=list)
