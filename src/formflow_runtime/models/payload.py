"""Answer payload models — what the conversation records per block.

A block's answer is either one ``InteractionPayload`` (scalar types) or a
list of them (multi-select types such as checkbox).  File answers keep the
raw ``FileHandle`` objects in memory until the upload step; the transmitted
answer only carries their names.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class FileHandle(BaseModel):
    """An in-memory file picked by the respondent."""

    name: str
    content: bytes = b""
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class InteractionPayload(BaseModel):
    """One recorded answer: which interaction was used and the value given.

    Serialises as ``{"actionId": ..., "payload": ...}``.  Instances are
    frozen so that readers of the payload cannot mutate recorded answers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action_id: str = Field(alias="actionId")
    payload: Any = None

    @property
    def files(self) -> list[FileHandle]:
        """File handles carried by this record (empty for non-file answers)."""
        if not isinstance(self.payload, list):
            return []
        return [p for p in self.payload if isinstance(p, FileHandle)]

    @property
    def has_files(self) -> bool:
        return bool(self.files)


class UploadProgress(BaseModel):
    """Byte counters for one file being uploaded."""

    total: int
    loaded: int = 0


# A block answer: a single record, or an ordered sequence of records.
BlockAnswer = Union[InteractionPayload, list[InteractionPayload]]

# Mapping from block id → answer.
AnswerPayload = dict[str, BlockAnswer]


def dump_answers(answers: AnswerPayload | None) -> dict[str, Any] | None:
    """Serialise an answer payload to plain JSON-compatible data."""
    if answers is None:
        return None
    dumped: dict[str, Any] = {}
    for block_id, answer in answers.items():
        if isinstance(answer, list):
            dumped[block_id] = [rec.model_dump(by_alias=True) for rec in answer]
        else:
            dumped[block_id] = answer.model_dump(by_alias=True)
    return dumped
