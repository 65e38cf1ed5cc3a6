"""Public model re-exports for formflow_runtime.

Consumers should import from ``formflow_runtime.models`` rather than
reaching into sub-modules directly.
"""

# --- Blocks & logic ---
from formflow_runtime.models.block import (
    Block,
    BlockType,
    Condition,
    Interaction,
    InteractionType,
    LogicRule,
)

# --- Lifecycle ---
from formflow_runtime.models.state import ConversationState

# --- Form contracts ---
from formflow_runtime.models.form import FormSession, PublicForm, Storyboard

# --- Answers ---
from formflow_runtime.models.payload import (
    AnswerPayload,
    BlockAnswer,
    FileHandle,
    InteractionPayload,
    UploadProgress,
    dump_answers,
)

__all__ = [
    # Blocks
    "Block",
    "BlockType",
    "Condition",
    "Interaction",
    "InteractionType",
    "LogicRule",
    # Lifecycle
    "ConversationState",
    # Form
    "FormSession",
    "PublicForm",
    "Storyboard",
    # Answers
    "AnswerPayload",
    "BlockAnswer",
    "FileHandle",
    "InteractionPayload",
    "UploadProgress",
    "dump_answers",
]
