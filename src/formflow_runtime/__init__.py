"""formflow_runtime — conversational form runtime SDK.

Public API:
    ConversationSession    — stateful navigation, answer recording, submission
    SubmissionOrchestrator — the multi-step submit protocol
    LogicEvaluator         — block visibility and goto rule evaluation
    build_queue            — flattens a storyboard tree into the block queue
    StoryboardStore        — loads YAML form definitions into typed models

Collaborator interfaces:
    FormApi    — ABC for the upstream form API
    Navigator  — ABC for call-to-action redirects

Errors:
    FormflowError, InitializationError, MissingContextError, TransferError
"""

from formflow_runtime.conversation import ConversationSession
from formflow_runtime.errors import (
    FormflowError,
    InitializationError,
    MissingContextError,
    TransferError,
)
from formflow_runtime.evaluator import LogicEvaluator, evaluate_goto, is_block_visible
from formflow_runtime.interfaces import FormApi, Navigator, ProgressCallback
from formflow_runtime.models import (
    Block,
    BlockType,
    ConversationState,
    FileHandle,
    FormSession,
    InteractionPayload,
    PublicForm,
    Storyboard,
)
from formflow_runtime.queue import build_queue
from formflow_runtime.storyboard import StoryboardStore
from formflow_runtime.submission import SubmissionOrchestrator

__all__ = [
    # Conversation
    "ConversationSession",
    "ConversationState",
    "SubmissionOrchestrator",
    # Logic & queue
    "LogicEvaluator",
    "build_queue",
    "evaluate_goto",
    "is_block_visible",
    # Store
    "StoryboardStore",
    # Interfaces
    "FormApi",
    "Navigator",
    "ProgressCallback",
    # Models
    "Block",
    "BlockType",
    "FileHandle",
    "FormSession",
    "InteractionPayload",
    "PublicForm",
    "Storyboard",
    # Errors
    "FormflowError",
    "InitializationError",
    "MissingContextError",
    "TransferError",
]
