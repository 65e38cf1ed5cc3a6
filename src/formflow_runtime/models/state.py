"""Lifecycle states of a conversation session."""

import enum


class ConversationState(str, enum.Enum):
    """Where a conversation is in its lifecycle.

    Transitions:
        uninitialized -> ready          (form, session and storyboard loaded)
        uninitialized -> failed         (initialisation failed)
        ready -> submitting             (next() on the last visible block)
        submitting -> uploading_files   (answers contain files)
        submitting/uploading_files -> submitted   (server confirmed)
        submitting/uploading_files -> redirected  (call-to-action redirect)
        submitting/uploading_files -> ready       (transfer failed, retryable)
    """

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SUBMITTING = "submitting"
    UPLOADING_FILES = "uploading_files"
    SUBMITTED = "submitted"
    REDIRECTED = "redirected"
    FAILED = "failed"
