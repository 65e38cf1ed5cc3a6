"""Exception hierarchy raised by the conversation runtime.

Navigation problems (out-of-range index, unknown goto target) are never
raised; they are logged and the call becomes a no-op.  Only the failures
that a caller has to react to get an exception type here.
"""


class FormflowError(Exception):
    """Base class for every error raised by the runtime."""


class InitializationError(FormflowError):
    """The form, session or storyboard could not be loaded.

    The conversation stays unusable (no queue) after this is raised.
    """


class MissingContextError(FormflowError, ValueError):
    """Submission was requested without a loaded form and session."""


class TransferError(FormflowError):
    """A submission or upload call failed.

    The original transport exception is chained as ``__cause__``.  The
    conversation is left re-submittable: processing flag cleared, payload
    untouched.
    """
