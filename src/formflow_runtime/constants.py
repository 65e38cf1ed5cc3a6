"""Conversation runtime constants shared across the SDK.

These values are referenced by the evaluator, the queue builder and the
conversation session.  A few can be overridden via environment variables
so that deployments can change outward-facing conventions without code
changes.
"""

import os

# Query parameter carrying the session token on call-to-action redirects.
# Overridable via FORMFLOW_CTA_SESSION_PARAM env var.
CTA_SESSION_PARAM = os.getenv("FORMFLOW_CTA_SESSION_PARAM", "ipt_session")

# Separator used when file answers are flattened to a readable string for
# the non-file submission step.
FILE_NAME_SEPARATOR = ", "

# Block types that never carry an answer.
NON_INTERACTIVE_TYPES: set[str] = {"none", "group"}

# Block types whose answer is a sequence of records rather than one record.
MULTI_SELECT_TYPES: set[str] = {"checkbox"}

# Predicate operators that must hold for every record of a sequence answer.
# All other operators hold if any single record satisfies them.
NEGATIVE_OPERATORS: set[str] = {"ne", "not_contains"}


def upload_key(action_id: str, index: int) -> str:
    """Composite key of one file in the upload-progress map (``action[index]``)."""
    return f"{action_id}[{index}]"
