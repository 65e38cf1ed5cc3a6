"""Global exception handlers for the development server.

The registry signals bad submissions with ``ValueError`` and the store
signals unknown forms with ``KeyError``.  The handlers here turn those
into HTTP responses so routes stay free of try/except blocks.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Registry message fragment → (status, client-facing detail).
# First match wins; anything else is a plain 400.
_REGISTRY_ERRORS: list[tuple[str, int, str]] = [
    ("already completed", 409, "Session already completed"),
    ("session not found", 404, "Session not found"),
    ("block not found", 404, "Block not found"),
    ("interaction not found", 404, "Interaction not found"),
    ("does not accept files", 422, "Block does not accept files"),
    ("malformed answer", 422, "Malformed answer"),
]


def classify_value_error(message: str) -> tuple[int, str]:
    """Return the status code and safe detail for a registry error message."""
    lowered = message.lower()
    for fragment, status, detail in _REGISTRY_ERRORS:
        if fragment in lowered:
            return status, detail
    return 400, "Invalid request"


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    # Tokens and ids stay in the server log, clients get the fixed detail
    status, detail = classify_value_error(str(exc))
    logger.warning("Rejected %s %s [%d]: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": detail})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Unknown form id."""
    logger.warning("Unknown form at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": "Form not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception at %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
