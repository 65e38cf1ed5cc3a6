"""Client configuration — reads settings from environment variables.

All settings have sensible defaults for local development against the
``formflow-server`` development server.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ClientSettings:
    """Immutable client configuration."""

    # Base URL of the form API, without the /api/v1 prefix
    base_url: str = "http://localhost:8080"

    # Per-request timeout in seconds
    timeout: float = 30.0

    # Bytes per chunk when streaming file uploads; progress is reported
    # once per chunk
    upload_chunk_size: int = 64 * 1024


def load_settings() -> ClientSettings:
    """Build settings from ``FORMFLOW_*`` environment variables."""
    return ClientSettings(
        base_url=os.getenv("FORMFLOW_API_URL", "http://localhost:8080").rstrip("/"),
        timeout=float(os.getenv("FORMFLOW_TIMEOUT", "30")),
        upload_chunk_size=int(os.getenv("FORMFLOW_UPLOAD_CHUNK_SIZE", str(64 * 1024))),
    )
