"""formflow_client — httpx implementation of the upstream form API.

Public API:
    HttpFormApi     — async REST client implementing ``FormApi``
    ClientSettings  — client configuration (base URL, timeout, chunk size)
    load_settings   — build settings from ``FORMFLOW_*`` environment variables
"""

from formflow_client.config import ClientSettings, load_settings
from formflow_client.http import HttpFormApi

__all__ = ["ClientSettings", "HttpFormApi", "load_settings"]
