"""FastAPI dependency injection — provides the storyboard store and session registry.

Both are created once (see ``app.create_app``) and stashed on ``app.state``.
"""

from fastapi import Request

from formflow_runtime.storyboard import StoryboardStore

from formflow_server.registry import SessionRegistry


def get_store(request: Request) -> StoryboardStore:
    """Return the StoryboardStore singleton from ``app.state``."""
    return request.app.state.store


def get_registry(request: Request) -> SessionRegistry:
    """Return the SessionRegistry singleton from ``app.state``."""
    return request.app.state.registry
