"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the YAML forms once
  - CORS middleware
  - Global exception handlers (ValueError → 404/409/422/400, KeyError → 404)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``formflow-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formflow_runtime.storyboard import StoryboardStore

from formflow_server.config import ServerSettings, load_settings
from formflow_server.errors import (
    generic_error_handler,
    key_error_handler,
    value_error_handler,
)
from formflow_server.registry import SessionRegistry
from formflow_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load the forms directory at startup unless a store was injected.

    The store and session registry are stashed on ``app.state`` for
    dependency injection.
    """
    if app.state.store is None:
        settings: ServerSettings = app.state.settings
        store = StoryboardStore(forms_dir=settings.forms_dir)
        store.load()
        app.state.store = store
        app.state.registry = SessionRegistry(store)
        logger.info("StoryboardStore loaded successfully")

    yield

    logger.info("Shutting down, %d forms were served", len(app.state.store.forms))


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(
    settings: ServerSettings | None = None,
    store: StoryboardStore | None = None,
) -> FastAPI:
    """Build and return the configured FastAPI application.

    Passing a loaded ``store`` wires the store and registry immediately,
    which lets in-process transports (that skip the lifespan) use the app.
    """
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Formflow Development Server",
        description="Serves conversational form storyboards and records sessions in memory",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.registry = SessionRegistry(store) if store is not None else None

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — reports how many forms are loaded."""
        loaded = app.state.store
        if loaded is None:
            return {"status": "starting"}
        return {"status": "ok", "forms": len(loaded.forms)}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``formflow-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
