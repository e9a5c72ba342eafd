"""
FastAPI Application

DESIGN DECISION: The app is built by a factory. Components are created
once (or injected by tests) and stored on app.state; routes reach them
through a dependency, never through module globals.
"""

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from piggybank import __version__
from piggybank.api.routes import router
from piggybank.orchestrator import AppComponents, create_app_components


logger = structlog.get_logger(__name__)

# Shortcuts and other external clients call the ingest endpoint directly
CORS_ALLOW_ORIGINS = ["*"]
CORS_ALLOW_METHODS = ["POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization"]


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the API.

    Args:
        components: Pre-built services. Built from settings when omitted.
    """
    components = components or create_app_components()

    app = FastAPI(title="Piggybank API", version=__version__)
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )
    app.include_router(router)

    logger.info(
        "api_created",
        storage_backend=components.storage_backend,
        push_configured=components.notifier.is_configured,
    )
    return app
