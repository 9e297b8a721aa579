"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging from ``settings.log_level``.  No state
outlives a request: every fetch, batch and stream is request-scoped.

Routers
-------
    /api     fetch, fetch-multiple, metadata and status (JSON)
    /stream  batch fetch with progress as Server-Sent Events
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webfetch.api.routers import fetch as fetch_router
from webfetch.api.routers import stream as stream_router
from webfetch.config import settings
from webfetch.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup."""
    setup_logging(settings.log_level)
    logger.info("WebFetch API starting (strict_content_type=%s)", settings.strict_content_type)
    yield


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="WebFetch API",
        description=(
            "Fetch web pages as raw HTML, plain text or markdown, with "
            "private-network protection, page metadata extraction, HEAD "
            "status checks and batch fetching with streamed progress."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Open to browser clients on any origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    app.include_router(fetch_router.router, prefix="/api", tags=["fetch"])
    app.include_router(stream_router.router, prefix="/stream", tags=["stream"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn webfetch.api.app:app --reload
app = create_app()
