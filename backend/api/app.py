"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the schema.  On
shutdown it closes the connection cleanly.

Routers
-------
All endpoint groups are mounted under their respective path prefix:

    /stories    story CRUD, publish status and derived graph views
    /pages      page CRUD
    /choices    choice CRUD (linking, unlinking)
    /parties    reader sessions and progress
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import settings
from backend.db import get_connection, init_db
from backend.observability import configure_logging, get_logger

from backend.api.routers import choices as choices_router
from backend.api.routers import pages as pages_router
from backend.api.routers import parties as parties_router
from backend.api.routers import stories as stories_router

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    configure_logging(settings.log_verbosity)
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    log.info("api_started", db_path=str(settings.db_path))
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Storyloom API",
        description=(
            "REST interface for Storyloom branching stories. "
            "Exposes story, page and choice CRUD, the derived story graph "
            "(root, reading order, cycles, layout) and reader parties with "
            "progress tracking."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(stories_router.router, prefix="/stories", tags=["stories"])
    app.include_router(pages_router.router, prefix="/pages", tags=["pages"])
    app.include_router(choices_router.router, prefix="/choices", tags=["choices"])
    app.include_router(parties_router.router, prefix="/parties", tags=["parties"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn backend.api.app:app --reload
app = create_app()
