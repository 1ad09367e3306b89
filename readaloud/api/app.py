"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. The module-level ``app`` instance
allows ``uvicorn readaloud.api.app:app --reload``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from readaloud.api.middleware.error_handler import register_error_handlers
from readaloud.api.routes import recordings
from readaloud.core.config import get_settings
from readaloud.core.exceptions import StorageError
from readaloud.core.logging import configure_logging
from readaloud.core.models import HealthResponse
from readaloud.services.storage.database import close_db, init_db
from readaloud.services.storage.object_store import ObjectStorage, create_object_storage

logger = logging.getLogger(__name__)


def create_app(storage: ObjectStorage | None = None) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        storage: Object storage to use instead of the MinIO client built
            from settings (used in tests).
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        await init_db()
        if storage is not None:
            app.state.storage = storage
        else:
            minio_storage = create_object_storage(settings)
            try:
                await minio_storage.ensure_bucket()
            except StorageError as exc:
                # Uploads report the failure per request.
                logger.warning("Object storage not ready: %s", exc.detail)
            app.state.storage = minio_storage
        logger.info("ReadAloud API started")
        try:
            yield
        finally:
            await close_db()

    app = FastAPI(
        title="ReadAloud",
        description="Upload and retrieval backend for recorded script readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    if storage is not None:
        app.state.storage = storage

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(recordings.router, prefix="/api/v1")

    return app


app = create_app()
