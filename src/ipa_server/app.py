# SPDX-License-Identifier: MIT
"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from .config import APIConfig
from .index import MetadataIndex
from .manifest import ManifestGenerator
from .service import DistributionService
from .storage import Storage, create_storage

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, storage: Storage | None = None) -> DistributionService:
    """Build the storage backend, index and services and attach them to the app.

    Raises:
        ConfigError: If the configuration is invalid.
        StorageError: If the storage backend is unusable.
        IndexCorruptionError: If the index snapshot cannot be parsed.
    """
    config: APIConfig = app.state.config
    config.validate()

    if storage is None:
        storage = create_storage(config)
    storage.check()

    index = MetadataIndex(Path(config.index.path), config.index.reset_on_corruption)
    index.load()

    service = DistributionService(storage, index)
    app.state.service = service
    app.state.manifest_generator = ManifestGenerator(service, storage)
    return service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup: storage and index, before the first request
    if getattr(app.state, "service", None) is None:
        init_state(app)
    config: APIConfig = app.state.config
    logger.info(
        "Serving %d application(s) from %s storage",
        len(app.state.service.index),
        config.storage.backend,
    )

    yield


def create_app(config: APIConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: API configuration. If None, loads from environment.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = APIConfig.from_env()

    app = FastAPI(
        title=config.title,
        description=config.description,
        version=config.version,
        docs_url=config.docs_url,
        openapi_url=config.openapi_url,
        lifespan=lifespan,
    )

    # Store config in app state
    app.state.config = config
    app.state.service = None

    # Add error handling middleware
    from .middleware.errors import add_error_handlers

    add_error_handlers(app, catch_all=not config.debug)

    # Register API routes
    from .routes import apps, files, manifest, upload

    app.include_router(apps.router, prefix=config.api_prefix, tags=["apps"])
    app.include_router(upload.router, prefix=config.api_prefix, tags=["upload"])
    app.include_router(manifest.router, tags=["manifest"])
    if config.storage.backend == "local":
        app.include_router(files.router, tags=["files"])

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": config.version}

    return app


# Default app instance for uvicorn
app = create_app()
