from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from metube.api.v1 import get_api_router
from metube.core.config import get_settings
from metube.core.db import create_engine, create_session_factory, init_schema
from metube.core.logging import configure_logging, get_logger, level_from_name
from metube.core.storage import LibraryStorage


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level), fmt=settings.log_format)
    logger = get_logger(component="app")
    storage = LibraryStorage.from_settings(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_schema(engine)
        app.state.settings = settings
        app.state.storage = storage
        app.state.engine = engine
        app.state.session_factory = session_factory
        logger.info(
            "app_started",
            library_root=str(storage.library_root),
            incoming_root=str(storage.incoming_root),
        )
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


__all__ = ["create_app"]
