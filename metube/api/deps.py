from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from metube.core.config import Settings, get_settings
from metube.core.storage import LibraryStorage
from metube.services.ingest_service import IngestPipeline
from metube.services.video_index import VideoIndex


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if isinstance(settings, Settings) else get_settings()


def get_storage(request: Request) -> LibraryStorage:
    storage: LibraryStorage = request.app.state.storage
    return storage


def get_video_index(request: Request) -> VideoIndex:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    return VideoIndex(session_factory)


def get_ingest_pipeline(
    settings: Settings = Depends(get_app_settings),
    storage: LibraryStorage = Depends(get_storage),
    index: VideoIndex = Depends(get_video_index),
) -> IngestPipeline:
    return IngestPipeline(settings, storage, index)


IndexDependency = Annotated[VideoIndex, Depends(get_video_index)]
PipelineDependency = Annotated[IngestPipeline, Depends(get_ingest_pipeline)]
SettingsDependency = Annotated[Settings, Depends(get_app_settings)]


__all__ = [
    "get_app_settings",
    "get_storage",
    "get_video_index",
    "get_ingest_pipeline",
    "IndexDependency",
    "PipelineDependency",
    "SettingsDependency",
]
