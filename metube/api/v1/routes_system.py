from __future__ import annotations

import os
import shutil

from fastapi import APIRouter, Depends, Response, status

from metube.api import deps
from metube.core.storage import LibraryStorage

from .schemas import HealthResponse, ReadinessResponse


router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse, summary="Check tools and library volume")
async def ready(
    settings: deps.SettingsDependency,
    response: Response,
    storage: LibraryStorage = Depends(deps.get_storage),
) -> ReadinessResponse:
    result = ReadinessResponse(
        ffprobe=shutil.which(settings.ffprobe_path) is not None,
        ffmpeg=shutil.which(settings.ffmpeg_path) is not None,
        library_writable=os.access(storage.library_root, os.W_OK) and os.access(storage.incoming_root, os.W_OK),
    )
    # ffmpeg only feeds thumbnails, which are optional.
    if not (result.ffprobe and result.library_writable):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return result


__all__ = ["router"]
