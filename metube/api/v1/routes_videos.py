from __future__ import annotations

from typing import AsyncIterator, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status

from metube.api import deps
from metube.core.errors import InputError, VideoNotFoundError
from metube.services.ingest_service import Aborted

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])


async def _iter_upload(file: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while chunk := await file.read(chunk_size):
        yield chunk


@router.post(
    "",
    response_model=schemas.VideoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": schemas.ErrorResponse}, 500: {"model": schemas.ErrorResponse}},
)
async def upload_video(
    pipeline: deps.PipelineDependency,
    settings: deps.SettingsDependency,
    file: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
) -> schemas.VideoResponse:
    try:
        outcome = await pipeline.run(
            _iter_upload(file, settings.upload_chunk_size),
            file.filename,
            title=title,
            description=description,
        )
    finally:
        await file.close()

    if isinstance(outcome, Aborted):
        code = (
            status.HTTP_400_BAD_REQUEST
            if isinstance(outcome.error, InputError)
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        detail = schemas.ErrorResponse(
            error=outcome.error.kind,
            stage=outcome.stage,
            detail=outcome.error.message,
        )
        raise HTTPException(status_code=code, detail=detail.model_dump())
    return schemas.VideoResponse.from_record(outcome.record)


@router.get("", response_model=schemas.VideoListResponse)
async def list_videos(
    index: deps.IndexDependency,
    start: int = Query(default=0, ge=0),
    count: int = Query(default=100, ge=1, le=1000),
) -> schemas.VideoListResponse:
    records = await index.list_videos(start=start, count=count)
    return schemas.VideoListResponse(
        start=start,
        count=len(records),
        videos=[schemas.VideoResponse.from_record(record) for record in records],
    )


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(video_id: str, index: deps.IndexDependency) -> schemas.VideoResponse:
    record = await index.get(video_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    return schemas.VideoResponse.from_record(record)


@router.post("/{video_id}/views", response_model=schemas.ViewCountResponse)
async def record_view(video_id: str, index: deps.IndexDependency) -> schemas.ViewCountResponse:
    try:
        views = await index.increment_view_count(video_id)
    except VideoNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    return schemas.ViewCountResponse(id=video_id, view_count=views)


__all__ = ["router"]
