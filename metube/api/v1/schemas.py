from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from metube.db.models import ContainerKind
from metube.ingest.records import LibraryRecord


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReadinessResponse(BaseModel):
    ffprobe: bool
    ffmpeg: bool
    library_writable: bool


class VideoResponse(BaseModel):
    id: str = Field(..., json_schema_extra={"example": "3f9a0c12be77"})
    path: str = Field(..., description="Location relative to the library root.")
    title: str
    description: str
    artist: str
    view_count: int
    upload_time: datetime
    container_kind: ContainerKind
    original_filename: str
    duration_s: float
    thumbnail_path: Optional[str] = None

    @classmethod
    def from_record(cls, record: LibraryRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            path=record.path,
            title=record.title,
            description=record.description,
            artist=record.artist,
            view_count=record.view_count,
            upload_time=record.upload_time,
            container_kind=record.container_kind,
            original_filename=record.original_filename,
            duration_s=record.duration.total_seconds(),
            thumbnail_path=record.thumbnail_path,
        )


class VideoListResponse(BaseModel):
    start: int
    count: int
    videos: List[VideoResponse]


class ViewCountResponse(BaseModel):
    id: str
    view_count: int


class ErrorResponse(BaseModel):
    error: str
    stage: Optional[str] = None
    detail: Optional[str] = None


__all__ = [
    "HealthResponse",
    "ReadinessResponse",
    "VideoResponse",
    "VideoListResponse",
    "ViewCountResponse",
    "ErrorResponse",
]
