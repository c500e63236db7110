from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Optional

from metube.db.models import ContainerKind, Video

THUMBNAIL_SUFFIX = ".webp"


@dataclass(frozen=True, slots=True)
class LibraryRecord:
    """A library entry as produced by the pipeline.

    ``path`` and ``thumbnail_path`` are relative to the library root.
    """

    id: str
    path: str
    title: str
    description: str
    artist: str
    upload_time: datetime
    container_kind: ContainerKind
    original_filename: str
    duration: timedelta
    view_count: int = 0
    thumbnail_path: Optional[str] = None

    @property
    def expected_thumbnail_path(self) -> str:
        return PurePosixPath(self.path).with_suffix(THUMBNAIL_SUFFIX).as_posix()

    def to_model(self) -> Video:
        return Video(
            id=self.id,
            path=self.path,
            title=self.title,
            description=self.description,
            artist=self.artist,
            views=self.view_count,
            upload_time=self.upload_time,
            container_kind=self.container_kind,
            original_filename=self.original_filename,
            duration_s=self.duration.total_seconds(),
            thumbnail_path=self.thumbnail_path,
        )

    @classmethod
    def from_model(cls, video: Video) -> "LibraryRecord":
        return cls(
            id=video.id,
            path=video.path,
            title=video.title,
            description=video.description,
            artist=video.artist,
            upload_time=_as_utc(video.upload_time),
            container_kind=video.container_kind,
            original_filename=video.original_filename,
            duration=timedelta(seconds=video.duration_s),
            view_count=video.views,
            thumbnail_path=video.thumbnail_path,
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "path": self.path,
            "title": self.title,
            "description": self.description,
            "artist": self.artist,
            "view_count": self.view_count,
            "upload_time": self.upload_time.isoformat(),
            "container_kind": self.container_kind.value,
            "original_filename": self.original_filename,
            "duration_s": self.duration.total_seconds(),
            "thumbnail_path": self.thumbnail_path,
        }


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on round-trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["LibraryRecord", "THUMBNAIL_SUFFIX"]
