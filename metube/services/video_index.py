from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metube.core.errors import DataError, DuplicateVideoError, VideoNotFoundError
from metube.core.logging import get_logger
from metube.db.models import Video
from metube.ingest.records import LibraryRecord

COMMIT_STAGE = "committing"


class VideoIndex:
    """Durable index of library records, keyed by video id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = get_logger(component="video_index")

    async def insert(self, record: LibraryRecord) -> None:
        """Insert a new record in one transaction; its view count starts at 0."""
        model = record.to_model()
        model.views = 0
        async with self.session_factory() as session:
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateVideoError(f"video {record.id} is already indexed", stage=COMMIT_STAGE) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise DataError(f"failed to add video {record.id}: {exc}", stage=COMMIT_STAGE) from exc
        self.logger.info("video_indexed", video_id=record.id, path=record.path)

    async def increment_view_count(self, video_id: str) -> int:
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    update(Video).where(Video.id == video_id).values(views=Video.views + 1)
                )
                if result.rowcount != 1:
                    await session.rollback()
                    raise VideoNotFoundError(f"no video with id {video_id}")
                await session.commit()
                views = await session.scalar(select(Video.views).where(Video.id == video_id))
            except SQLAlchemyError as exc:
                await session.rollback()
                raise DataError(f"failed to increase view count for video {video_id}: {exc}") from exc
        return int(views or 0)

    async def get(self, video_id: str) -> Optional[LibraryRecord]:
        async with self.session_factory() as session:
            video = await session.get(Video, video_id)
            return LibraryRecord.from_model(video) if video else None

    async def list_videos(self, *, start: int = 0, count: int = 100) -> List[LibraryRecord]:
        """Return ``count`` records from index ``start`` (0-based), newest first."""
        stmt = select(Video).order_by(Video.upload_time.desc(), Video.id).offset(start).limit(count)
        async with self.session_factory() as session:
            videos = (await session.execute(stmt)).scalars().all()
        return [LibraryRecord.from_model(video) for video in videos]


__all__ = ["COMMIT_STAGE", "VideoIndex"]
