"""Upload ingestion pipeline.

An upload moves through ``Receiving -> Addressed -> Probed -> Thumbnailed ->
Committed``. Each transition takes the previous stage value and returns the
next one, so a stage cannot be skipped, and the single in-flight artifact is
only ever held by the current value. A failed transition yields ``Aborted``.

Every stage removes the file it owns before its error reaches ``run``; the
orchestrator itself never cleans up.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, ClassVar, Optional, Union

from metube.core.config import Settings
from metube.core.errors import DataError, IngestError
from metube.core.logging import get_logger
from metube.core.storage import LibraryStorage
from metube.ingest.asset_id import RawAsset
from metube.ingest.metadata import extract_metadata
from metube.ingest.records import LibraryRecord
from metube.ingest.thumbnails import render_thumbnail

from .video_index import COMMIT_STAGE, VideoIndex


@dataclass(frozen=True, slots=True)
class Receiving:
    label: ClassVar[str] = "receiving"

    filename: Optional[str]


@dataclass(frozen=True, slots=True)
class Addressed:
    label: ClassVar[str] = "addressed"

    asset: RawAsset
    relative_path: str


@dataclass(frozen=True, slots=True)
class Probed:
    label: ClassVar[str] = "probed"

    record: LibraryRecord


@dataclass(frozen=True, slots=True)
class Thumbnailed:
    label: ClassVar[str] = "thumbnailed"

    record: LibraryRecord


@dataclass(frozen=True, slots=True)
class Committed:
    label: ClassVar[str] = "committed"

    record: LibraryRecord


@dataclass(frozen=True, slots=True)
class Aborted:
    label: ClassVar[str] = "aborted"

    stage: str
    error: IngestError


PipelineState = Union[Receiving, Addressed, Probed, Thumbnailed, Committed, Aborted]
PipelineOutcome = Union[Committed, Aborted]


class IngestPipeline:
    def __init__(self, settings: Settings, storage: LibraryStorage, index: VideoIndex):
        self.settings = settings
        self.storage = storage
        self.index = index
        self.logger = get_logger(component="ingest_pipeline")

    async def address(self, state: Receiving, stream: AsyncIterable[bytes]) -> Addressed:
        asset = await self.storage.receive(stream, state.filename)
        placed, relative_path = await asyncio.to_thread(self.storage.place, asset)
        return Addressed(asset=placed, relative_path=relative_path)

    async def probe(
        self,
        state: Addressed,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Probed:
        record = await asyncio.to_thread(
            extract_metadata,
            state.asset,
            state.relative_path,
            self.storage,
            self.settings,
            title=title,
            description=description,
        )
        return Probed(record=record)

    async def thumbnail(self, state: Probed) -> Thumbnailed:
        record = await asyncio.to_thread(render_thumbnail, state.record, self.storage, self.settings)
        return Thumbnailed(record=record)

    async def commit(self, state: Thumbnailed) -> Committed:
        record = state.record
        try:
            await self.index.insert(record)
        except Exception as exc:
            self.storage.discard(self.storage.absolute(record.path))
            if record.thumbnail_path:
                self.storage.discard(self.storage.absolute(record.thumbnail_path))
            if isinstance(exc, IngestError):
                raise
            raise DataError(f"failed to index video {record.id}: {exc!r}", stage=COMMIT_STAGE) from exc
        return Committed(record=record)

    async def run(
        self,
        stream: AsyncIterable[bytes],
        filename: Optional[str],
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PipelineOutcome:
        """Run one upload to a terminal state.

        Args:
            stream: The upload body as byte chunks.
            filename: The client-supplied filename.
            title: Optional title overriding the probed one.
            description: Optional description overriding the probed one.

        Returns:
            ``Committed`` with the indexed record, or ``Aborted`` naming the
            stage that failed and its error.
        """
        state: PipelineState = Receiving(filename=filename)
        log = self.logger.bind(original_filename=filename)
        try:
            state = await self.address(state, stream)
            log = log.bind(video_id=state.asset.video_id)
            log.debug("ingest_stage_completed", stage=state.label)
            state = await self.probe(state, title=title, description=description)
            log.debug("ingest_stage_completed", stage=state.label)
            state = await self.thumbnail(state)
            log.debug("ingest_stage_completed", stage=state.label, thumbnail=state.record.thumbnail_path)
            state = await self.commit(state)
        except IngestError as exc:
            log.error("ingest_aborted", stage=state.label, error=str(exc), kind=exc.kind)
            return Aborted(stage=state.label, error=exc)

        log.info("ingest_committed", path=state.record.path)
        return state


async def iter_file_chunks(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    """Read a local file as an upload stream."""
    with path.open("rb") as handle:
        while chunk := await asyncio.to_thread(handle.read, chunk_size):
            yield chunk


__all__ = [
    "Aborted",
    "Addressed",
    "Committed",
    "IngestPipeline",
    "PipelineOutcome",
    "PipelineState",
    "Probed",
    "Receiving",
    "Thumbnailed",
    "iter_file_chunks",
]
