"""Error kinds raised by the ingestion pipeline and the video index."""

from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    """Base class for every failure that aborts an upload."""

    kind = "ingest"

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.kind} error during {self.stage}: {self.message}"
        return f"{self.kind} error: {self.message}"


class InputError(IngestError):
    """The upload itself is unusable; the client can correct it."""

    kind = "input"


class StorageError(IngestError):
    """Disk, permission or rename failure in the library volume."""

    kind = "storage"


class IdentifierCollisionError(StorageError):
    """A library file already exists under the derived identifier."""


class LibraryLayoutError(StorageError):
    """A relocated file does not live under the library root."""


class ProbeError(IngestError):
    """The probe tool failed or its report cannot be used."""

    kind = "probe"


class ProbeParseError(ProbeError):
    """Probe output does not follow the sectioned KEY=VALUE format."""

    def __init__(self, message: str, *, line: Optional[int] = None, stage: Optional[str] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, stage=stage)
        self.line = line


class DataError(IngestError):
    """The durable index rejected an operation."""

    kind = "data"


class DuplicateVideoError(DataError):
    """A record with the same identifier is already indexed."""


class VideoNotFoundError(DataError, LookupError):
    """No record exists for the requested identifier."""


__all__ = [
    "IngestError",
    "InputError",
    "StorageError",
    "IdentifierCollisionError",
    "LibraryLayoutError",
    "ProbeError",
    "ProbeParseError",
    "DataError",
    "DuplicateVideoError",
    "VideoNotFoundError",
]
