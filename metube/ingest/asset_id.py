from __future__ import annotations

from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path

__all__ = [
    "ID_BYTES",
    "RawAsset",
    "compute_sha256",
    "derive_video_id",
    "new_digest",
]

# 6 bytes -> 12 hex characters, a 48-bit identifier space.
ID_BYTES = 6


@dataclass(frozen=True, slots=True)
class RawAsset:
    """A fully received upload that is not yet indexed.

    ``path`` is the temp location until the addressor relocates it, then the
    absolute library location. ``original_filename`` is display-only.
    """

    path: Path
    digest: bytes
    original_filename: str

    @property
    def video_id(self) -> str:
        return derive_video_id(self.digest)

    @property
    def hexdigest(self) -> str:
        return self.digest.hex()


def new_digest():
    """Return a fresh running hash for streamed content."""
    return sha256()


def derive_video_id(digest: bytes) -> str:
    """Return the library identifier for a content digest.

    Args:
        digest: The raw SHA256 digest bytes.

    Returns:
        The lowercase hex encoding of the first six bytes.
    """
    if len(digest) < ID_BYTES:
        raise ValueError(f"digest too short for an identifier: {len(digest)} bytes")
    return digest[:ID_BYTES].hex()


def compute_sha256(path: Path, *, chunk_size: int = 8 * 1024 * 1024) -> bytes:
    """Return the raw SHA256 digest for a file on disk.

    Args:
        path: The path to the file.
        chunk_size: The chunk size to use when reading the file.

    Returns:
        The digest bytes.
    """
    digest = new_digest()
    with path.open("rb") as handle:
        while chunk := handle.read(chunk_size):
            digest.update(chunk)
    return digest.digest()
