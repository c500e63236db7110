from __future__ import annotations

import asyncio
import os
import re
import secrets
from dataclasses import replace
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import AsyncIterable, BinaryIO, Optional

from metube.ingest.asset_id import RawAsset, new_digest

from .config import Settings
from .errors import IdentifierCollisionError, IngestError, InputError, LibraryLayoutError, StorageError
from .logging import get_logger

RECEIVE_STAGE = "receiving"
ADDRESS_STAGE = "addressing"

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9_-]{1,16}$")


def client_suffix(filename: str) -> str:
    """Return the extension of a client-supplied filename, or ``""``.

    Only the final path component is considered. Unlike a verbatim copy, a
    suffix longer than 16 characters or with characters outside
    ``[A-Za-z0-9_-]`` is dropped, so the file is stored under the bare id.
    """
    name = PureWindowsPath(PurePosixPath(filename).name).name
    suffix = PurePosixPath(name).suffix
    if suffix and _SAFE_SUFFIX.match(suffix):
        return suffix
    return ""


class LibraryStorage:
    """Filesystem layout of the library: a permanent root plus an incoming area.

    Both directories must be on one volume; relocation relies on a hard link
    which is atomic and never replaces an existing file.
    """

    def __init__(
        self,
        library_root: Path,
        incoming_root: Path,
        *,
        max_upload_bytes: int,
        name_attempts: int = 16,
    ):
        self.library_root = library_root.expanduser().resolve()
        self.incoming_root = incoming_root.expanduser().resolve()
        self.max_upload_bytes = max_upload_bytes
        self.name_attempts = name_attempts
        self.logger = get_logger(component="library_storage")
        self.library_root.mkdir(parents=True, exist_ok=True)
        self.incoming_root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LibraryStorage":
        return cls(
            settings.library_path,
            settings.incoming_path,
            max_upload_bytes=settings.max_upload_size_bytes,
            name_attempts=settings.temp_name_attempts,
        )

    def absolute(self, relative: str) -> Path:
        return self.library_root / relative

    def relative(self, path: Path) -> str:
        resolved = path.resolve()
        try:
            relative = resolved.relative_to(self.library_root)
        except ValueError as exc:
            raise LibraryLayoutError(
                f"{resolved} is outside the library root {self.library_root}",
                stage=ADDRESS_STAGE,
            ) from exc
        return relative.as_posix()

    def discard(self, path: Path) -> None:
        """Best-effort removal of a file this pipeline owns."""
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("library_file_cleanup_failed", path=str(path), error=str(exc))
        else:
            self.logger.debug("library_file_removed", path=str(path))

    def _allocate_temp(self, suffix: str) -> tuple[Path, BinaryIO]:
        for _ in range(self.name_attempts):
            candidate = self.incoming_root / f"upload-{secrets.token_hex(8)}{suffix}"
            if candidate.exists():
                continue
            try:
                return candidate, candidate.open("xb")
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageError(f"cannot create temp file {candidate}: {exc}", stage=RECEIVE_STAGE) from exc
        raise StorageError(
            f"no free temp filename after {self.name_attempts} attempts",
            stage=RECEIVE_STAGE,
        )

    async def receive(self, stream: AsyncIterable[bytes], filename: Optional[str]) -> RawAsset:
        """Stream an upload into a temp file while hashing it.

        Each chunk is fed to the hash before it is written, so the digest always
        covers exactly the bytes on disk. File creation and writes run in a worker
        thread so other requests keep being served. The temp file is removed on
        any failure.

        Args:
            stream: The upload body as an async iterable of byte chunks.
            filename: The client-supplied filename.

        Returns:
            A RawAsset pointing at the temp file.
        """
        if not filename or not filename.strip():
            raise InputError("upload must include a filename", stage=RECEIVE_STAGE)

        path, handle = await asyncio.to_thread(self._allocate_temp, client_suffix(filename))
        digest = new_digest()
        received = 0
        completed = False
        try:
            with handle:
                async for chunk in stream:
                    if not chunk:
                        continue
                    received += len(chunk)
                    if received > self.max_upload_bytes:
                        raise InputError(
                            f"upload exceeds {self.max_upload_bytes} bytes",
                            stage=RECEIVE_STAGE,
                        )
                    digest.update(chunk)
                    await asyncio.to_thread(handle.write, chunk)
            completed = True
        except IngestError:
            raise
        except OSError as exc:
            raise StorageError(f"failed writing upload to {path}: {exc}", stage=RECEIVE_STAGE) from exc
        except Exception as exc:
            raise StorageError(f"upload stream failed: {exc}", stage=RECEIVE_STAGE) from exc
        finally:
            if not completed:
                self.discard(path)

        self.logger.info("upload_received", path=str(path), size_bytes=received)
        return RawAsset(path=path, digest=digest.digest(), original_filename=filename)

    def place(self, asset: RawAsset) -> tuple[RawAsset, str]:
        """Move a received upload to ``<library_root>/<video_id><suffix>``.

        Args:
            asset: The RawAsset at its temp path.

        Returns:
            The relocated RawAsset and its path relative to the library root.
        """
        destination = self.library_root / f"{asset.video_id}{client_suffix(asset.original_filename)}"
        linked = False
        try:
            os.link(asset.path, destination)
            linked = True
            os.unlink(asset.path)
        except FileExistsError as exc:
            self.discard(asset.path)
            raise IdentifierCollisionError(
                f"library already holds {destination.name}",
                stage=ADDRESS_STAGE,
            ) from exc
        except OSError as exc:
            self.discard(asset.path)
            if linked:
                self.discard(destination)
            raise StorageError(
                f"cannot move {asset.path} to {destination}: {exc}",
                stage=ADDRESS_STAGE,
            ) from exc

        placed = replace(asset, path=destination)
        try:
            relative = self.relative(destination)
        except LibraryLayoutError:
            self.discard(destination)
            raise
        return placed, relative


__all__ = ["LibraryStorage", "client_suffix", "RECEIVE_STAGE", "ADDRESS_STAGE"]
