from __future__ import annotations

import subprocess
from dataclasses import replace
from pathlib import Path
from typing import List

from metube.core.config import Settings
from metube.core.logging import get_logger
from metube.core.storage import LibraryStorage

from .records import LibraryRecord

THUMBNAIL_STAGE = "thumbnailing"
FIXED_OFFSET_S = 10.0
FIXED_OFFSET_MIN_DURATION_S = 30.0

logger = get_logger(component="thumbnail_generator")


def capture_offset(duration_s: float) -> float:
    """Seconds into the video at which the preview frame is taken.

    Videos longer than 30 seconds use a fixed 10 second offset; anything up to
    and including 30 seconds uses one third of its duration.
    """
    if duration_s > FIXED_OFFSET_MIN_DURATION_S:
        return FIXED_OFFSET_S
    return max(duration_s, 0.0) / 3.0


def build_ffmpeg_command(media_path: Path, output_path: Path, offset_s: float, settings: Settings) -> List[str]:
    edge = settings.thumbnail_max_edge_px
    scale = f"scale=w='min({edge},iw)':h='min({edge},ih)':force_original_aspect_ratio=decrease"
    return [
        settings.ffmpeg_path,
        "-nostdin",
        "-v",
        "error",
        "-ss",
        f"{offset_s:.3f}",
        "-i",
        str(media_path),
        "-frames:v",
        "1",
        "-vf",
        scale,
        "-c:v",
        "libwebp",
        "-quality",
        str(settings.thumbnail_quality),
        "-n",
        str(output_path),
    ]


def _run_ffmpeg(command: List[str], timeout_s: float) -> None:
    subprocess.run(command, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout_s)


def render_thumbnail(record: LibraryRecord, storage: LibraryStorage, settings: Settings) -> LibraryRecord:
    """Capture one preview frame next to the media file.

    Never raises: on any failure the record comes back unchanged, without a
    ``thumbnail_path``, and no partial image is left behind.
    """
    media_path = storage.absolute(record.path)
    output_path = storage.absolute(record.expected_thumbnail_path)
    log = logger.bind(video_id=record.id, stage=THUMBNAIL_STAGE)

    if output_path == media_path or output_path.exists():
        # Not ours to overwrite.
        log.warning("thumbnail_target_occupied", path=str(output_path))
        return record

    offset = capture_offset(record.duration.total_seconds())
    command = build_ffmpeg_command(media_path, output_path, offset, settings)
    try:
        _run_ffmpeg(command, settings.thumbnail_timeout_s)
        if output_path.stat().st_size == 0:
            raise OSError("ffmpeg produced an empty thumbnail")
    except Exception as exc:  # tool missing, non-zero exit, timeout, empty output
        log.warning("thumbnail_generation_failed", offset_s=offset, error=str(exc))
        storage.discard(output_path)
        return record

    log.info("thumbnail_generated", offset_s=offset, path=record.expected_thumbnail_path)
    return replace(record, thumbnail_path=record.expected_thumbnail_path)


__all__ = ["THUMBNAIL_STAGE", "build_ffmpeg_command", "capture_offset", "render_thumbnail"]
