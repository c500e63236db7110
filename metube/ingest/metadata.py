from __future__ import annotations

import math
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from metube.core.config import Settings
from metube.core.errors import ProbeError
from metube.core.logging import get_logger
from metube.core.storage import LibraryStorage
from metube.db.models import ContainerKind

from .asset_id import RawAsset
from .probe_parser import ProbeSection, find_section, parse_probe_output
from .records import LibraryRecord

PROBE_STAGE = "probing"

# Keyed by the exact ``format_name`` ffprobe reports for each demuxer.
CONTAINER_KINDS: Dict[str, ContainerKind] = {
    "mov,mp4,m4a,3gp,3g2,mj2": ContainerKind.mp4,
    "matroska,webm": ContainerKind.webm,
    "ogg": ContainerKind.ogg,
}

logger = get_logger(component="metadata_extractor")


def _run_ffprobe(target: Path, settings: Settings) -> str:
    command = [
        settings.ffprobe_path,
        "-v",
        "error",
        "-show_format",
        str(target),
    ]
    proc = subprocess.run(
        command,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        timeout=settings.probe_timeout_s,
    )
    # Container tags are not guaranteed to be UTF-8.
    return proc.stdout.decode("utf-8", errors="replace")


def probe_media(target: Path, settings: Settings) -> List[ProbeSection]:
    """Run the probe tool against ``target`` and parse its report.

    Raises:
        ProbeError: If the tool is missing, times out, exits non-zero or prints
            malformed output.
    """
    try:
        raw = _run_ffprobe(target, settings)
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode("utf-8", errors="replace") if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        raise ProbeError(f"ffprobe exited with status {exc.returncode}: {stderr.strip()}") from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"ffprobe did not finish within {exc.timeout}s") from exc
    except OSError as exc:
        raise ProbeError(f"cannot run ffprobe ({settings.ffprobe_path}): {exc}") from exc
    return parse_probe_output(raw)


def container_kind(format_name: Optional[str]) -> ContainerKind:
    if not format_name:
        raise ProbeError("probe report has no format_name")
    try:
        return CONTAINER_KINDS[format_name]
    except KeyError:
        raise ProbeError(f"unsupported container format: {format_name}") from None


def parse_duration(raw_value: Optional[str]) -> timedelta:
    if raw_value in (None, "", "N/A"):
        raise ProbeError("probe report has no duration")
    try:
        seconds = float(raw_value)
    except ValueError:
        raise ProbeError(f"unparsable duration: {raw_value!r}") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise ProbeError(f"invalid duration: {raw_value!r}")
    return timedelta(seconds=seconds)


def _override(supplied: Optional[str], probed: Optional[str]) -> str:
    if supplied and supplied.strip():
        return supplied.strip()
    return probed or ""


def extract_metadata(
    asset: RawAsset,
    relative_path: str,
    storage: LibraryStorage,
    settings: Settings,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> LibraryRecord:
    """Probe a placed library file and build its record.

    Container kind and duration are mandatory. Title, description (``comment``
    tag) and artist (``artist`` or ``author`` tag) fall back to ``""``; a
    non-empty ``title``/``description`` supplied with the upload overrides the
    probed value. On any failure the placed file is deleted before the error
    propagates.
    """
    try:
        sections = probe_media(asset.path, settings)
        fmt = find_section(sections, "FORMAT")
        if fmt is None:
            raise ProbeError("probe report has no [FORMAT] section")
        kind = container_kind(fmt.get("format_name"))
        duration = parse_duration(fmt.get("duration"))
    except ProbeError as exc:
        exc.stage = exc.stage or PROBE_STAGE
        logger.error("metadata_extraction_failed", video_id=asset.video_id, error=str(exc))
        storage.discard(asset.path)
        raise
    except Exception as exc:
        logger.error("metadata_extraction_failed", video_id=asset.video_id, error=repr(exc))
        storage.discard(asset.path)
        raise ProbeError(f"metadata extraction failed: {exc!r}", stage=PROBE_STAGE) from exc

    record = LibraryRecord(
        id=asset.video_id,
        path=relative_path,
        title=_override(title, fmt.tag("title")),
        description=_override(description, fmt.tag("comment", "description")),
        artist=fmt.tag("artist", "author") or "",
        upload_time=datetime.now(timezone.utc),
        container_kind=kind,
        original_filename=asset.original_filename,
        duration=duration,
    )
    logger.info(
        "metadata_extracted",
        video_id=record.id,
        container_kind=kind.value,
        duration_s=duration.total_seconds(),
    )
    return record


__all__ = [
    "CONTAINER_KINDS",
    "PROBE_STAGE",
    "container_kind",
    "extract_metadata",
    "parse_duration",
    "probe_media",
]
