from __future__ import annotations

import hashlib
import subprocess
from datetime import timedelta, timezone
from unittest.mock import patch

import pytest

from metube.core.errors import ProbeError
from metube.db.models import ContainerKind
from metube.ingest.asset_id import RawAsset
from metube.ingest.metadata import container_kind, extract_metadata, parse_duration


@pytest.fixture()
def placed(storage):
    digest = hashlib.sha256(b"library bytes").digest()
    path = storage.library_root / f"{digest[:6].hex()}.webm"
    path.write_bytes(b"library bytes")
    return RawAsset(path=path, digest=digest, original_filename="Holiday Clip.webm")


def _extract(placed, storage, settings, **overrides):
    return extract_metadata(placed, placed.path.name, storage, settings, **overrides)


@patch("metube.ingest.metadata._run_ffprobe")
def test_extract_webm_with_tags(mock_run_ffprobe, placed, storage, settings, probe_report):
    mock_run_ffprobe.return_value = probe_report(
        tags=[("TITLE", "Holiday"), ("Comment", "Beach day"), ("ARTIST", "Sam")],
    )

    record = _extract(placed, storage, settings)

    assert record.id == placed.video_id
    assert record.path == placed.path.name
    assert record.container_kind is ContainerKind.webm
    assert record.duration == timedelta(seconds=12.5)
    assert record.title == "Holiday"
    assert record.description == "Beach day"
    assert record.artist == "Sam"
    assert record.original_filename == "Holiday Clip.webm"
    assert record.upload_time.tzinfo == timezone.utc
    assert record.view_count == 0
    assert record.thumbnail_path is None
    assert placed.path.exists()
    mock_run_ffprobe.assert_called_once_with(placed.path, settings)


@patch("metube.ingest.metadata._run_ffprobe")
def test_extract_mp4_falls_back_to_author(mock_run_ffprobe, placed, storage, settings, probe_report):
    mock_run_ffprobe.return_value = probe_report(
        format_name="mov,mp4,m4a,3gp,3g2,mj2",
        duration="95.000000",
        tags=[("author", "Studio")],
    )

    record = _extract(placed, storage, settings)

    assert record.container_kind is ContainerKind.mp4
    assert record.artist == "Studio"
    assert record.title == ""
    assert record.description == ""


@patch("metube.ingest.metadata._run_ffprobe")
def test_supplied_fields_override_probed_tags(mock_run_ffprobe, placed, storage, settings, probe_report):
    mock_run_ffprobe.return_value = probe_report(format_name="ogg", tags=[("title", "Embedded"), ("comment", "Kept")])

    record = _extract(placed, storage, settings, title=" Given ", description="   ")

    assert record.container_kind is ContainerKind.ogg
    assert record.title == "Given"
    assert record.description == "Kept"


@pytest.mark.parametrize(
    "report_args",
    [
        {"format_name": "avi"},
        {"format_name": "matroska"},
        {"duration": None},
        {"duration": "N/A"},
        {"duration": "-1.0"},
    ],
    ids=["unknown-format", "partial-format-name", "no-duration", "na-duration", "negative-duration"],
)
@patch("metube.ingest.metadata._run_ffprobe")
def test_unusable_report_deletes_file(mock_run_ffprobe, report_args, placed, storage, settings, probe_report):
    mock_run_ffprobe.return_value = probe_report(**report_args)

    with pytest.raises(ProbeError) as excinfo:
        _extract(placed, storage, settings)

    assert excinfo.value.stage == "probing"
    assert not placed.path.exists()


@patch("metube.ingest.metadata._run_ffprobe")
def test_truncated_report_deletes_file(mock_run_ffprobe, placed, storage, settings):
    mock_run_ffprobe.return_value = "[FORMAT]\nformat_name=ogg\n"

    with pytest.raises(ProbeError):
        _extract(placed, storage, settings)

    assert not placed.path.exists()


@patch("metube.ingest.metadata._run_ffprobe")
def test_report_without_format_section(mock_run_ffprobe, placed, storage, settings):
    mock_run_ffprobe.return_value = "[STREAM]\nindex=0\n[/STREAM]\n"

    with pytest.raises(ProbeError, match="FORMAT"):
        _extract(placed, storage, settings)

    assert not placed.path.exists()


@pytest.mark.parametrize(
    "failure",
    [
        subprocess.CalledProcessError(1, ["ffprobe"], output="", stderr="Invalid data found"),
        subprocess.TimeoutExpired(["ffprobe"], 60),
        FileNotFoundError("ffprobe"),
    ],
    ids=["non-zero-exit", "timeout", "missing-tool"],
)
@patch("metube.ingest.metadata._run_ffprobe")
def test_tool_failure_deletes_file(mock_run_ffprobe, failure, placed, storage, settings):
    mock_run_ffprobe.side_effect = failure

    with pytest.raises(ProbeError):
        _extract(placed, storage, settings)

    assert not placed.path.exists()


@pytest.mark.parametrize(
    "raw, seconds",
    [("12.480000", 12.48), ("0", 0.0), ("3600.5", 3600.5)],
)
def test_parse_duration(raw, seconds):
    assert parse_duration(raw) == timedelta(seconds=seconds)


@pytest.mark.parametrize("raw", [None, "", "N/A", "abc", "nan", "inf"])
def test_parse_duration_rejects(raw):
    with pytest.raises(ProbeError):
        parse_duration(raw)


def test_container_kind_requires_exact_format_name():
    assert container_kind("matroska,webm") is ContainerKind.webm
    with pytest.raises(ProbeError):
        container_kind("webm")
    with pytest.raises(ProbeError):
        container_kind(None)


def test_undecodable_tag_bytes_are_replaced(placed, storage, settings):
    stdout = b"[FORMAT]\nformat_name=matroska,webm\nduration=4.000000\nTAG:title=caf\xe9\n[/FORMAT]\n"
    completed = subprocess.CompletedProcess(args=["ffprobe"], returncode=0, stdout=stdout, stderr=b"")

    with patch("metube.ingest.metadata.subprocess.run", return_value=completed) as mock_run:
        record = _extract(placed, storage, settings)

    assert record.title == "caf\ufffd"
    assert record.duration == timedelta(seconds=4)
    assert placed.path.exists()
    assert mock_run.call_args.kwargs["timeout"] == settings.probe_timeout_s


@patch("metube.ingest.metadata._run_ffprobe")
def test_unexpected_failure_deletes_file(mock_run_ffprobe, placed, storage, settings):
    mock_run_ffprobe.side_effect = RuntimeError("worker crashed")

    with pytest.raises(ProbeError) as excinfo:
        _extract(placed, storage, settings)

    assert excinfo.value.stage == "probing"
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert not placed.path.exists()
