from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from metube.cli import main


@patch("metube.ingest.metadata._run_ffprobe")
def test_probe_prints_sections(mock_run_ffprobe, tmp_path, capsys, probe_report):
    media = tmp_path / "clip.webm"
    media.write_bytes(b"media")
    mock_run_ffprobe.return_value = probe_report(tags=[("title", "Holiday")])

    main(["probe", "--file", str(media)])

    sections = json.loads(capsys.readouterr().out)
    assert sections[0]["name"] == "FORMAT"
    assert sections[0]["fields"]["TAG:title"] == "Holiday"


def test_probe_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["probe", "--file", str(tmp_path / "absent.webm")])
    assert excinfo.value.code == 2


@patch("metube.ingest.thumbnails._run_ffmpeg")
@patch("metube.ingest.metadata._run_ffprobe")
def test_ingest_copies_file_into_library(mock_run_ffprobe, mock_run_ffmpeg, tmp_path, settings, probe_report, fake_ffmpeg):
    media = tmp_path / "clip.webm"
    media.write_bytes(b"cli payload")
    mock_run_ffprobe.return_value = probe_report()
    mock_run_ffmpeg.side_effect = fake_ffmpeg

    main(["ingest", "--file", str(media), "--title", "From CLI"])

    assert media.exists()
    stored = sorted(path.name for path in settings.library_path.iterdir() if path.is_file())
    assert len(stored) == 2
    assert any(name.endswith(".webm") for name in stored)


@patch("metube.ingest.metadata._run_ffprobe")
def test_ingest_abort_exits_non_zero(mock_run_ffprobe, tmp_path, probe_report):
    media = tmp_path / "clip.avi"
    media.write_bytes(b"cli payload")
    mock_run_ffprobe.return_value = probe_report(format_name="avi")

    with pytest.raises(SystemExit) as excinfo:
        main(["ingest", "--file", str(media)])
    assert excinfo.value.code == 1
