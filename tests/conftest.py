import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from metube.core.config import get_settings
from metube.core.db import create_engine, create_session_factory, init_schema
from metube.core.storage import LibraryStorage
from metube.db.models import ContainerKind
from metube.ingest.records import LibraryRecord
from metube.main import create_app
from metube.services.ingest_service import IngestPipeline
from metube.services.video_index import VideoIndex


@pytest.fixture(autouse=True)
def configure_environment(monkeypatch, tmp_path):
    db_path = tmp_path / "metube_test.db"
    library_root = tmp_path / "library"

    monkeypatch.setenv("METUBE_ENVIRONMENT", "test")
    monkeypatch.setenv("METUBE_LOG_LEVEL", "debug")
    monkeypatch.setenv("METUBE_LOG_FORMAT", "console")
    monkeypatch.setenv("METUBE_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("METUBE_LIBRARY_ROOT", str(library_root))
    for alias in ("METUBE_ENV", "METUBE_DB_URL", "METUBE_LIBRARY"):
        monkeypatch.delenv(alias, raising=False)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(configure_environment):
    return get_settings()


@pytest.fixture()
def storage(settings) -> LibraryStorage:
    return LibraryStorage.from_settings(settings)


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def _run_against_index(settings, scenario, wrap):
    async def _runner():
        engine = create_engine(settings)
        try:
            await init_schema(engine)
            index = VideoIndex(create_session_factory(engine))
            return await scenario(wrap(index))
        finally:
            await engine.dispose()

    return asyncio.run(_runner())


@pytest.fixture()
def run_with_index(settings):
    """Run ``async def scenario(index)`` against a fresh index in one event loop."""

    def _run(scenario):
        return _run_against_index(settings, scenario, lambda index: index)

    return _run


@pytest.fixture()
def run_with_pipeline(settings, storage):
    """Run ``async def scenario(pipeline)`` with a pipeline over the test library."""

    def _run(scenario):
        return _run_against_index(settings, scenario, lambda index: IngestPipeline(settings, storage, index))

    return _run


@pytest.fixture()
def byte_stream():
    def _stream(*chunks: bytes):
        async def _gen():
            for chunk in chunks:
                yield chunk

        return _gen()

    return _stream


@pytest.fixture()
def probe_report():
    """Build ``ffprobe -show_format`` output for a single FORMAT section."""

    def _report(format_name="matroska,webm", duration="12.500000", tags=()):
        lines = ["[FORMAT]", "filename=/library/clip", "nb_streams=2", f"format_name={format_name}"]
        if duration is not None:
            lines.append(f"duration={duration}")
        lines.extend(f"TAG:{key}={value}" for key, value in tags)
        lines.append("[/FORMAT]")
        return "\n".join(lines) + "\n"

    return _report


@pytest.fixture()
def make_record():
    def _make(video_id="0123456789ab", *, suffix=".webm", duration_s=12.0, **overrides) -> LibraryRecord:
        values = dict(
            id=video_id,
            path=f"{video_id}{suffix}",
            title="Holiday",
            description="",
            artist="",
            upload_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            container_kind=ContainerKind.webm,
            original_filename=f"clip{suffix}",
            duration=timedelta(seconds=duration_s),
        )
        values.update(overrides)
        return LibraryRecord(**values)

    return _make


def write_fake_thumbnail(command, timeout_s):
    """Stand-in for the ffmpeg runner: writes a small file at the output path."""
    Path(command[-1]).write_bytes(b"RIFF\x1a\x00\x00\x00WEBPVP8 ")


@pytest.fixture()
def fake_ffmpeg():
    return write_fake_thumbnail
