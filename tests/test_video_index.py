from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from metube.core.errors import DuplicateVideoError, VideoNotFoundError


def test_insert_and_get(run_with_index, make_record):
    record = make_record(view_count=7, thumbnail_path="0123456789ab.webp", artist="Sam")

    async def scenario(index):
        await index.insert(record)
        return await index.get(record.id)

    stored = run_with_index(scenario)

    assert stored.id == record.id
    assert stored.path == record.path
    assert stored.artist == "Sam"
    assert stored.duration == record.duration
    assert stored.thumbnail_path == "0123456789ab.webp"
    assert stored.view_count == 0
    assert stored.upload_time == record.upload_time
    assert stored.upload_time.tzinfo is not None


def test_get_unknown_returns_none(run_with_index):
    async def scenario(index):
        return await index.get("ffffffffffff")

    assert run_with_index(scenario) is None


def test_duplicate_identifier_is_rejected(run_with_index, make_record):
    first = make_record()
    second = make_record(suffix=".mp4")

    async def scenario(index):
        await index.insert(first)
        with pytest.raises(DuplicateVideoError) as excinfo:
            await index.insert(second)
        return excinfo.value, await index.get(first.id)

    error, stored = run_with_index(scenario)

    assert error.stage == "committing"
    assert stored.path == first.path


def test_increment_view_count(run_with_index, make_record):
    record = make_record()

    async def scenario(index):
        await index.insert(record)
        return [await index.increment_view_count(record.id) for _ in range(3)]

    assert run_with_index(scenario) == [1, 2, 3]


def test_increment_unknown_video(run_with_index):
    async def scenario(index):
        with pytest.raises(VideoNotFoundError):
            await index.increment_view_count("ffffffffffff")

    run_with_index(scenario)


def test_list_videos_newest_first(run_with_index, make_record):
    start = datetime(2026, 3, 1, tzinfo=timezone.utc)
    records = [
        make_record(f"00000000000{n}", upload_time=start + timedelta(minutes=n))
        for n in range(3)
    ]

    async def scenario(index):
        for record in records:
            await index.insert(record)
        first_page = await index.list_videos(start=0, count=2)
        second_page = await index.list_videos(start=2, count=10)
        return [r.id for r in first_page], [r.id for r in second_page]

    first_page, second_page = run_with_index(scenario)

    assert first_page == ["000000000002", "000000000001"]
    assert second_page == ["000000000000"]
