from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from metube.ingest.asset_id import ID_BYTES, RawAsset, compute_sha256, derive_video_id


def test_video_id_is_first_six_digest_bytes_in_hex():
    digest = hashlib.sha256(b"hello").digest()

    video_id = derive_video_id(digest)

    assert video_id == "2cf24dba5fb0"
    assert len(video_id) == 2 * ID_BYTES
    assert bytes.fromhex(video_id) == digest[:ID_BYTES]


def test_video_id_rejects_short_digest():
    with pytest.raises(ValueError):
        derive_video_id(b"\x00" * (ID_BYTES - 1))


def test_raw_asset_exposes_identifier(tmp_path: Path):
    digest = hashlib.sha256(b"payload").digest()
    asset = RawAsset(path=tmp_path / "upload.webm", digest=digest, original_filename="My Clip.webm")

    assert asset.video_id == digest[:ID_BYTES].hex()
    assert asset.hexdigest == digest.hex()


def test_compute_sha256_matches_streamed_digest(tmp_path: Path):
    media = tmp_path / "sample.bin"
    payload = b"0123456789" * 1000
    media.write_bytes(payload)

    assert compute_sha256(media, chunk_size=333) == hashlib.sha256(payload).digest()
