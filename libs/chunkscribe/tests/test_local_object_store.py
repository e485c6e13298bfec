from __future__ import annotations

from pathlib import Path

import pytest

from chunkscribe.exceptions import ArtifactNotFoundError, ValidationError
from chunkscribe.storage.object_store import LocalObjectStore


@pytest.mark.asyncio
async def test_local_store_round_trip(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path))

    uri = await store.put_text("captions", "movie/english.srt", "1\n")
    assert uri.startswith("file://")
    assert (tmp_path / "captions" / "movie" / "english.srt").read_text(encoding="utf-8") == "1\n"
    assert (await store.head("captions", "movie/english.srt")).size == 2
    assert await store.get_text("captions", "movie/english.srt") == "1\n"

    await store.copy("captions", "movie/english.srt", "archive", "movie.srt")
    assert await store.list("archive") == ["movie.srt"]
    assert await store.list("captions", "movie/") == ["movie/english.srt"]

    await store.delete("captions", "movie/english.srt")
    await store.delete("captions", "movie/english.srt")
    assert await store.exists("captions", "movie/english.srt") is False


@pytest.mark.asyncio
async def test_local_store_file_transfer(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path / "objects"))
    src = tmp_path / "chunk.mp4"
    src.write_bytes(b"abc")

    await store.upload_file(src, "uploads", "chunks/a/chunk_001.mp4")
    target = await store.download_file("uploads", "chunks/a/chunk_001.mp4", tmp_path / "dl" / "x.mp4")
    assert target.read_bytes() == b"abc"

    with pytest.raises(ArtifactNotFoundError):
        await store.download_file("uploads", "missing.mp4", tmp_path / "dl" / "y.mp4")
    assert await store.list("nobucket") == []


@pytest.mark.asyncio
async def test_local_store_rejects_escaping_keys(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path))
    with pytest.raises(ValidationError):
        await store.get("captions", "../secret")
    with pytest.raises(ValidationError):
        await store.put("../x", "a", b"")
