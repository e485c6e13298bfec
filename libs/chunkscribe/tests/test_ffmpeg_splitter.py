from __future__ import annotations

from pathlib import Path

import pytest

import chunkscribe.providers.splitter.ffmpeg as ffmpeg_module
from chunkscribe.exceptions import SplitError
from chunkscribe.providers.splitter.ffmpeg import FFmpegSplitterTool
from chunkscribe.utils.ffmpeg import segment_command
from chunkscribe.utils.subprocess import RunResult


def test_segment_command_stream_copies_with_reset_timestamps() -> None:
    args = segment_command("/bin/ffmpeg", "in.mp4", "out/chunk_%03d.mp4", segment_seconds=300)
    assert args[0] == "/bin/ffmpeg"
    assert args[args.index("-i") + 1] == "in.mp4"
    assert args[args.index("-f") + 1] == "segment"
    assert args[args.index("-segment_time") + 1] == "300"
    assert args[args.index("-reset_timestamps") + 1] == "1"
    assert args[args.index("-c") + 1] == "copy"
    assert args[-1] == "out/chunk_%03d.mp4"


@pytest.fixture()
def ffmpeg_bin(tmp_path: Path) -> str:
    path = tmp_path / "ffmpeg"
    path.write_text("#!/bin/sh\n", encoding="utf-8")
    return str(path)


@pytest.mark.asyncio
async def test_split_returns_sorted_segments(monkeypatch, tmp_path: Path, ffmpeg_bin: str) -> None:
    seen: list[list[str]] = []

    async def _fake_run(args, **kwargs):
        seen.append(list(args))
        pattern = args[-1]
        for i in (2, 0, 1):
            Path(pattern % i).write_bytes(b"x")
        return RunResult(returncode=0, stdout=b"", stderr=b"")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _fake_run)
    tool = FFmpegSplitterTool(ffmpeg_bin)
    out_dir = tmp_path / "out"
    (out_dir).mkdir()
    (out_dir / "notes.txt").write_text("ignore me", encoding="utf-8")

    produced = await tool.split(str(tmp_path / "input.mp4"), 300, str(out_dir))

    assert [p.name for p in produced] == ["chunk_000.mp4", "chunk_001.mp4", "chunk_002.mp4"]
    assert seen[0][0] == ffmpeg_bin


@pytest.mark.asyncio
async def test_split_failure_raises_with_stderr(monkeypatch, tmp_path: Path, ffmpeg_bin: str) -> None:
    async def _fake_run(args, **kwargs):
        return RunResult(returncode=1, stdout=b"", stderr=b"Invalid data found when processing input")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _fake_run)

    with pytest.raises(SplitError, match="Invalid data"):
        await FFmpegSplitterTool(ffmpeg_bin).split(str(tmp_path / "in.mp4"), 300, str(tmp_path / "out"))


@pytest.mark.asyncio
async def test_missing_binary_raises_split_error(monkeypatch, tmp_path: Path, ffmpeg_bin: str) -> None:
    async def _fake_run(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _fake_run)

    with pytest.raises(SplitError, match="not found"):
        await FFmpegSplitterTool(ffmpeg_bin).split(str(tmp_path / "in.mp4"), 300, str(tmp_path / "out"))


@pytest.mark.asyncio
async def test_rejects_non_positive_duration(tmp_path: Path, ffmpeg_bin: str) -> None:
    with pytest.raises(ValueError):
        await FFmpegSplitterTool(ffmpeg_bin).split(str(tmp_path / "in.mp4"), 0, str(tmp_path / "out"))
