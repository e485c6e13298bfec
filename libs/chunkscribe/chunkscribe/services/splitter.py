"""Split an uploaded media object into fixed-duration segment objects."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path, PurePosixPath

from chunkscribe.exceptions import SplitError
from chunkscribe.models.workflow import SegmentRef, SourceLocation, derive_base_name
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


def segment_key(chunk_prefix: str, base_name: str, index: int, ext: str) -> str:
    prefix = str(chunk_prefix or "").strip("/")
    name = f"{base_name}/chunk_{int(index):03d}{ext}"
    return f"{prefix}/{name}" if prefix else name


class Splitter:
    def __init__(
        self,
        store: ObjectStore,
        tool: MediaSplitterTool,
        *,
        chunk_prefix: str = "chunks",
        scratch_dir: str | None = None,
    ) -> None:
        self.store = store
        self.tool = tool
        self.chunk_prefix = chunk_prefix
        self.scratch_dir = scratch_dir

    async def _delete_uploaded(self, bucket: str, keys: list[str]) -> None:
        for key in keys:
            try:
                await self.store.delete(bucket, key)
            except Exception as exc:
                logger.warning("segment cleanup failed (bucket=%s, key=%s, error=%s)", bucket, key, exc)

    async def split(self, source: SourceLocation, segment_duration_s: int) -> list[SegmentRef]:
        """Return refs for segments 1..N stored next to the source object."""
        base_name = derive_base_name(source.key)
        ext = PurePosixPath(source.key).suffix or ".mp4"

        if self.scratch_dir:
            Path(self.scratch_dir).mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="chunkscribe_split_", dir=self.scratch_dir))
        uploaded: list[str] = []
        try:
            local_input = await self.store.download_file(source.bucket, source.key, workdir / f"input{ext}")
            produced = await self.tool.split(str(local_input), int(segment_duration_s), str(workdir / "out"))
            if not produced:
                raise SplitError(f"splitter produced no segments for {source.key}")

            total = len(produced)
            refs: list[SegmentRef] = []
            for index, path in enumerate(produced, start=1):
                key = segment_key(self.chunk_prefix, base_name, index, ext)
                await self.store.upload_file(path, source.bucket, key)
                uploaded.append(key)
                refs.append(
                    SegmentRef(
                        bucket=source.bucket,
                        key=key,
                        original_key=source.key,
                        base_name=base_name,
                        chunk_index=index,
                        total_chunks=total,
                    )
                )
        except Exception:
            if uploaded:
                await self._delete_uploaded(source.bucket, uploaded)
            raise
        finally:
            await asyncio.to_thread(shutil.rmtree, workdir, True)

        logger.info(
            "media split (bucket=%s, key=%s, segments=%d, segment_s=%s)",
            source.bucket,
            source.key,
            len(refs),
            segment_duration_s,
        )
        return refs
