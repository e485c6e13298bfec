"""Move raw service captions into the per-file output layout and merge chunks.

Layout in the output bucket:

    <base>/<language>.srt                 whole file (direct or merged)
    <base>/chunk_<NNN>/<language>.srt     one chunk of a split file
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

from chunkscribe.exceptions import ArtifactNotFoundError, ValidationError
from chunkscribe.formatters.base import CaptionCodec
from chunkscribe.formatters.srt import SRTCodec
from chunkscribe.models.caption import CaptionTrack
from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.models.workflow import SourceLocation
from chunkscribe.storage.object_store import ObjectStore
from chunkscribe.utils.caption_merger import DEFAULT_GAP_MS, CaptionMerger
from chunkscribe.utils.object_uri import caption_key_for, parse_object_uri

logger = logging.getLogger(__name__)

# Marker objects the speech service drops at the root of its output bucket.
_TEMP_MARKERS = (".write_access_check_file.temp", "temp")


class CaptionRelocator:
    def __init__(
        self,
        store: ObjectStore,
        *,
        output_bucket: str,
        codec: CaptionCodec | None = None,
        gap_ms: int = DEFAULT_GAP_MS,
    ) -> None:
        self.store = store
        self.output_bucket = output_bucket
        self.codec = codec or SRTCodec()
        self.merger = CaptionMerger(gap_ms=gap_ms)

    def output_key(self, base_name: str, language: str, chunk_index: int | None = None) -> str:
        name = f"{language}{self.codec.extension}"
        if chunk_index is None:
            return f"{base_name}/{name}"
        return f"{base_name}/chunk_{int(chunk_index):03d}/{name}"

    async def _search_by_job_id(self, bucket: str, job_id: str) -> SourceLocation | None:
        for key in await self.store.list(bucket, f"{job_id}."):
            if key.endswith(self.codec.extension):
                return SourceLocation(bucket=bucket, key=key)
        return None

    async def locate(self, job: TranscriptionJob) -> SourceLocation:
        """Find the raw caption object a completed job produced."""
        if job.output_uri:
            reported = parse_object_uri(job.output_uri)
            candidate = SourceLocation(
                bucket=reported.bucket,
                key=caption_key_for(reported.key, job.job_id, extension=self.codec.extension),
            )
            bucket = reported.bucket
        else:
            candidate = SourceLocation(bucket=job.output_bucket, key=f"{job.job_id}{self.codec.extension}")
            bucket = job.output_bucket

        if await self.store.exists(candidate.bucket, candidate.key):
            return candidate

        found = await self._search_by_job_id(bucket, job.job_id)
        if found is None:
            raise ArtifactNotFoundError(
                f"no {self.codec.extension} output for job {job.job_id} (looked at {candidate.bucket}/{candidate.key})"
            )
        logger.info("caption output found by search (job_id=%s, key=%s)", job.job_id, found.key)
        return found

    async def relocate(self, job: TranscriptionJob) -> str:
        """Copy a completed job's captions to their final key and return it."""
        if job.status != JobStatus.COMPLETED:
            raise ValidationError(f"job {job.job_id} is {job.status.value}; only completed jobs can be relocated")

        raw = await self.locate(job)
        dest = self.output_key(job.base_name, job.language, job.chunk_index)
        await self.store.copy(raw.bucket, raw.key, self.output_bucket, dest)
        logger.info(
            "captions relocated (job_id=%s, from=%s/%s, to=%s/%s)",
            job.job_id,
            raw.bucket,
            raw.key,
            self.output_bucket,
            dest,
        )
        await self.cleanup(job, raw=raw, keep={(self.output_bucket, dest)})
        return dest

    async def cleanup(
        self,
        job: TranscriptionJob,
        *,
        raw: SourceLocation | None = None,
        keep: set[tuple[str, str]] | None = None,
    ) -> int:
        """Delete the job's `.json`/`.srt` service outputs and temp markers.

        Failures are logged, never raised.
        """
        bucket = raw.bucket if raw is not None else job.output_bucket
        parent = PurePosixPath(raw.key).parent.as_posix() if raw is not None else "."
        prefix = f"{job.job_id}." if parent in {".", ""} else f"{parent}/{job.job_id}."
        keep = keep or set()

        candidates: list[str] = list(_TEMP_MARKERS)
        try:
            candidates.extend(k for k in await self.store.list(bucket, prefix) if k.endswith((".json", ".srt")))
        except Exception as exc:
            logger.warning("caption cleanup list failed (job_id=%s, bucket=%s, error=%s)", job.job_id, bucket, exc)

        deleted = 0
        for key in candidates:
            if (bucket, key) in keep:
                continue
            try:
                await self.store.delete(bucket, key)
                deleted += 1
            except Exception as exc:
                logger.warning("caption cleanup failed (bucket=%s, key=%s, error=%s)", bucket, key, exc)
        logger.debug("caption cleanup done (job_id=%s, attempted=%d)", job.job_id, deleted)
        return deleted

    async def merge_chunks(self, base_name: str, language: str, total_chunks: int) -> str:
        """Merge `<base>/chunk_<i>/<language>` for i in 1..total into `<base>/<language>`."""
        tracks: list[CaptionTrack] = []
        missing: list[int] = []
        for index in range(1, int(total_chunks) + 1):
            key = self.output_key(base_name, language, index)
            try:
                document = await self.store.get_text(self.output_bucket, key)
            except ArtifactNotFoundError:
                missing.append(index)
                continue
            tracks.append(self.codec.parse(document))

        if not tracks:
            raise ArtifactNotFoundError(
                f"no chunk captions found to merge (base={base_name}, language={language}, expected={total_chunks})"
            )
        if missing:
            logger.warning(
                "merging partial chunk set (base=%s, language=%s, found=%d, expected=%d, missing=%s)",
                base_name,
                language,
                len(tracks),
                total_chunks,
                missing,
            )

        merged = self.merger.merge(tracks)
        dest = self.output_key(base_name, language)
        await self.store.put_text(self.output_bucket, dest, self.codec.format(merged))
        logger.info(
            "captions merged (base=%s, language=%s, chunks=%d, cues=%d)",
            base_name,
            language,
            len(tracks),
            len(merged),
        )
        return dest
