from __future__ import annotations

import pytest

from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.services.job_monitor import JobMonitor
from conftest import FakeTranscriptionService


async def _submitted(service: FakeTranscriptionService, registry, job_id: str, key: str = "demo.mp4") -> TranscriptionJob:
    await service.submit(job_id, f"s3://uploads/{key}", "en-US", "captions", ["srt"])
    job = TranscriptionJob(
        job_id=job_id,
        language="english",
        language_code="en-US",
        source_bucket="uploads",
        source_key=key,
        original_key=key,
        base_name="demo",
        output_bucket="captions",
    )
    await registry.put(job)
    return job


@pytest.mark.asyncio
async def test_poll_records_completion_once(store, registry) -> None:
    service = FakeTranscriptionService(store, complete_after=2)
    monitor = JobMonitor(service, registry)
    job = await _submitted(service, registry, "job_a")

    first = await monitor.poll(job)
    assert first.status == JobStatus.SUBMITTED and not first.changed
    second = await monitor.poll(job)
    assert second.status == JobStatus.COMPLETED and second.changed
    assert second.job.output_uri == "s3://captions/job_a.json"

    # Terminal records are not polled again.
    third = await monitor.poll(job)
    assert third.status == JobStatus.COMPLETED and not third.changed
    assert service.status_calls == ["job_a", "job_a"]
    assert (await registry.require("job_a")).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_await_all_partitions_jobs(store, registry) -> None:
    service = FakeTranscriptionService(store, fail_when=lambda key, lang: key == "bad.mp4")
    monitor = JobMonitor(service, registry)
    good = await _submitted(service, registry, "job_good", "good.mp4")
    bad = await _submitted(service, registry, "job_bad", "bad.mp4")

    result = await monitor.await_all([good, bad])

    assert [j.job_id for j in result.completed] == ["job_good"]
    assert [j.job_id for j in result.failed] == ["job_bad"]
    assert result.failed[0].failure_reason == "unsupported media"
    assert result.any_failed and not result.all_complete


@pytest.mark.asyncio
async def test_await_all_pending_until_every_job_finishes(store, registry) -> None:
    service = FakeTranscriptionService(store, complete_after=2)
    monitor = JobMonitor(service, registry)
    jobs = [await _submitted(service, registry, f"job_{i}") for i in range(3)]

    first = await monitor.await_all(jobs)
    assert len(first.pending) == 3 and not first.all_complete
    second = await monitor.await_all(jobs)
    assert second.all_complete
    assert len(second.completed) == 3
