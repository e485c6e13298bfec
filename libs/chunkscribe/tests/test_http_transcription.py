from __future__ import annotations

import json

import httpx
import pytest

from chunkscribe.exceptions import ProviderError, SubmissionError
from chunkscribe.models.job import JobStatus
from chunkscribe.providers.transcription.http_service import HTTPTranscriptionService


@pytest.mark.asyncio
async def test_submit_posts_job() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, json={"job_id": "job_1"})

    service = HTTPTranscriptionService("http://stt.local/v1/", api_key="k", transport=httpx.MockTransport(handler))
    await service.submit("job_1", "s3://uploads/demo.mp4", "en-US", "captions", ["srt"])
    await service.close()

    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "http://stt.local/v1/jobs"
    assert request.headers["Authorization"] == "Bearer k"
    body = json.loads(request.content)
    assert body == {
        "job_id": "job_1",
        "media_uri": "s3://uploads/demo.mp4",
        "language_code": "en-US",
        "output_bucket": "captions",
        "caption_formats": ["srt"],
    }


@pytest.mark.asyncio
async def test_get_status_maps_service_states() -> None:
    states = {
        "a": {"status": "in_progress"},
        "b": {"status": "completed", "output_uri": "s3://captions/b.srt"},
        "c": {"status": "FAILED", "failure_reason": "no speech"},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=states[request.url.path.rsplit("/", 1)[-1]])

    service = HTTPTranscriptionService("http://stt.local", transport=httpx.MockTransport(handler))

    assert (await service.get_status("a")).status == JobStatus.SUBMITTED
    b = await service.get_status("b")
    assert (b.status, b.output_uri) == (JobStatus.COMPLETED, "s3://captions/b.srt")
    c = await service.get_status("c")
    assert (c.status, c.failure_reason) == (JobStatus.FAILED, "no speech")


@pytest.mark.asyncio
async def test_rate_limit_is_transient_and_bad_request_is_not() -> None:
    responses = [httpx.Response(429, text="slow down"), httpx.Response(400, text="bad language")]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    service = HTTPTranscriptionService("http://stt.local", transport=httpx.MockTransport(handler))

    with pytest.raises(SubmissionError) as first:
        await service.submit("job_1", "s3://u/a.mp4", "en-US", "captions", ["srt"])
    assert first.value.transient
    with pytest.raises(SubmissionError) as second:
        await service.submit("job_1", "s3://u/a.mp4", "xx-XX", "captions", ["srt"])
    assert not second.value.transient


@pytest.mark.asyncio
async def test_connection_errors_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    service = HTTPTranscriptionService("http://stt.local", transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError) as excinfo:
        await service.get_status("job_1")
    assert excinfo.value.transient
