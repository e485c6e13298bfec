"""Generic REST transcription job service (httpx).

Protocol:
  POST {base_url}/jobs           {"job_id", "media_uri", "language_code",
                                  "output_bucket", "caption_formats"}
  GET  {base_url}/jobs/{job_id}  -> {"status": "queued|in_progress|completed|failed",
                                     "output_uri": ..., "failure_reason": ...}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import ProviderError, SubmissionError
from chunkscribe.models.job import JobStatus
from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService

logger = logging.getLogger(__name__)


def _is_transient_status(code: int) -> bool:
    return code == 429 or code >= 500


class HTTPTranscriptionService(TranscriptionService):
    name = "http_transcription"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[ProviderError],
        error_code: ErrorCode,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, f"{self.base_url}{path}", json=json)
        except httpx.TransportError as exc:
            raise error_cls(self.name, f"{method} {path}: {exc}", transient=True, error_code=error_code) from exc

        if response.status_code >= 400:
            raise error_cls(
                self.name,
                f"{method} {path}: HTTP {response.status_code} {response.text[:200]}",
                transient=_is_transient_status(response.status_code),
                error_code=error_code,
            )
        if not response.content:
            return {}
        try:
            return dict(response.json())
        except ValueError as exc:
            raise error_cls(self.name, f"{method} {path}: invalid JSON body", error_code=error_code) from exc

    async def submit(
        self,
        job_id: str,
        source_uri: str,
        language_code: str,
        output_bucket: str,
        caption_formats: list[str],
    ) -> None:
        await self._request(
            "POST",
            "/jobs",
            error_cls=SubmissionError,
            error_code=ErrorCode.SUBMISSION_FAILED,
            json={
                "job_id": job_id,
                "media_uri": source_uri,
                "language_code": language_code,
                "output_bucket": output_bucket,
                "caption_formats": list(caption_formats),
            },
        )
        logger.info("transcription job started (job_id=%s, language=%s)", job_id, language_code)

    async def get_status(self, job_id: str) -> JobStatusResult:
        body = await self._request(
            "GET", f"/jobs/{job_id}", error_cls=ProviderError, error_code=ErrorCode.POLL_FAILED
        )
        raw = str(body.get("status") or "").strip().lower()
        if raw == "completed":
            return JobStatusResult(status=JobStatus.COMPLETED, output_uri=body.get("output_uri"))
        if raw == "failed":
            return JobStatusResult(status=JobStatus.FAILED, failure_reason=body.get("failure_reason"))
        return JobStatusResult(status=JobStatus.SUBMITTED)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
