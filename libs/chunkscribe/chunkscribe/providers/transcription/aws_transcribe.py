"""Amazon Transcribe job service (boto3)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import ProviderError, SubmissionError
from chunkscribe.models.job import JobStatus
from chunkscribe.providers.transcription.base import JobStatusResult, TranscriptionService

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_CODES = {
    "ThrottlingException",
    "LimitExceededException",
    "InternalFailureException",
    "ServiceUnavailableException",
    "RequestTimeout",
}

_STATUS_MAP = {
    "COMPLETED": JobStatus.COMPLETED,
    "FAILED": JobStatus.FAILED,
}


def _pick_output_uri(job: dict[str, Any]) -> str | None:
    subtitles = dict(job.get("Subtitles") or {})
    uris = [str(u) for u in list(subtitles.get("SubtitleFileUris") or []) if u]
    for uri in uris:
        if uri.lower().endswith(".srt"):
            return uri
    if uris:
        return uris[0]
    transcript = dict(job.get("Transcript") or {})
    uri = transcript.get("TranscriptFileUri")
    return str(uri) if uri else None


class AWSTranscribeService(TranscriptionService):
    name = "aws_transcribe"

    def __init__(
        self,
        *,
        region: str | None = None,
        show_speaker_labels: bool = False,
        client: Any | None = None,
    ) -> None:
        self.region = region
        self.show_speaker_labels = bool(show_speaker_labels)
        self._client: Any | None = client

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client

        import boto3

        self._client = boto3.client("transcribe", region_name=self.region)
        return self._client

    async def _call(
        self,
        what: str,
        fn: Callable[[], T],
        *,
        error_cls: type[ProviderError] = ProviderError,
        error_code: ErrorCode,
    ) -> T:
        try:
            return await asyncio.to_thread(fn)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", "") or "")
            status = int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0)
            transient = code in _TRANSIENT_CODES or status >= 500
            raise error_cls(
                self.name, f"{what}: {code or exc}", transient=transient, error_code=error_code
            ) from exc
        except BotoCoreError as exc:
            raise error_cls(self.name, f"{what}: {exc}", transient=True, error_code=error_code) from exc

    async def submit(
        self,
        job_id: str,
        source_uri: str,
        language_code: str,
        output_bucket: str,
        caption_formats: list[str],
    ) -> None:
        client = self._ensure_client()
        params: dict[str, Any] = {
            "TranscriptionJobName": job_id,
            "LanguageCode": language_code,
            "Media": {"MediaFileUri": source_uri},
            "OutputBucketName": output_bucket,
            "Subtitles": {"Formats": list(caption_formats), "OutputStartIndex": 1},
            "Settings": {"ShowSpeakerLabels": self.show_speaker_labels},
        }

        def _start() -> None:
            client.start_transcription_job(**params)

        await self._call(
            f"start {job_id}", _start, error_cls=SubmissionError, error_code=ErrorCode.SUBMISSION_FAILED
        )
        logger.info(
            "transcription job started (job_id=%s, language=%s, media=%s)",
            job_id,
            language_code,
            source_uri,
        )

    async def get_status(self, job_id: str) -> JobStatusResult:
        client = self._ensure_client()

        def _get() -> dict[str, Any]:
            return dict(client.get_transcription_job(TranscriptionJobName=job_id))

        resp = await self._call(f"get {job_id}", _get, error_code=ErrorCode.POLL_FAILED)
        job = dict(resp.get("TranscriptionJob") or {})
        raw_status = str(job.get("TranscriptionJobStatus") or "").upper()
        status = _STATUS_MAP.get(raw_status, JobStatus.SUBMITTED)
        if status == JobStatus.COMPLETED:
            return JobStatusResult(status=status, output_uri=_pick_output_uri(job))
        if status == JobStatus.FAILED:
            return JobStatusResult(status=status, failure_reason=str(job.get("FailureReason") or "") or None)
        return JobStatusResult(status=status)
