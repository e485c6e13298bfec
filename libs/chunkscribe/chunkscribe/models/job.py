"""Transcription job records (persisted in the job registry)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dt_to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _dt_from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class TranscriptionJob:
    job_id: str
    language: str
    language_code: str
    source_bucket: str
    source_key: str
    original_key: str
    base_name: str
    output_bucket: str
    chunk_index: int | None = None
    total_chunks: int = 1
    status: JobStatus = JobStatus.SUBMITTED
    output_uri: str | None = None
    failure_reason: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def with_status(
        self,
        status: JobStatus,
        *,
        output_uri: str | None = None,
        failure_reason: str | None = None,
    ) -> "TranscriptionJob":
        return replace(
            self,
            status=status,
            output_uri=output_uri if output_uri is not None else self.output_uri,
            failure_reason=failure_reason if failure_reason is not None else self.failure_reason,
            updated_at=_utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "language": self.language,
            "language_code": self.language_code,
            "source_bucket": self.source_bucket,
            "source_key": self.source_key,
            "original_key": self.original_key,
            "base_name": self.base_name,
            "output_bucket": self.output_bucket,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "status": self.status.value,
            "output_uri": self.output_uri,
            "failure_reason": self.failure_reason,
            "created_at": _dt_to_iso(self.created_at),
            "updated_at": _dt_to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptionJob":
        chunk_index = data.get("chunk_index")
        return cls(
            job_id=str(data["job_id"]),
            language=str(data["language"]),
            language_code=str(data.get("language_code") or ""),
            source_bucket=str(data.get("source_bucket") or ""),
            source_key=str(data.get("source_key") or ""),
            original_key=str(data.get("original_key") or ""),
            base_name=str(data.get("base_name") or ""),
            output_bucket=str(data.get("output_bucket") or ""),
            chunk_index=int(chunk_index) if chunk_index is not None else None,
            total_chunks=int(data.get("total_chunks") or 1),
            status=JobStatus(str(data.get("status") or JobStatus.SUBMITTED.value)),
            output_uri=data.get("output_uri"),
            failure_reason=data.get("failure_reason"),
            created_at=_dt_from_iso(data.get("created_at")) or _utcnow(),
            updated_at=_dt_from_iso(data.get("updated_at")) or _utcnow(),
        )
