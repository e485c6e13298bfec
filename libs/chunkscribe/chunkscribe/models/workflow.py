"""Workflow execution model (one instance per uploaded file)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import quote, unquote_plus
from uuid import uuid4

from chunkscribe.exceptions import ValidationError


class Route(str, Enum):
    DIRECT = "direct"
    SPLIT = "split"


class WorkflowState(str, Enum):
    CHECK_SIZE = "check_size"
    SPLIT_MEDIA = "split_media"
    FAN_OUT_SEGMENTS = "fan_out_segments"
    SUBMIT_JOBS = "submit_jobs"
    POLL_LOOP = "poll_loop"
    WAIT = "wait"
    RELOCATE = "relocate"
    BRANCH_DONE = "branch_done"
    MERGE_CAPTIONS = "merge_captions"
    SUCCESS = "success"
    FAIL = "fail"

    @property
    def is_terminal(self) -> bool:
        return self in {WorkflowState.SUCCESS, WorkflowState.FAIL}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dt_to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _dt_from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def derive_base_name(key: str) -> str:
    """`videos/movie.mp4` -> `movie`."""
    name = PurePosixPath(str(key or "").strip()).name
    stem = PurePosixPath(name).stem
    return stem or name


@dataclass(frozen=True)
class SourceLocation:
    bucket: str
    key: str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{quote(self.key, safe='/')}"

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "SourceLocation":
        """Extract (bucket, key) from an upload notification.

        Accepts an S3 event notification (`Records[0].s3`) or a plain
        `{"bucket": ..., "key": ...}` mapping.
        """
        if not isinstance(event, dict):
            raise ValidationError("upload event must be a mapping")

        records = event.get("Records")
        if records is not None:
            if not isinstance(records, list) or not records:
                raise ValidationError("No S3 record found in event")
            s3 = dict((records[0] or {}).get("s3") or {})
            bucket = str((s3.get("bucket") or {}).get("name") or "").strip()
            raw_key = str((s3.get("object") or {}).get("key") or "")
            key = unquote_plus(raw_key)
        else:
            bucket = str(event.get("bucket") or "").strip()
            key = str(event.get("key") or "")

        if not bucket:
            raise ValidationError("Missing required field: bucket")
        if not key.strip():
            raise ValidationError("Missing required field: key")
        return cls(bucket=bucket, key=key)


@dataclass(frozen=True)
class SegmentRef:
    """One unit of transcription work (a chunk, or the whole file)."""

    bucket: str
    key: str
    original_key: str
    base_name: str
    chunk_index: int | None = None
    total_chunks: int = 1

    @property
    def source(self) -> SourceLocation:
        return SourceLocation(bucket=self.bucket, key=self.key)

    @property
    def label(self) -> str:
        if self.chunk_index is None:
            return self.base_name
        return f"{self.base_name}#chunk_{self.chunk_index:03d}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "original_key": self.original_key,
            "base_name": self.base_name,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SegmentRef":
        chunk_index = data.get("chunk_index")
        return cls(
            bucket=str(data["bucket"]),
            key=str(data["key"]),
            original_key=str(data.get("original_key") or data["key"]),
            base_name=str(data.get("base_name") or derive_base_name(str(data["key"]))),
            chunk_index=int(chunk_index) if chunk_index is not None else None,
            total_chunks=int(data.get("total_chunks") or 1),
        )


@dataclass
class BranchRun:
    """Progress of one segment through submit -> poll -> relocate."""

    segment: SegmentRef
    state: WorkflowState = WorkflowState.SUBMIT_JOBS
    job_ids: dict[str, str] = field(default_factory=dict)
    polls: int = 0
    outputs: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "segment": self.segment.to_dict(),
            "state": self.state.value,
            "job_ids": dict(self.job_ids),
            "polls": self.polls,
            "outputs": dict(self.outputs),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BranchRun":
        return cls(
            segment=SegmentRef.from_dict(dict(data["segment"])),
            state=WorkflowState(str(data.get("state") or WorkflowState.SUBMIT_JOBS.value)),
            job_ids={str(k): str(v) for k, v in dict(data.get("job_ids") or {}).items()},
            polls=int(data.get("polls") or 0),
            outputs={str(k): str(v) for k, v in dict(data.get("outputs") or {}).items()},
            error=data.get("error"),
        )


@dataclass
class Transition:
    state: WorkflowState
    at: datetime = field(default_factory=_utcnow)
    segment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state.value, "at": _dt_to_iso(self.at), "segment": self.segment}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transition":
        return cls(
            state=WorkflowState(str(data["state"])),
            at=_dt_from_iso(data.get("at")) or _utcnow(),
            segment=data.get("segment"),
        )


@dataclass
class WorkflowExecution:
    source: SourceLocation
    id: str = field(default_factory=lambda: f"exec_{uuid4().hex}")
    base_name: str = ""
    size_bytes: int | None = None
    route: Route | None = None
    segments: list[SegmentRef] = field(default_factory=list)
    branches: list[BranchRun] = field(default_factory=list)
    state: WorkflowState = WorkflowState.CHECK_SIZE
    error_code: str | None = None
    error_message: str | None = None
    outputs: dict[str, str] = field(default_factory=dict)
    transitions: list[Transition] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.base_name:
            self.base_name = derive_base_name(self.source.key)

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "WorkflowExecution":
        return cls(source=SourceLocation.from_event(event))

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": {"bucket": self.source.bucket, "key": self.source.key},
            "base_name": self.base_name,
            "size_bytes": self.size_bytes,
            "route": self.route.value if self.route is not None else None,
            "segments": [s.to_dict() for s in self.segments],
            "branches": [b.to_dict() for b in self.branches],
            "state": self.state.value,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "outputs": dict(self.outputs),
            "transitions": [t.to_dict() for t in self.transitions],
            "created_at": _dt_to_iso(self.created_at),
            "updated_at": _dt_to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowExecution":
        source = dict(data["source"])
        route = data.get("route")
        size = data.get("size_bytes")
        return cls(
            id=str(data["id"]),
            source=SourceLocation(bucket=str(source["bucket"]), key=str(source["key"])),
            base_name=str(data.get("base_name") or ""),
            size_bytes=int(size) if size is not None else None,
            route=Route(str(route)) if route else None,
            segments=[SegmentRef.from_dict(dict(s)) for s in list(data.get("segments") or [])],
            branches=[BranchRun.from_dict(dict(b)) for b in list(data.get("branches") or [])],
            state=WorkflowState(str(data.get("state") or WorkflowState.CHECK_SIZE.value)),
            error_code=data.get("error_code"),
            error_message=data.get("error_message"),
            outputs={str(k): str(v) for k, v in dict(data.get("outputs") or {}).items()},
            transitions=[Transition.from_dict(dict(t)) for t in list(data.get("transitions") or [])],
            created_at=_dt_from_iso(data.get("created_at")) or _utcnow(),
            updated_at=_dt_from_iso(data.get("updated_at")) or _utcnow(),
        )
