"""Data models."""

from chunkscribe.models.caption import CaptionTrack, Cue
from chunkscribe.models.job import JobStatus, TranscriptionJob
from chunkscribe.models.workflow import (
    BranchRun,
    Route,
    SegmentRef,
    SourceLocation,
    Transition,
    WorkflowExecution,
    WorkflowState,
    derive_base_name,
)

__all__ = [
    "BranchRun",
    "CaptionTrack",
    "Cue",
    "JobStatus",
    "Route",
    "SegmentRef",
    "SourceLocation",
    "TranscriptionJob",
    "Transition",
    "WorkflowExecution",
    "WorkflowState",
    "derive_base_name",
]
