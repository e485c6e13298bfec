"""Workflow services (split, submit, monitor, relocate)."""

from chunkscribe.services.job_manager import TranscriptionJobManager, make_job_id
from chunkscribe.services.job_monitor import AwaitResult, JobMonitor, PollResult
from chunkscribe.services.relocator import CaptionRelocator
from chunkscribe.services.splitter import Splitter

__all__ = [
    "AwaitResult",
    "CaptionRelocator",
    "JobMonitor",
    "PollResult",
    "Splitter",
    "TranscriptionJobManager",
    "make_job_id",
]
