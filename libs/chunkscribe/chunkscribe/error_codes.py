"""Canonical error codes attached to failed workflow executions."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_INPUT = "INVALID_INPUT"

    CHECK_SIZE_FAILED = "CHECK_SIZE_FAILED"
    SPLIT_FAILED = "SPLIT_FAILED"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    POLL_FAILED = "POLL_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    RELOCATE_FAILED = "RELOCATE_FAILED"
    MERGE_FAILED = "MERGE_FAILED"
    TIMEOUT = "TIMEOUT"
