"""Per-file workflow state machine (size check, split, fan-out, merge)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar

from chunkscribe.config import RetryPolicy, WorkflowConfig
from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import (
    ArtifactNotFoundError,
    JobFailedError,
    ProviderError,
    StageExecutionError,
    ValidationError,
)
from chunkscribe.models.job import TranscriptionJob
from chunkscribe.models.workflow import (
    BranchRun,
    Route,
    SegmentRef,
    Transition,
    WorkflowExecution,
    WorkflowState,
)
from chunkscribe.pipeline.concurrency import FanOutLimiter
from chunkscribe.pipeline.retry import SleepFn, run_with_retry
from chunkscribe.pipeline.routing import classify
from chunkscribe.repositories.job_registry import JobRegistry
from chunkscribe.services.job_manager import TranscriptionJobManager
from chunkscribe.services.job_monitor import AwaitResult, JobMonitor
from chunkscribe.services.relocator import CaptionRelocator
from chunkscribe.services.splitter import Splitter
from chunkscribe.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ExecutionUpdateHook = Callable[[WorkflowExecution], Awaitable[None]]

_BRANCH_STATES = {
    WorkflowState.SUBMIT_JOBS,
    WorkflowState.POLL_LOOP,
    WorkflowState.WAIT,
    WorkflowState.RELOCATE,
}

_STATE_ERROR_CODES: dict[WorkflowState, ErrorCode] = {
    WorkflowState.CHECK_SIZE: ErrorCode.CHECK_SIZE_FAILED,
    WorkflowState.SPLIT_MEDIA: ErrorCode.SPLIT_FAILED,
    WorkflowState.SUBMIT_JOBS: ErrorCode.SUBMISSION_FAILED,
    WorkflowState.POLL_LOOP: ErrorCode.POLL_FAILED,
    WorkflowState.WAIT: ErrorCode.POLL_FAILED,
    WorkflowState.RELOCATE: ErrorCode.RELOCATE_FAILED,
    WorkflowState.MERGE_CAPTIONS: ErrorCode.MERGE_FAILED,
}


def _code_value(code: ErrorCode | str) -> str:
    return code.value if isinstance(code, ErrorCode) else str(code)


class Orchestrator:
    """Drives one `WorkflowExecution` per uploaded file.

    `step()` performs exactly one top-level transition, so an execution can be
    persisted between steps and resumed by another process. Fan-out runs all
    segment branches inside a single `fan_out_segments` step.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        splitter: Splitter,
        job_manager: TranscriptionJobManager,
        monitor: JobMonitor,
        relocator: CaptionRelocator,
        registry: JobRegistry,
        config: WorkflowConfig,
        languages: Mapping[str, str],
        on_update: ExecutionUpdateHook | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        if not languages:
            raise ValueError("at least one language is required")
        self.store = store
        self.splitter = splitter
        self.job_manager = job_manager
        self.monitor = monitor
        self.relocator = relocator
        self.registry = registry
        self.config = config
        self.languages = dict(languages)
        self._on_update = on_update
        self._sleep = sleep or asyncio.sleep
        self.fan_out_peak = 0

    async def _notify_update(self, execution: WorkflowExecution) -> None:
        if self._on_update is not None:
            await self._on_update(execution)

    @staticmethod
    def _infer_error_code(state: WorkflowState, exc: BaseException) -> str:
        if isinstance(exc, StageExecutionError) and exc.error_code is not None:
            return _code_value(exc.error_code)
        if isinstance(exc, JobFailedError):
            return ErrorCode.TRANSCRIPTION_FAILED.value
        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return ErrorCode.TIMEOUT.value
        if state == WorkflowState.CHECK_SIZE and isinstance(exc, (ValidationError, ArtifactNotFoundError)):
            return ErrorCode.INVALID_INPUT.value
        if isinstance(exc, ProviderError) and exc.error_code is not None:
            return _code_value(exc.error_code)
        code = _STATE_ERROR_CODES.get(state)
        return code.value if code is not None else ErrorCode.UNKNOWN.value

    @staticmethod
    def _infer_error_message(exc: BaseException) -> str:
        if isinstance(exc, (StageExecutionError, ProviderError)):
            return str(exc.message or "")
        return str(exc) or type(exc).__name__

    @staticmethod
    def _record(
        execution: WorkflowExecution,
        state: WorkflowState,
        *,
        segment: str | None = None,
    ) -> None:
        now = datetime.now(tz=timezone.utc)
        execution.transitions.append(Transition(state=state, at=now, segment=segment))
        execution.updated_at = now

    def _transition(self, execution: WorkflowExecution, state: WorkflowState) -> None:
        logger.info(
            "execution transition (execution_id=%s, from=%s, to=%s)",
            execution.id,
            execution.state.value,
            state.value,
        )
        execution.state = state
        self._record(execution, state)

    async def _retry(
        self,
        execution: WorkflowExecution,
        step: str,
        fn: Callable[[], Awaitable[T]],
        *,
        policy: RetryPolicy | None = None,
    ) -> T:
        return await run_with_retry(
            fn,
            policy=policy or self.config.task_retry,
            step=step,
            timeout_s=self.config.step_timeout_s,
            sleep=self._sleep,
            execution_id=execution.id,
        )

    # --- top-level states -------------------------------------------------

    async def _check_size(self, execution: WorkflowExecution) -> None:
        source = execution.source
        info = await self._retry(execution, "check_size", lambda: self.store.head(source.bucket, source.key))
        execution.size_bytes = int(info.size)
        execution.route = classify(info.size, self.config.max_file_size_bytes)
        logger.info(
            "size checked (execution_id=%s, key=%s, size_bytes=%d, route=%s)",
            execution.id,
            source.key,
            execution.size_bytes,
            execution.route.value,
        )

        if execution.route == Route.SPLIT:
            self._transition(execution, WorkflowState.SPLIT_MEDIA)
            return

        segment = SegmentRef(
            bucket=source.bucket,
            key=source.key,
            original_key=source.key,
            base_name=execution.base_name,
        )
        execution.segments = [segment]
        execution.branches = [BranchRun(segment=segment)]
        self._transition(execution, WorkflowState.SUBMIT_JOBS)

    async def _split_media(self, execution: WorkflowExecution) -> None:
        segments = await self._retry(
            execution,
            "split_media",
            lambda: self.splitter.split(execution.source, self.config.segment_duration_s),
        )
        execution.segments = list(segments)
        execution.branches = [BranchRun(segment=s) for s in segments]
        self._transition(execution, WorkflowState.FAN_OUT_SEGMENTS)

    async def _fan_out(self, execution: WorkflowExecution) -> None:
        limiter = FanOutLimiter(self.config.fan_out_concurrency)
        abort = asyncio.Event()
        failures: list[tuple[BranchRun, WorkflowState, BaseException]] = []

        async def _drive(branch: BranchRun) -> None:
            if branch.state == WorkflowState.BRANCH_DONE:
                return
            async with limiter.acquire():
                if abort.is_set():
                    logger.info(
                        "branch skipped after failure (execution_id=%s, segment=%s)",
                        execution.id,
                        branch.segment.label,
                    )
                    return
                while branch.state != WorkflowState.BRANCH_DONE:
                    if abort.is_set():
                        logger.info(
                            "branch stopped after sibling failure (execution_id=%s, segment=%s, state=%s)",
                            execution.id,
                            branch.segment.label,
                            branch.state.value,
                        )
                        return
                    state = branch.state
                    try:
                        await self._advance_branch(execution, branch)
                    except Exception as exc:
                        logger.warning(
                            "branch failed (execution_id=%s, segment=%s, state=%s, error=%s)",
                            execution.id,
                            branch.segment.label,
                            state.value,
                            exc,
                        )
                        branch.error = str(exc)
                        failures.append((branch, state, exc))
                        abort.set()
                        return

        await asyncio.gather(*(_drive(b) for b in execution.branches))
        self.fan_out_peak = limiter.peak

        if failures:
            branch, state, exc = failures[0]
            raise StageExecutionError(
                state.value,
                f"segment {branch.segment.label}: {self._infer_error_message(exc)}",
                execution_id=execution.id,
                error_code=self._infer_error_code(state, exc),
            ) from exc
        self._transition(execution, WorkflowState.MERGE_CAPTIONS)

    async def _merge_captions(self, execution: WorkflowExecution) -> None:
        total = len(execution.segments)
        for language in self.languages:
            dest = await self._retry(
                execution,
                "merge_captions",
                lambda language=language: self.relocator.merge_chunks(execution.base_name, language, total),
            )
            execution.outputs[language] = dest
        self._transition(execution, WorkflowState.SUCCESS)

    async def _direct(self, execution: WorkflowExecution) -> None:
        if not execution.branches:
            raise ValidationError(f"execution {execution.id} has no branch to drive")
        branch = execution.branches[0]
        branch.state = execution.state
        await self._advance_branch(execution, branch, record=False)
        if branch.state == WorkflowState.BRANCH_DONE:
            execution.outputs.update(branch.outputs)
            self._transition(execution, WorkflowState.SUCCESS)
        else:
            self._transition(execution, branch.state)

    # --- branch states ----------------------------------------------------

    async def _load_jobs(self, branch: BranchRun) -> list[TranscriptionJob]:
        return [await self.registry.require(job_id) for job_id in branch.job_ids.values()]

    async def _advance_branch(self, execution: WorkflowExecution, branch: BranchRun, *, record: bool = True) -> None:
        segment = branch.segment
        match branch.state:
            case WorkflowState.SUBMIT_JOBS:

                def _remember(job: TranscriptionJob) -> None:
                    branch.job_ids[job.language] = job.job_id

                await self._retry(
                    execution,
                    "submit_jobs",
                    lambda: self.job_manager.submit(
                        segment,
                        {k: v for k, v in self.languages.items() if k not in branch.job_ids},
                        on_submitted=_remember,
                    ),
                )
                next_state = WorkflowState.POLL_LOOP

            case WorkflowState.POLL_LOOP:
                branch.polls += 1
                max_polls = self.config.max_polls
                if max_polls is not None and branch.polls > max_polls:
                    raise StageExecutionError(
                        WorkflowState.POLL_LOOP.value,
                        f"jobs for {segment.label} still running after {max_polls} polls",
                        execution_id=execution.id,
                        error_code=ErrorCode.TIMEOUT,
                    )
                async def _poll() -> AwaitResult:
                    return await self.monitor.await_all(await self._load_jobs(branch))

                result = await self._retry(
                    execution,
                    "poll_loop",
                    _poll,
                    policy=self.config.poll_retry,
                )
                if result.any_failed:
                    failed = result.failed[0]
                    raise JobFailedError(failed.job_id, failed.failure_reason)
                next_state = WorkflowState.RELOCATE if result.all_complete else WorkflowState.WAIT

            case WorkflowState.WAIT:
                await self._sleep(float(self.config.poll_interval_s))
                next_state = WorkflowState.POLL_LOOP

            case WorkflowState.RELOCATE:
                jobs = await self._retry(execution, "relocate", lambda: self._load_jobs(branch))
                for job in jobs:
                    if job.language in branch.outputs:
                        continue
                    branch.outputs[job.language] = await self._retry(
                        execution,
                        "relocate",
                        lambda job=job: self.relocator.relocate(job),
                    )
                next_state = WorkflowState.BRANCH_DONE

            case _:
                raise ValidationError(f"branch cannot advance from {branch.state.value}")

        branch.state = next_state
        if record:
            logger.debug(
                "branch transition (execution_id=%s, segment=%s, to=%s)",
                execution.id,
                segment.label,
                next_state.value,
            )
            self._record(execution, next_state, segment=segment.label)
            await self._notify_update(execution)

    # --- public API -------------------------------------------------------

    async def step(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Perform one transition; terminal executions are returned unchanged."""
        if execution.is_terminal:
            return execution
        if not execution.transitions:
            self._record(execution, execution.state)

        state = execution.state
        logger.debug("step start (execution_id=%s, state=%s)", execution.id, state.value)
        try:
            match state:
                case WorkflowState.CHECK_SIZE:
                    await self._check_size(execution)
                case WorkflowState.SPLIT_MEDIA:
                    await self._split_media(execution)
                case WorkflowState.FAN_OUT_SEGMENTS:
                    await self._fan_out(execution)
                case WorkflowState.MERGE_CAPTIONS:
                    await self._merge_captions(execution)
                case s if s in _BRANCH_STATES:
                    await self._direct(execution)
                case _:
                    raise ValidationError(f"cannot step from state {state.value}")
        except Exception as exc:
            logger.exception("step failed (execution_id=%s, state=%s)", execution.id, state.value)
            execution.error_code = self._infer_error_code(state, exc)
            execution.error_message = self._infer_error_message(exc)
            self._transition(execution, WorkflowState.FAIL)

        await self._notify_update(execution)
        return execution

    async def run(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Step until terminal, starting from whatever state `execution` is in."""
        logger.info(
            "execution start (execution_id=%s, bucket=%s, key=%s, state=%s)",
            execution.id,
            execution.source.bucket,
            execution.source.key,
            execution.state.value,
        )
        while not execution.is_terminal:
            await self.step(execution)
        logger.info(
            "execution done (execution_id=%s, state=%s, error_code=%s)",
            execution.id,
            execution.state.value,
            execution.error_code,
        )
        return execution

    async def close(self) -> None:
        """Release the transcription service (HTTP connection pools and the like)."""
        try:
            await self.job_manager.service.close()
        except Exception:
            logger.exception("failed to close transcription service (service=%s)", self.job_manager.service.name)

    async def start(self, event: dict[str, Any]) -> WorkflowExecution:
        """Create an execution from an upload notification and run it."""
        return await self.run(WorkflowExecution.from_event(event))
