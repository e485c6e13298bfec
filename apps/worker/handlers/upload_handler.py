"""Upload event processing handler."""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis

from chunkscribe.config import Settings
from chunkscribe.exceptions import ValidationError
from chunkscribe.models.workflow import SourceLocation, WorkflowExecution
from chunkscribe.pipeline import create_orchestrator
from chunkscribe.repositories.redis_store import RedisExecutionStore

logger = logging.getLogger("chunkscribe.worker")


def execution_store(redis: Redis, settings: Settings) -> RedisExecutionStore:
    return RedisExecutionStore(
        redis,
        key_prefix=settings.registry.key_prefix,
        ttl_days=settings.registry.execution_ttl_days,
    )


def should_ignore(source: SourceLocation, settings: Settings) -> str | None:
    """Return why an upload must not start a workflow, or None."""
    prefix = str(settings.storage.chunk_prefix or "").strip("/")
    if prefix and source.key.startswith(f"{prefix}/"):
        return "segment upload"
    if source.bucket == settings.storage.output_bucket:
        return "output bucket"
    return None


async def run_execution(
    execution: WorkflowExecution,
    *,
    redis: Redis,
    settings: Settings,
    **overrides: Any,
) -> WorkflowExecution:
    """Run `execution` to a terminal state, saving a snapshot after every step.

    `overrides` are passed to `create_orchestrator` (store, service, ...).
    """
    executions = execution_store(redis, settings)
    orchestrator = create_orchestrator(settings, redis=redis, on_update=executions.save, **overrides)
    await executions.save(execution)
    try:
        return await orchestrator.run(execution)
    finally:
        await orchestrator.close()


async def process_upload_event(
    event: dict[str, Any],
    redis: Redis,
    settings: Settings,
    **overrides: Any,
) -> WorkflowExecution | None:
    try:
        execution = WorkflowExecution.from_event(event)
    except ValidationError as exc:
        logger.warning("upload event rejected (error=%s)", exc)
        return None

    reason = should_ignore(execution.source, settings)
    if reason is not None:
        logger.info(
            "upload ignored (bucket=%s, key=%s, reason=%s)",
            execution.source.bucket,
            execution.source.key,
            reason,
        )
        return None

    return await run_execution(execution, redis=redis, settings=settings, **overrides)
