"""Worker startup recovery helpers."""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis

from chunkscribe.config import Settings
from handlers.upload_handler import execution_store, run_execution

logger = logging.getLogger(__name__)


async def resume_active_executions(
    *, redis: Redis, settings: Settings, limit: int = 200, **overrides: Any
) -> int:
    """Drive executions left non-terminal by a previous worker to completion.

    Each execution continues from its last saved state, so finished steps
    (a split, submitted jobs) are not repeated.
    """
    candidates = await execution_store(redis, settings).list_active()
    if not candidates:
        return 0

    resumed = 0
    for execution in candidates[:limit]:
        logger.info(
            "resuming execution (execution_id=%s, key=%s, state=%s)",
            execution.id,
            execution.source.key,
            execution.state.value,
        )
        try:
            await run_execution(execution, redis=redis, settings=settings, **overrides)
        except Exception:
            logger.exception("execution resume failed (execution_id=%s)", execution.id)
            continue
        resumed += 1
    return resumed
