"""Job registry and execution persistence."""

from chunkscribe.repositories.job_registry import (
    ExecutionStore,
    InMemoryExecutionStore,
    InMemoryJobRegistry,
    JobRegistry,
)
from chunkscribe.repositories.redis_store import RedisExecutionStore, RedisJobRegistry

__all__ = [
    "ExecutionStore",
    "InMemoryExecutionStore",
    "InMemoryJobRegistry",
    "JobRegistry",
    "RedisExecutionStore",
    "RedisJobRegistry",
]
