"""Orchestrator factory (wires adapters from Settings)."""

from __future__ import annotations

from redis.asyncio import Redis

from chunkscribe.config import Settings
from chunkscribe.exceptions import ConfigurationError
from chunkscribe.pipeline.orchestrator import ExecutionUpdateHook, Orchestrator
from chunkscribe.pipeline.retry import SleepFn
from chunkscribe.providers.registry import get_splitter_tool, get_transcription_service
from chunkscribe.providers.splitter.base import MediaSplitterTool
from chunkscribe.providers.transcription.base import TranscriptionService
from chunkscribe.repositories.job_registry import InMemoryJobRegistry, JobRegistry
from chunkscribe.repositories.redis_store import RedisJobRegistry
from chunkscribe.services.job_manager import TranscriptionJobManager
from chunkscribe.services.job_monitor import JobMonitor
from chunkscribe.services.relocator import CaptionRelocator
from chunkscribe.services.splitter import Splitter
from chunkscribe.storage import get_object_store
from chunkscribe.storage.object_store import ObjectStore


def create_job_registry(settings: Settings, *, redis: Redis | None = None) -> JobRegistry:
    backend = str(settings.registry.backend or "redis").strip().lower()
    match backend:
        case "memory":
            return InMemoryJobRegistry()
        case "redis":
            client = redis or Redis.from_url(settings.redis_url, decode_responses=True)
            return RedisJobRegistry(client, key_prefix=settings.registry.key_prefix)
        case _:
            raise ConfigurationError(f"Unknown registry backend: {backend}")


def create_orchestrator(
    settings: Settings,
    *,
    store: ObjectStore | None = None,
    service: TranscriptionService | None = None,
    splitter_tool: MediaSplitterTool | None = None,
    registry: JobRegistry | None = None,
    redis: Redis | None = None,
    on_update: ExecutionUpdateHook | None = None,
    sleep: SleepFn | None = None,
) -> Orchestrator:
    """Build an orchestrator; explicit adapters override the configured ones."""
    store = store or get_object_store(settings)
    service = service or get_transcription_service(settings.transcription.model_dump())
    splitter_tool = splitter_tool or get_splitter_tool(settings.splitter.model_dump())
    registry = registry or create_job_registry(settings, redis=redis)

    return Orchestrator(
        store=store,
        splitter=Splitter(
            store,
            splitter_tool,
            chunk_prefix=settings.storage.chunk_prefix,
            scratch_dir=settings.splitter.scratch_dir,
        ),
        job_manager=TranscriptionJobManager(
            service,
            registry,
            output_bucket=settings.storage.output_bucket,
            caption_formats=list(settings.transcription.caption_formats),
        ),
        monitor=JobMonitor(service, registry),
        relocator=CaptionRelocator(
            store,
            output_bucket=settings.storage.output_bucket,
            gap_ms=settings.workflow.merge_gap_ms,
        ),
        registry=registry,
        config=settings.workflow,
        languages=settings.languages,
        on_update=on_update,
        sleep=sleep,
    )
