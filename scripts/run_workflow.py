from __future__ import annotations

import argparse
import asyncio
import json

from redis.asyncio import Redis

from chunkscribe.config import Settings
from chunkscribe.pipeline import create_orchestrator
from chunkscribe.repositories.redis_store import RedisExecutionStore
from chunkscribe.utils.logging_setup import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the transcription workflow for one uploaded object.")
    parser.add_argument("--bucket", required=True, help="Bucket holding the uploaded media")
    parser.add_argument("--key", required=True, help="Object key of the uploaded media")
    parser.add_argument(
        "--language",
        action="append",
        default=None,
        metavar="NAME=CODE",
        help="Language to transcribe, e.g. english=en-US (repeatable; defaults to TRANSCRIBE_LANGUAGES)",
    )
    parser.add_argument("--max-file-size-mb", type=float, default=None, help="Split files larger than this")
    parser.add_argument("--segment-duration-s", type=int, default=None, help="Segment length when splitting")
    parser.add_argument("--poll-interval-s", type=float, default=None, help="Wait between status polls")
    parser.add_argument("--memory-registry", action="store_true", help="Keep job records in memory, not redis")
    parser.add_argument("--save", action="store_true", help="Persist execution snapshots to redis")
    return parser.parse_args()


def _parse_languages(values: list[str]) -> dict[str, str]:
    languages: dict[str, str] = {}
    for raw in values:
        name, sep, code = str(raw).partition("=")
        if not sep or not name.strip() or not code.strip():
            raise SystemExit(f"Invalid --language value (expected NAME=CODE): {raw}")
        languages[name.strip()] = code.strip()
    return languages


async def _run() -> int:
    args = _parse_args()

    settings = Settings()
    setup_logging(settings)
    if args.language:
        settings.transcription.languages = _parse_languages(args.language)
    if args.max_file_size_mb is not None:
        settings.workflow.max_file_size_mb = float(args.max_file_size_mb)
    if args.segment_duration_s is not None:
        settings.workflow.segment_duration_s = int(args.segment_duration_s)
    if args.poll_interval_s is not None:
        settings.workflow.poll_interval_s = float(args.poll_interval_s)
    if args.memory_registry:
        settings.registry.backend = "memory"

    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        on_update = None
        if args.save:
            on_update = RedisExecutionStore(
                redis,
                key_prefix=settings.registry.key_prefix,
                ttl_days=settings.registry.execution_ttl_days,
            ).save
        orchestrator = create_orchestrator(settings, redis=redis, on_update=on_update)
        try:
            execution = await orchestrator.start({"bucket": args.bucket, "key": args.key})
        finally:
            await orchestrator.close()
    finally:
        await redis.aclose()

    print(
        f"execution_id={execution.id} state={execution.state.value} "
        f"route={execution.route.value if execution.route else None} error_code={execution.error_code}"
    )
    if execution.outputs:
        print(json.dumps(execution.outputs, indent=2, ensure_ascii=False))
    return 0 if execution.state.value == "success" else 1


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
