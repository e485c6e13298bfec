"""chunkscribe Worker"""

import asyncio
import json
import logging

from redis.asyncio import Redis

from chunkscribe.config import Settings
from chunkscribe.utils.logging_setup import setup_logging
from handlers.upload_handler import process_upload_event
from recovery import resume_active_executions


async def main():
    """Worker main entry point."""
    settings = Settings()
    setup_logging(settings)
    logger = logging.getLogger("chunkscribe.worker")
    redis = Redis.from_url(settings.redis_url, decode_responses=True)

    logger.info("Worker starting (redis=%s, queue=%s)", settings.redis_url, settings.upload_queue)

    try:
        try:
            resumed = await resume_active_executions(redis=redis, settings=settings)
            if resumed:
                logger.info("startup recovery completed (resumed=%d)", resumed)
        except Exception:
            logger.exception("startup recovery failed")

        while True:
            item = await redis.brpop(settings.upload_queue, timeout=5)
            if not item:
                continue
            _, raw = item
            try:
                payload = json.loads(raw)
            except ValueError:
                logger.warning("invalid queue payload (raw=%r)", str(raw)[:200])
                continue
            try:
                await process_upload_event(payload, redis, settings)
            except Exception:
                logger.exception("upload processing failed")
    finally:
        await redis.aclose()


if __name__ == "__main__":
    asyncio.run(main())
