"""Logging initialization helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from chunkscribe.config import LoggingSettings, Settings


def _resolve_log_file(settings: Settings) -> Path | None:
    if not settings.logging.file:
        return None
    path = Path(str(settings.logging.file))
    return path if path.is_absolute() else Path(settings.log_dir) / path


def _build_handlers(config: LoggingSettings, level: int, log_file: Path | None) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=str(config.format), datefmt=str(config.datefmt))
    handlers: list[logging.Handler] = []
    if config.console:
        handlers.append(logging.StreamHandler())
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=int(config.max_bytes),
                backupCount=int(config.backup_count),
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings, *, force: bool = False) -> logging.Logger:
    """Configure the `chunkscribe` logger tree from Settings.

    The AWS SDK and httpx log every request at INFO/DEBUG; the loggers named
    in `LOG_QUIET_LOGGERS` are held at WARNING. Calling this twice is a no-op
    unless `force` is set.
    """
    logger = logging.getLogger("chunkscribe")
    if getattr(logger, "_chunkscribe_configured", False) and not force:
        return logger

    level = getattr(logging, str(settings.logging.level or "INFO").upper(), logging.INFO)
    logger.setLevel(level)
    logger.handlers = _build_handlers(settings.logging, level, _resolve_log_file(settings))
    logger.propagate = False
    for name in settings.logging.quiet_loggers:
        logging.getLogger(str(name)).setLevel(logging.WARNING)

    setattr(logger, "_chunkscribe_configured", True)
    return logger
