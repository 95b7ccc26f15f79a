"""Logging configuration: console sink, optional JSON file sink, optional Sentry sink."""
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

from job_feed.config.settings import settings

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)


def _sentry_sink(message) -> None:
    record = message.record
    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_extra("module", record["name"])
        scope.set_extra("function", record["function"])
        sentry_sdk.capture_message(record["message"], level="error", scope=scope)


def setup_logger(log_level: str = "INFO", log_file: Path | None = None) -> None:
    """Replace loguru's default sink.

    log_file, when given, receives every record as one JSON object per line and
    is rotated weekly.
    """
    logger.remove()
    logger.add(sys.stderr, format=_CONSOLE_FORMAT, level=log_level, colorize=True)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", serialize=True, rotation="1 week", retention=4, enqueue=True)

    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.sentry_environment)
        logger.add(_sentry_sink, level="ERROR")

    logger.debug(f"Logger initialized at {log_level}")
