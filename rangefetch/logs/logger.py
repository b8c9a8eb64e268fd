"""Logging setup and structured log helpers built on loguru."""

import sys
from typing import Optional, TYPE_CHECKING

from loguru import logger

from rangefetch.utils.constants import LOG_FORMAT_CONSOLE, LOG_FORMAT_FILE
from rangefetch.utils.helpers import format_bytes, format_duration

if TYPE_CHECKING:
    from rangefetch.config.settings import Settings


def setup_logging(settings: "Settings") -> None:
    """Configure loguru sinks from settings.

    Replaces any previously installed sinks, so calling it twice is safe.

    Args:
        settings: Application settings
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format=LOG_FORMAT_CONSOLE,
        colorize=True,
    )

    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            format=LOG_FORMAT_FILE,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


def get_logger(name: str):
    """Return a logger bound to a component name."""
    return logger.bind(component=name)


_log = get_logger(__name__)


def log_download_start(destination: str, size: Optional[int], chunk_count: int) -> None:
    size_text = format_bytes(size) if size is not None else "unknown size"
    _log.info(f"Downloading {destination} ({size_text}, {chunk_count} ranges)")


def log_download_complete(destination: str, duration_seconds: float, bytes_written: int) -> None:
    _log.info(
        f"Downloaded {destination}: {format_bytes(bytes_written)} "
        f"in {format_duration(duration_seconds)}"
    )


def log_download_error(destination: str, error: Exception) -> None:
    error_msg = str(error) if str(error) else type(error).__name__
    _log.error(f"Download failed for {destination}: {error_msg}")


def log_chunk_retry(byte_range: str, attempt: int, max_attempts: int, delay: float) -> None:
    _log.debug(f"Retrying range {byte_range} (attempt {attempt}/{max_attempts}) in {delay:.2f}s")


def log_checkpoint_save(path: str) -> None:
    _log.debug(f"Resume state saved: {path}")


def log_checkpoint_load(path: str) -> None:
    _log.info(f"Resume state loaded: {path}")
