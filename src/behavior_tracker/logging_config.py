"""Root logging setup shared by the CLI and the dashboard server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from behavior_tracker.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def _handlers(log_path: Path | None) -> list[logging.Handler]:
    # stdout carries command output (CSV paths, --json reports).
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(settings: Settings, level_name: str | None = None) -> int:
    """Replace the root handlers according to ``settings``.

    Args:
        settings: Supplies the default level and the optional log file.
        level_name: Overrides ``settings.log_level`` (e.g. from ``--log-level``).

    Returns:
        The numeric level that was applied.
    """
    level = logging.getLevelName(level_name.upper()) if level_name else settings.level
    logging.basicConfig(level=level, handlers=_handlers(settings.log_path), force=True)
    logger.debug(
        "Logging at %s%s",
        logging.getLevelName(level),
        f", copying to {settings.log_path}" if settings.log_path else "",
    )
    return level
