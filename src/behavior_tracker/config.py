"""Configuration helpers and Settings container.

This module provides a frozen `Settings` dataclass and `get_settings`, which
reads the tracker's environment variables (optionally from a project `.env`).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from behavior_tracker.core import DEFAULT_TOP_N
from behavior_tracker.selection import DEFAULT_WINDOW_DAYS

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")


@dataclass(frozen=True)
class Settings:
    """Container for tracker configuration read from the environment.

    Attributes:
        admin_emails: Lower-cased emails allowed to curate behaviors and view reports.
        timezone: IANA name of the school's wall clock ("UTC" by default).
        top_n: Number of behaviors kept in the top-ranked view.
        window_days: Length of the default trailing report window.
        log_level: Logging level name.
        log_path: Optional file that receives a copy of the logs.
    """

    admin_emails: frozenset[str] = field(default_factory=frozenset)
    timezone: str = "UTC"
    top_n: int = DEFAULT_TOP_N
    window_days: int = DEFAULT_WINDOW_DAYS
    log_level: str = "INFO"
    log_path: Path | None = None

    def is_admin(self, email: str | None) -> bool:
        return (email or "").strip().lower() in self.admin_emails

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level.upper())  # type: ignore[no-any-return]


def resolve_timezone(name: str) -> tzinfo:
    """Return a tzinfo for an IANA name.

    Raises:
        RuntimeError: if the zone is unknown.
    """
    if name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"Unknown timezone {name!r} in BEHAVIOR_TIMEZONE") from exc


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if a numeric setting, the timezone or the log level is invalid.
    """
    admin_emails = frozenset(
        email.strip().lower()
        for email in os.getenv("BEHAVIOR_ADMIN_EMAILS", "").split(",")
        if email.strip()
    )
    timezone = os.getenv("BEHAVIOR_TIMEZONE", "UTC").strip() or "UTC"
    resolve_timezone(timezone)

    log_level = os.getenv("BEHAVIOR_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if not isinstance(logging.getLevelName(log_level), int):
        raise RuntimeError(f"BEHAVIOR_LOG_LEVEL {log_level!r} is not a logging level")

    log_path_raw = os.getenv("BEHAVIOR_LOG_PATH", "").strip()

    return Settings(
        admin_emails=admin_emails,
        timezone=timezone,
        top_n=_positive_int("BEHAVIOR_TOP_N", DEFAULT_TOP_N),
        window_days=_positive_int("BEHAVIOR_WINDOW_DAYS", DEFAULT_WINDOW_DAYS),
        log_level=log_level,
        log_path=Path(log_path_raw) if log_path_raw else None,
    )


__all__ = ["PROJECT_ROOT", "Settings", "get_settings", "resolve_timezone"]
