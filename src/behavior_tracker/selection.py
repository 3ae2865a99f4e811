"""Filter-selection helpers: date bounds, default window and option encoding."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from urllib.parse import quote, unquote

from behavior_tracker.models import FilterSelection

DEFAULT_WINDOW_DAYS = 14

# Characters encodeURIComponent leaves untouched besides letters and digits.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def format_day_key(moment: datetime, tz: tzinfo) -> str:
    """Return the ``YYYY-MM-DD`` bucket of ``moment`` on the local wall clock."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.strftime("%Y-%m-%d")


def default_date_range(
    today: date, window_days: int = DEFAULT_WINDOW_DAYS
) -> tuple[date, date]:
    """Trailing window ending today, ``window_days`` days long inclusive."""
    return today - timedelta(days=window_days - 1), today


def parse_date_input(value: str | date | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` input; anything unparseable yields None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def encode_option(value: str) -> str:
    """Percent-encode an option value for a selectable-list representation."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def decode_option(value: str | None) -> str:
    """Inverse of :func:`encode_option`; None decodes to the empty string."""
    return unquote(value or "")


def build_selection(
    *,
    today: date,
    start: str | date | None = None,
    end: str | date | None = None,
    student: str | None = None,
    category: str | None = None,
    teacher: str | None = None,
    encoded: bool = False,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> FilterSelection:
    """Resolve raw viewer input into a well-formed FilterSelection.

    A missing or malformed date bound is replaced by the matching bound of the
    default trailing window. Empty predicates are dropped. With ``encoded``
    the predicate values are percent-decoded first.
    """
    default_start, default_end = default_date_range(today, window_days)

    def _predicate(value: str | None) -> str | None:
        if encoded:
            value = decode_option(value)
        return value or None

    return FilterSelection(
        start_date=parse_date_input(start) or default_start,
        end_date=parse_date_input(end) or default_end,
        student=_predicate(student),
        category=_predicate(category),
        teacher=_predicate(teacher),
    )


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "build_selection",
    "decode_option",
    "default_date_range",
    "encode_option",
    "format_day_key",
    "parse_date_input",
]
