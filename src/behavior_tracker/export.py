"""CSV export of filtered incident records."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import date

from behavior_tracker.core import CsvRow

CSV_MIME_TYPE = "text/csv;charset=utf-8"
CSV_COLUMNS: tuple[str, ...] = (
    "date",
    "time",
    "studentInitials",
    "behavior",
    "category",
    "teacherEmail",
)
CSV_HEADER = ",".join(CSV_COLUMNS)


def export_filename(day: date) -> str:
    """Return ``behavior_logs_<YYYY-MM-DD>.csv`` for the export date."""
    return f"behavior_logs_{day.isoformat()}.csv"


def render_csv(rows: Iterable[CsvRow]) -> str:
    """Render the header plus one fully quoted line per row.

    Embedded quotes are doubled. Lines are separated by ``\\n`` with no
    trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow(row)
    body = buffer.getvalue().rstrip("\n")
    return f"{CSV_HEADER}\n{body}" if body else CSV_HEADER


__all__ = [
    "CSV_COLUMNS",
    "CSV_HEADER",
    "CSV_MIME_TYPE",
    "export_filename",
    "render_csv",
]
