"""In-memory incident record store with range queries and change subscriptions."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, tzinfo
from typing import Any, Generic, Protocol, TypeVar

from behavior_tracker.models import DEFAULT_CATEGORY, BehaviorDefinition, IncidentRecord
from behavior_tracker.selection import format_day_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

TODAYS_LOG_LIMIT = 50


class RecordStoreError(Exception):
    """The record store could not be reached or refused the request."""


class RecordStore(Protocol):
    """What the reporting pipeline needs from a record store."""

    def query_by_time_range(
        self, start: datetime, end: datetime
    ) -> list[IncidentRecord]: ...


class Subscription:
    """Cancellable handle returned by ``subscribe``."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        """Stop receiving updates. Cancelling twice is a no-op."""
        if self.active:
            self.active = False
            self._cancel()


class Broadcaster(Generic[T]):
    """Deliver snapshots to every registered callback."""

    def __init__(self) -> None:
        self._callbacks: dict[int, Callable[[T], None]] = {}
        self._next_key = 0

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        key = self._next_key
        self._next_key += 1
        self._callbacks[key] = callback
        return Subscription(lambda: self._callbacks.pop(key, None))

    def publish(self, snapshot: T) -> None:
        for callback in list(self._callbacks.values()):
            callback(snapshot)

    def __len__(self) -> int:
        return len(self._callbacks)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class InMemoryRecordStore:
    """Incident records keyed by id.

    ``clock`` stands in for the server timestamp and ``tz`` is the wall clock
    used to compute ``day_key`` when a teacher logs an incident.
    """

    def __init__(
        self,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tz = tz
        self._clock = clock or _utcnow
        self._records: dict[str, IncidentRecord] = {}
        self._changes: Broadcaster[list[IncidentRecord]] = Broadcaster()

    def _normalize(self, record: IncidentRecord) -> IncidentRecord:
        if record.created_at is not None and record.created_at.tzinfo is None:
            return record.model_copy(
                update={"created_at": record.created_at.replace(tzinfo=self.tz)}
            )
        return record

    def add(self, record: IncidentRecord) -> None:
        """Insert or overwrite a record."""
        self._records[record.id] = self._normalize(record)
        self._changes.publish(self.all())

    def bulk_import(self, records: Iterable[IncidentRecord]) -> int:
        """Add many records and notify subscribers once; return the new count."""
        before = len(self._records)
        for record in records:
            self._records[record.id] = self._normalize(record)
        self._changes.publish(self.all())
        return len(self._records) - before

    def bulk_import_json(self, data: list[dict[str, Any]]) -> int:
        """Validate and import records from a JSON array of documents."""
        records = [IncidentRecord.model_validate(item) for item in data]
        return self.bulk_import(records)

    def get(self, record_id: str) -> IncidentRecord | None:
        return self._records.get(record_id)

    def all(self) -> list[IncidentRecord]:
        return list(self._records.values())

    @property
    def count(self) -> int:
        return len(self._records)

    def now(self) -> datetime:
        """Current server time."""
        return self._clock()

    def log_incident(
        self,
        behavior: BehaviorDefinition,
        student_name: str,
        teacher_email: str,
        teacher_uid: str = "",
        grade: str | None = None,
    ) -> IncidentRecord:
        """Record one incident, snapshotting the behavior's name and category."""
        now = self._clock()
        record = IncidentRecord(
            id=uuid.uuid4().hex,
            student_name=student_name,
            behavior_id=behavior.id,
            behavior_name=behavior.name,
            category=behavior.category or DEFAULT_CATEGORY,
            teacher_email=teacher_email,
            teacher_uid=teacher_uid,
            day_key=format_day_key(now, self.tz),
            created_at=now,
            grade=grade,
        )
        self.add(record)
        logger.info(
            "Logged %r for %r by %s", behavior.name, student_name, teacher_email
        )
        return record

    def query_by_time_range(
        self, start: datetime, end: datetime
    ) -> list[IncidentRecord]:
        """Return records whose ``created_at`` lies in ``[start, end]``.

        Records still waiting for a server timestamp are not returned.
        """
        matched = [
            record
            for record in self._records.values()
            if record.created_at is not None and start <= record.created_at <= end
        ]
        logger.debug("Range query %s..%s matched %d records", start, end, len(matched))
        return matched

    def todays_log(
        self,
        day_key: str | None = None,
        teacher_email: str | None = None,
        limit: int = TODAYS_LOG_LIMIT,
    ) -> list[IncidentRecord]:
        """Newest-first incidents for one day; pending timestamps sort first."""
        day_key = day_key or format_day_key(self._clock(), self.tz)
        records = [
            record
            for record in self._records.values()
            if record.day_key == day_key
            and (teacher_email is None or record.teacher_email == teacher_email)
        ]
        pending = [r for r in records if r.created_at is None]
        stamped = sorted(
            (r for r in records if r.created_at is not None),
            key=lambda r: r.created_at,  # type: ignore[arg-type,return-value]
            reverse=True,
        )
        return (pending + stamped)[:limit]

    def subscribe(self, callback: Callable[[list[IncidentRecord]], None]) -> Subscription:
        """Call ``callback`` with every record after each change."""
        return self._changes.subscribe(callback)


__all__ = [
    "Broadcaster",
    "InMemoryRecordStore",
    "RecordStore",
    "RecordStoreError",
    "Subscription",
]
