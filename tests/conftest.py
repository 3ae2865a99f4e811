"""Shared test fixtures for behavior-tracker."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from behavior_tracker.config import Settings
from behavior_tracker.core import AggregationEngine, ReportAssembler
from behavior_tracker.models import (
    BehaviorDefinition,
    BehaviorStatus,
    FilterSelection,
    IncidentRecord,
)
from behavior_tracker.store import InMemoryRecordStore
from behavior_tracker.taxonomy import BehaviorCatalog

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ADMIN_EMAIL = "admin@example.org"
TEACHER_ONE = "rivera@example.org"
TEACHER_TWO = "chen@example.org"

ADMIN_HEADERS = {"X-User-Email": ADMIN_EMAIL}
TEACHER_HEADERS = {"X-User-Email": TEACHER_ONE, "X-User-Id": "uid-rivera"}

# 2024-01-01 is a Monday.
NOW = datetime(2024, 1, 3, 15, 0, tzinfo=UTC)

_UNSET: Any = object()


def _dt(day: int, hour: int = 9, minute: int = 0) -> datetime:
    """Return an aware UTC datetime in January 2024."""
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_record(
    record_id: str = "LOG-001",
    student_name: str | None = "A.B.",
    behavior_name: str | None = "Talking",
    category: str | None = "Disruption",
    teacher_email: str | None = TEACHER_ONE,
    created_at: datetime | None = _UNSET,
    day_key: str | None = _UNSET,
    **extra: Any,
) -> IncidentRecord:
    """Factory for IncidentRecord objects with sensible defaults.

    ``day_key`` defaults to the date of ``created_at`` when one is given.
    """
    if created_at is _UNSET:
        created_at = _dt(1, 9, 30)
    if day_key is _UNSET:
        day_key = created_at.strftime("%Y-%m-%d") if created_at else None
    return IncidentRecord(
        id=record_id,
        student_name=student_name,
        behavior_id=extra.pop("behavior_id", f"bhv-{behavior_name}"),
        behavior_name=behavior_name,
        category=category,
        teacher_email=teacher_email,
        created_at=created_at,
        day_key=day_key,
        **extra,
    )


def make_behavior(
    behavior_id: str = "bhv-talking",
    name: str = "Talking",
    category: str = "Disruption",
    status: BehaviorStatus = BehaviorStatus.active,
) -> BehaviorDefinition:
    """Factory for BehaviorDefinition objects."""
    return BehaviorDefinition(id=behavior_id, name=name, category=category, status=status)


def make_selection(
    start: date = date(2024, 1, 1),
    end: date = date(2024, 1, 7),
    **predicates: str | None,
) -> FilterSelection:
    """A selection over the first week of January 2024."""
    return FilterSelection(start_date=start, end_date=end, **predicates)


def record_to_dict(record: IncidentRecord) -> dict[str, Any]:
    """Serialize a record to the camelCase document the store exchanges."""
    return json.loads(record.model_dump_json(by_alias=True))


# ---------------------------------------------------------------------------
# Fixtures: records and behaviors
# ---------------------------------------------------------------------------


@pytest.fixture()
def talking_records() -> list[IncidentRecord]:
    """Three "Talking" records: two on 2024-01-01 and one on 2024-01-02."""
    return [
        make_record("T-1", created_at=_dt(1, 9)),
        make_record("T-2", created_at=_dt(1, 11)),
        make_record("T-3", created_at=_dt(2, 10)),
    ]


@pytest.fixture()
def pending_record() -> IncidentRecord:
    """A record still waiting for its server timestamp."""
    return make_record(
        "LOG-006",
        student_name="A.B.",
        behavior_name="Refusal",
        category="Defiance",
        teacher_email=TEACHER_TWO,
        created_at=None,
        day_key="2024-01-04",
    )


@pytest.fixture()
def sample_records(pending_record: IncidentRecord) -> list[IncidentRecord]:
    """Six records over four days, three students and two teachers.

    Talking x3, Refusal x2, Out of seat x1. LOG-006 has no timestamp.
    """
    return [
        make_record("LOG-001", created_at=_dt(1, 9, 30)),
        make_record("LOG-002", teacher_email=TEACHER_TWO, created_at=_dt(1, 9, 45)),
        make_record(
            "LOG-003",
            student_name="C.D.",
            behavior_name="Refusal",
            category="Defiance",
            created_at=_dt(2, 13, 10),
        ),
        make_record("LOG-004", student_name="C.D.", created_at=_dt(3, 9, 5)),
        make_record(
            "LOG-005",
            student_name="E.F.",
            behavior_name="Out of seat",
            teacher_email=TEACHER_TWO,
            created_at=_dt(3, 14, 0),
        ),
        pending_record,
    ]


@pytest.fixture()
def behaviors() -> list[BehaviorDefinition]:
    """Three active behaviors and one retired one."""
    return [
        make_behavior("bhv-talking", "Talking", "Disruption"),
        make_behavior("bhv-refusal", "Refusal", "Defiance"),
        make_behavior("bhv-kind", "Kind words", "Positive"),
        make_behavior("bhv-humming", "Humming", "Noise", BehaviorStatus.retired),
    ]


# ---------------------------------------------------------------------------
# Fixtures: core components
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine() -> AggregationEngine:
    """An AggregationEngine on UTC with the default top-N."""
    return AggregationEngine()


@pytest.fixture()
def assembler() -> ReportAssembler:
    """A ReportAssembler with default collaborators."""
    return ReportAssembler()


@pytest.fixture()
def catalog(behaviors: list[BehaviorDefinition]) -> BehaviorCatalog:
    """A BehaviorCatalog pre-loaded with the sample behaviors."""
    catalog = BehaviorCatalog(clock=lambda: NOW)
    catalog.load(behaviors)
    return catalog


@pytest.fixture()
def store() -> InMemoryRecordStore:
    """An empty store whose clock is pinned to NOW."""
    return InMemoryRecordStore(clock=lambda: NOW)


@pytest.fixture()
def populated_store(
    store: InMemoryRecordStore, sample_records: list[IncidentRecord]
) -> InMemoryRecordStore:
    """The pinned store loaded with the sample records."""
    store.bulk_import(sample_records)
    return store


@pytest.fixture()
def settings() -> Settings:
    """Settings with a single admin."""
    return Settings(admin_emails=frozenset({ADMIN_EMAIL}))


# ---------------------------------------------------------------------------
# Fixtures: FastAPI test client
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_client(
    sample_records: list[IncidentRecord],
    behaviors: list[BehaviorDefinition],
    settings: Settings,
) -> TestClient:
    """A TestClient backed by a freshly seeded dashboard app."""
    from behavior_tracker.dashboard import create_app

    fresh_app = create_app(
        initial_records=sample_records,
        initial_behaviors=behaviors,
        settings=settings,
        now=NOW,
    )
    return TestClient(fresh_app)


@pytest.fixture()
def empty_api_client(settings: Settings) -> TestClient:
    """A TestClient backed by an empty dashboard app."""
    from behavior_tracker.dashboard import create_app

    return TestClient(create_app(settings=settings, now=NOW))


# ---------------------------------------------------------------------------
# Fixtures: JSON / file helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def records_json_file(tmp_path: Path, sample_records: list[IncidentRecord]) -> Path:
    """A temporary JSON file containing the sample records."""
    file = tmp_path / "records.json"
    file.write_text(
        json.dumps([record_to_dict(r) for r in sample_records]), encoding="utf-8"
    )
    return file


@pytest.fixture()
def behaviors_json_file(tmp_path: Path, behaviors: list[BehaviorDefinition]) -> Path:
    """A temporary JSON file containing the sample behaviors."""
    file = tmp_path / "behaviors.json"
    file.write_text(
        json.dumps([json.loads(b.model_dump_json(by_alias=True)) for b in behaviors]),
        encoding="utf-8",
    )
    return file


@pytest.fixture()
def invalid_json_file(tmp_path: Path) -> Path:
    """A temporary JSON file containing an object (not an array)."""
    file = tmp_path / "invalid.json"
    file.write_text(json.dumps({"not": "an array"}), encoding="utf-8")
    return file


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo root-logger changes made by configure_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
