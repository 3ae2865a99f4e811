"""Pydantic models for behavior-tracker."""

from __future__ import annotations

from datetime import date, datetime, time, tzinfo
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

UNKNOWN_BEHAVIOR = "Unknown"
UNKNOWN_DAY = "unknown"
DEFAULT_CATEGORY = "Other"
NO_DATA_LABEL = "No data"

DAYS_PER_WEEK = 7
HOURS_PER_DAY = 24


class _Model(BaseModel):
    """Base for all models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class IncidentRecord(_Model):
    """One logged behavior event for one student at one point in time.

    ``behavior_name`` and ``category`` are a snapshot of the behavior
    definition taken when the incident was logged and are never re-resolved.
    """

    id: str = Field(..., description="Store-assigned identifier")
    student_name: str | None = None
    behavior_id: str | None = None
    behavior_name: str | None = None
    behavior_type: str | None = Field(
        default=None,
        alias="behavior_type",
        description="Legacy behavior label written by older clients",
    )
    category: str | None = None
    behavior_category: str | None = Field(
        default=None, description="Legacy category field written by older clients"
    )
    teacher_email: str | None = None
    teacher_uid: str | None = None
    day_key: str | None = Field(default=None, description="YYYY-MM-DD, local time")
    created_at: datetime | None = None
    grade: str | None = None

    def behavior_label(self, default: str = UNKNOWN_BEHAVIOR) -> str:
        """Resolve the label: behavior_name, then behavior_type, then ``default``."""
        return self.behavior_name or self.behavior_type or default

    def category_label(self, default: str = "") -> str:
        """Resolve the category: category, then behavior_category, then ``default``."""
        return self.category or self.behavior_category or default

    def local_timestamp(self, tz: tzinfo) -> datetime | None:
        """Return created_at in ``tz``; naive timestamps are already local."""
        if self.created_at is None:
            return None
        if self.created_at.tzinfo is None:
            return self.created_at
        return self.created_at.astimezone(tz)

    def day_bucket(self, tz: tzinfo) -> str:
        """Resolve the calendar day: timestamp date, then day_key, then "unknown"."""
        moment = self.local_timestamp(tz)
        if moment is not None:
            return moment.strftime("%Y-%m-%d")
        return self.day_key or UNKNOWN_DAY


class BehaviorStatus(str, Enum):
    """Lifecycle of a behavior definition. Retired entries are never deleted."""

    active = "active"
    retired = "retired"


class BehaviorDefinition(_Model):
    """A named, categorized entry in the admin-curated behavior taxonomy."""

    id: str
    name: str
    category: str = DEFAULT_CATEGORY
    status: BehaviorStatus = BehaviorStatus.active
    updated_at: datetime | None = None
    updated_by: str = ""

    @model_validator(mode="before")
    @classmethod
    def _legacy_active_flag(cls, data: Any) -> Any:
        # Older documents carry a boolean ``active`` instead of ``status``.
        if isinstance(data, dict) and "active" in data:
            data = dict(data)
            active = data.pop("active")
            data.setdefault(
                "status",
                BehaviorStatus.retired if active is False else BehaviorStatus.active,
            )
        return data

    @property
    def active(self) -> bool:
        return self.status is BehaviorStatus.active


class FilterSelection(_Model):
    """Date range and categorical constraints chosen by a report viewer."""

    start_date: date
    end_date: date
    student: str | None = None
    category: str | None = None
    teacher: str | None = None

    def predicates(self) -> dict[str, str]:
        """Return the categorical predicates that are set to a non-empty value."""
        values = {
            "student": self.student,
            "category": self.category,
            "teacher": self.teacher,
        }
        return {key: value for key, value in values.items() if value}

    def bounds(self, tz: tzinfo) -> tuple[datetime, datetime]:
        """Inclusive store-query bounds: start-of-day through end-of-day in ``tz``."""
        return (
            datetime.combine(self.start_date, time.min, tzinfo=tz),
            datetime.combine(self.end_date, time.max, tzinfo=tz),
        )


class LabelCount(_Model):
    """A ``(label, count)`` pair."""

    label: str
    count: int = Field(..., ge=0)


class DayCount(_Model):
    """Incident count for one calendar-day bucket."""

    day: str
    count: int = Field(..., ge=0)


class KpiSummary(_Model):
    """Headline numbers for a filtered record set."""

    total_incidents: int = 0
    students_impacted: int = 0
    teachers_logging: int = 0
    top_behavior: LabelCount = LabelCount(label=NO_DATA_LABEL, count=0)


class HeatMatrix(_Model):
    """Incident counts by day of week (0=Sunday) and hour of day."""

    cells: tuple[tuple[int, ...], ...]
    max: int = 0

    @classmethod
    def from_grid(cls, grid: list[list[int]]) -> HeatMatrix:
        peak = max((value for row in grid for value in row), default=0)
        return cls(cells=tuple(tuple(row) for row in grid), max=peak)

    @classmethod
    def empty(cls) -> HeatMatrix:
        return cls.from_grid([[0] * HOURS_PER_DAY for _ in range(DAYS_PER_WEEK)])

    @property
    def total(self) -> int:
        return sum(sum(row) for row in self.cells)

    def intensity(self, day: int, hour: int) -> float:
        """Cell value scaled to 0..1 against ``max``; 0 everywhere when empty."""
        if self.max == 0:
            return 0.0
        return self.cells[day][hour] / self.max


class OptionIndex(_Model):
    """Sorted distinct values offered for each filter dimension."""

    students: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    teachers: tuple[str, ...] = ()

    def preserve(self, selection: FilterSelection) -> FilterSelection:
        """Keep selected values that still exist in this index, clear the rest."""
        return selection.model_copy(
            update={
                "student": selection.student if selection.student in self.students else None,
                "category": (
                    selection.category if selection.category in self.categories else None
                ),
                "teacher": selection.teacher if selection.teacher in self.teachers else None,
            }
        )


class Aggregation(_Model):
    """KPI summary, time series, top-ranked labels and heat matrix."""

    kpis: KpiSummary = Field(default_factory=KpiSummary)
    time_series: tuple[DayCount, ...] = ()
    top_ranked: tuple[LabelCount, ...] = ()
    heat_matrix: HeatMatrix = Field(default_factory=HeatMatrix.empty)


class ReportViewModel(Aggregation):
    """Everything the presentation layer needs for one filter state."""

    selection: FilterSelection
    options: OptionIndex = Field(default_factory=OptionIndex)
    records: tuple[IncidentRecord, ...] = ()


__all__ = [
    "Aggregation",
    "BehaviorDefinition",
    "BehaviorStatus",
    "DayCount",
    "FilterSelection",
    "HeatMatrix",
    "IncidentRecord",
    "KpiSummary",
    "LabelCount",
    "OptionIndex",
    "ReportViewModel",
]
