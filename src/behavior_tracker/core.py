"""Core logic: filtering, option domains, aggregation and report assembly."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, tzinfo
from typing import NamedTuple

from behavior_tracker.models import (
    DAYS_PER_WEEK,
    HOURS_PER_DAY,
    NO_DATA_LABEL,
    Aggregation,
    BehaviorDefinition,
    DayCount,
    FilterSelection,
    HeatMatrix,
    IncidentRecord,
    KpiSummary,
    LabelCount,
    OptionIndex,
    ReportViewModel,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 12

# ---------------------------------------------------------------------------
# Filter selection field -> record attribute
# ---------------------------------------------------------------------------

_PREDICATE_FIELDS: dict[str, str] = {
    "student": "student_name",
    "category": "category",
    "teacher": "teacher_email",
}


class CsvRow(NamedTuple):
    """One export row; the column order is the export contract."""

    date: str
    time: str
    student_initials: str
    behavior: str
    category: str
    teacher_email: str


class FilterEngine:
    """Narrow a record set by exact-match categorical predicates."""

    def apply(
        self, records: Iterable[IncidentRecord], selection: FilterSelection
    ) -> list[IncidentRecord]:
        """Keep records matching every predicate set on ``selection``.

        Matching is exact and case-sensitive. A record whose field is absent
        never matches a set predicate. With no predicates every record is kept.
        """
        predicates = [
            (_PREDICATE_FIELDS[key], value)
            for key, value in selection.predicates().items()
        ]
        if not predicates:
            return list(records)
        return [
            record
            for record in records
            if all(getattr(record, attr) == value for attr, value in predicates)
        ]


class OptionIndexBuilder:
    """Derive the distinct values offered by each filter dimension."""

    def build(
        self,
        records: Iterable[IncidentRecord],
        taxonomy: Iterable[BehaviorDefinition] = (),
    ) -> OptionIndex:
        """Collect students, categories and teachers, each sorted ordinally.

        Categories also come from active taxonomy entries so that a category
        with no incidents yet can already be selected.
        """
        students: set[str] = set()
        categories: set[str] = set()
        teachers: set[str] = set()

        for record in records:
            if record.student_name:
                students.add(record.student_name)
            if record.category:
                categories.add(record.category)
            if record.teacher_email:
                teachers.add(record.teacher_email)

        for definition in taxonomy:
            if definition.active and definition.category:
                categories.add(definition.category)

        return OptionIndex(
            students=tuple(sorted(students)),
            categories=tuple(sorted(categories)),
            teachers=tuple(sorted(teachers)),
        )


class AggregationEngine:
    """Summary statistics, time series, rankings and the weekly heat matrix.

    Every method is a pure function of its input records. ``tz`` is the wall
    clock used to derive calendar days and hours from record timestamps.
    """

    def __init__(self, tz: tzinfo = UTC, top_n: int = DEFAULT_TOP_N) -> None:
        if top_n < 1:
            raise ValueError(f"top_n must be positive, got {top_n}")
        self.tz = tz
        self.top_n = top_n

    def label_counts(self, records: Iterable[IncidentRecord]) -> list[LabelCount]:
        """Count records per behavior label, highest first, ties by label."""
        counts: Counter[str] = Counter(record.behavior_label() for record in records)
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [LabelCount(label=label, count=count) for label, count in ordered]

    def summarize(self, records: Iterable[IncidentRecord]) -> KpiSummary:
        """Compute the KPI cards for a record set."""
        records = list(records)
        students = {r.student_name for r in records if r.student_name}
        teachers = {r.teacher_email for r in records if r.teacher_email}
        ranked = self.label_counts(records)
        top = ranked[0] if ranked else LabelCount(label=NO_DATA_LABEL, count=0)
        return KpiSummary(
            total_incidents=len(records),
            students_impacted=len(students),
            teachers_logging=len(teachers),
            top_behavior=top,
        )

    def time_series(self, records: Iterable[IncidentRecord]) -> tuple[DayCount, ...]:
        """Count records per calendar day; only days present in the data appear."""
        counts: Counter[str] = Counter(record.day_bucket(self.tz) for record in records)
        return tuple(
            DayCount(day=day, count=count) for day, count in sorted(counts.items())
        )

    def top_ranked(
        self, records: Iterable[IncidentRecord], top_n: int | None = None
    ) -> tuple[LabelCount, ...]:
        """Return at most ``top_n`` behavior labels by descending count."""
        limit = self.top_n if top_n is None else top_n
        return tuple(self.label_counts(records)[:limit])

    def heat_matrix(self, records: Iterable[IncidentRecord]) -> HeatMatrix:
        """Bucket timestamped records by weekday (0=Sunday) and hour."""
        grid = [[0] * HOURS_PER_DAY for _ in range(DAYS_PER_WEEK)]
        for record in records:
            moment = record.local_timestamp(self.tz)
            if moment is None:
                continue
            # datetime.weekday() starts the week on Monday.
            day_of_week = (moment.weekday() + 1) % DAYS_PER_WEEK
            grid[day_of_week][moment.hour] += 1
        return HeatMatrix.from_grid(grid)

    def aggregate(self, records: Iterable[IncidentRecord]) -> Aggregation:
        """Compute every view for a record set in one pass over the input."""
        records = list(records)
        return Aggregation(
            kpis=self.summarize(records),
            time_series=self.time_series(records),
            top_ranked=self.top_ranked(records),
            heat_matrix=self.heat_matrix(records),
        )


class ReportAssembler:
    """Run option building, filtering and aggregation into one view model."""

    def __init__(
        self,
        aggregator: AggregationEngine | None = None,
        filter_engine: FilterEngine | None = None,
        option_builder: OptionIndexBuilder | None = None,
    ) -> None:
        self.aggregator = aggregator or AggregationEngine()
        self.filter_engine = filter_engine or FilterEngine()
        self.option_builder = option_builder or OptionIndexBuilder()

    @property
    def tz(self) -> tzinfo:
        return self.aggregator.tz

    def assemble(
        self,
        raw_records: Iterable[IncidentRecord],
        taxonomy: Iterable[BehaviorDefinition],
        selection: FilterSelection,
    ) -> ReportViewModel:
        """Build a fresh report for ``selection`` over already-fetched records.

        ``raw_records`` is not modified, so the same fetch can be re-filtered
        any number of times.
        """
        raw_records = list(raw_records)
        options = self.option_builder.build(raw_records, taxonomy)
        filtered = self.filter_engine.apply(raw_records, selection)
        aggregation = self.aggregator.aggregate(filtered)
        logger.debug(
            "Assembled report: %d of %d records match %s",
            len(filtered),
            len(raw_records),
            selection.predicates() or "no filters",
        )
        return ReportViewModel(
            **dict(aggregation),
            selection=selection,
            options=options,
            records=tuple(filtered),
        )

    def project_row(self, record: IncidentRecord) -> CsvRow:
        """Project one record onto the fixed export columns."""
        moment = record.local_timestamp(self.tz)
        if moment is not None:
            day = f"{moment.month}/{moment.day}/{moment.year}"
            clock = moment.strftime("%I:%M:%S %p")
        else:
            day = record.day_key or ""
            clock = ""
        return CsvRow(
            date=day,
            time=clock,
            student_initials=record.student_name or "",
            behavior=record.behavior_label(default=""),
            category=record.category_label(),
            teacher_email=record.teacher_email or "",
        )

    def csv_rows(
        self,
        raw_records: Iterable[IncidentRecord],
        selection: FilterSelection,
    ) -> list[CsvRow]:
        """Export rows for the records that pass ``selection``."""
        return [
            self.project_row(record)
            for record in self.filter_engine.apply(raw_records, selection)
        ]


__all__ = [
    "DEFAULT_TOP_N",
    "AggregationEngine",
    "CsvRow",
    "FilterEngine",
    "OptionIndexBuilder",
    "ReportAssembler",
]
