"""Quickstart examples for behavior-tracker.

Demonstrates the core API: curating the behavior catalog, logging incidents,
building reports with filters, and exporting CSV.

Run this file directly to verify your installation:

    python examples/quickstart.py

No server or network access is required. All examples use synthetic data
defined inline.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from behavior_tracker.core import AggregationEngine, ReportAssembler
from behavior_tracker.models import IncidentRecord
from behavior_tracker.selection import build_selection, encode_option
from behavior_tracker.session import ReportSession
from behavior_tracker.store import InMemoryRecordStore
from behavior_tracker.taxonomy import BehaviorCatalog

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


# ---------------------------------------------------------------------------
# Shared sample data
# ---------------------------------------------------------------------------

def _make_catalog() -> BehaviorCatalog:
    catalog = BehaviorCatalog()
    catalog.add("Talking out", "Disruption", updated_by="admin@example.org")
    catalog.add("Out of seat", "Disruption", updated_by="admin@example.org")
    catalog.add("Refusal", "Defiance", updated_by="admin@example.org")
    catalog.add("Kind words", "Positive", updated_by="admin@example.org")
    return catalog


def _make_store(catalog: BehaviorCatalog) -> InMemoryRecordStore:
    """Log a week of incidents from two teachers."""
    start = datetime.now(tz=UTC).replace(hour=8, minute=0, second=0, microsecond=0)
    moments = iter(start - timedelta(days=day, hours=-hour) for day in range(7) for hour in range(6))
    store = InMemoryRecordStore(clock=lambda: next(moments))

    behaviors = catalog.active()
    students = ["A.B.", "C.D.", "E.F."]
    teachers = ["ms.rivera@example.org", "mr.chen@example.org"]
    for index in range(42):
        store.log_incident(
            behaviors[index % len(behaviors)],
            student_name=students[index % len(students)],
            teacher_email=teachers[index % len(teachers)],
            grade="K",
        )
    return store


# ---------------------------------------------------------------------------
# Demo 1: Curating the behavior catalog
# ---------------------------------------------------------------------------

def demo_catalog() -> BehaviorCatalog:
    """Show duplicate rejection and soft retirement."""
    print("\n" + "=" * 60)
    print("Demo 1: Behavior Catalog")
    print("=" * 60)

    catalog = _make_catalog()
    duplicate = catalog.add("talking OUT", "Disruption")
    print(f"add('talking OUT') while 'Talking out' is active -> {duplicate}")

    retired = catalog.add("Humming", "Disruption")
    assert retired is not None
    catalog.retire(retired.id)
    print(f"Retired 'Humming'; still resolvable: {catalog.get(retired.id).status.value}")

    for category, definitions in catalog.by_category().items():
        print(f"  {category}: {', '.join(d.name for d in definitions)}")
    return catalog


# ---------------------------------------------------------------------------
# Demo 2: Aggregating a record set
# ---------------------------------------------------------------------------

def demo_aggregation(store: InMemoryRecordStore) -> None:
    """Show KPIs, the daily series, top behaviors and the heat matrix."""
    print("\n" + "=" * 60)
    print("Demo 2: Aggregation")
    print("=" * 60)

    engine = AggregationEngine(top_n=3)
    pending = IncidentRecord(
        id="pending-1",
        student_name="A.B.",
        behavior_name="Refusal",
        category="Defiance",
        day_key=datetime.now(tz=UTC).strftime("%Y-%m-%d"),
        created_at=None,
    )
    records = store.all() + [pending]
    result = engine.aggregate(records)

    kpis = result.kpis
    print(f"Total incidents   : {kpis.total_incidents}")
    print(f"Students impacted : {kpis.students_impacted}")
    print(f"Teachers logging  : {kpis.teachers_logging}")
    print(f"Top behavior      : {kpis.top_behavior.label} ({kpis.top_behavior.count})")

    print("\nIncidents per day:")
    for point in result.time_series:
        print(f"  {point.day}: {'#' * point.count} ({point.count})")

    print("\nTop 3 behaviors:")
    for ranked in result.top_ranked:
        print(f"  {ranked.label:<15} {ranked.count}")

    matrix = result.heat_matrix
    print(f"\nHeat matrix total {matrix.total} (pending record excluded), max {matrix.max}")
    for day, row in enumerate(matrix.cells):
        busy = [f"{hour:02d}h" for hour, value in enumerate(row) if value]
        print(f"  {DAY_NAMES[day]}: {' '.join(busy) or '-'}")


# ---------------------------------------------------------------------------
# Demo 3: Report session with filters and CSV export
# ---------------------------------------------------------------------------

def demo_session(store: InMemoryRecordStore, catalog: BehaviorCatalog) -> None:
    """Show loading, re-filtering without refetching, and CSV export."""
    print("\n" + "=" * 60)
    print("Demo 3: Report Session")
    print("=" * 60)

    session = ReportSession("admin@example.org", store, catalog)
    session.start()

    report = session.load()
    print(f"Default window {report.selection.start_date} .. {report.selection.end_date}")
    print(f"  teachers offered: {', '.join(report.options.teachers)}")
    print(f"  categories offered: {', '.join(report.options.categories)}")

    # Values arrive percent-encoded from the selectable list.
    teacher = encode_option("mr.chen@example.org")
    filtered = session.refilter(teacher=teacher, encoded=True)
    print(f"\nFiltered to mr.chen: {filtered.kpis.total_incidents} incidents")

    filename, text = session.export_csv()
    lines = text.splitlines()
    print(f"\n{filename}: {len(lines) - 1} rows")
    for line in lines[:3]:
        print(f"  {line}")

    session.close()


def demo_assembler(store: InMemoryRecordStore, catalog: BehaviorCatalog) -> None:
    """Show that re-assembling with the same input is deterministic."""
    print("\n" + "=" * 60)
    print("Demo 4: Deterministic Assembly")
    print("=" * 60)

    assembler = ReportAssembler()
    selection = build_selection(today=datetime.now(tz=UTC).date(), category="Disruption")
    first = assembler.assemble(store.all(), catalog.active(), selection)
    second = assembler.assemble(store.all(), catalog.active(), selection)
    print(f"Identical output: {first.model_dump_json() == second.model_dump_json()}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    """Run all quickstart demos."""
    print("behavior-tracker Quickstart")
    print("=" * 60)

    catalog = demo_catalog()
    store = _make_store(catalog)
    demo_aggregation(store)
    demo_session(store, catalog)
    demo_assembler(store, catalog)

    print("\n" + "=" * 60)
    print("All demos completed successfully.")
    print("=" * 60)


if __name__ == "__main__":
    main()
