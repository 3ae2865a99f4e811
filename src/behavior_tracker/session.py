"""Per-viewer report state owned by the host from sign-in to sign-out."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime

from behavior_tracker.core import ReportAssembler
from behavior_tracker.export import export_filename, render_csv
from behavior_tracker.models import (
    BehaviorDefinition,
    FilterSelection,
    IncidentRecord,
    ReportViewModel,
)
from behavior_tracker.selection import DEFAULT_WINDOW_DAYS, build_selection
from behavior_tracker.store import RecordStore, RecordStoreError, Subscription
from behavior_tracker.taxonomy import BehaviorCatalog

logger = logging.getLogger(__name__)


class ReportFetchError(RuntimeError):
    """Fetching records for a report failed; the previous report is kept."""


class ReportSession:
    """Selection, fetched records, taxonomy snapshot and latest report for one viewer.

    Replaces process-wide globals: the host creates one session per signed-in
    viewer, calls :meth:`start`, and calls :meth:`close` on sign-out.
    """

    def __init__(
        self,
        viewer: str,
        store: RecordStore,
        catalog: BehaviorCatalog,
        assembler: ReportAssembler | None = None,
        today: Callable[[], date] | None = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> None:
        self.viewer = viewer
        self._store = store
        self._catalog = catalog
        self.assembler = assembler or ReportAssembler()
        self._today = today or (lambda: datetime.now(tz=self.assembler.tz).date())
        self.window_days = window_days

        self.selection: FilterSelection | None = None
        self.records: list[IncidentRecord] = []
        self.taxonomy: list[BehaviorDefinition] = catalog.active()
        self.report: ReportViewModel | None = None
        self._subscription: Subscription | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Follow taxonomy changes until :meth:`close`."""
        if self._subscription is None:
            self._subscription = self._catalog.subscribe(self._on_taxonomy)

    def close(self) -> None:
        """Stop following the taxonomy and drop all cached state."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.selection = None
        self.records = []
        self.report = None

    @property
    def listening(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def _on_taxonomy(self, definitions: list[BehaviorDefinition]) -> None:
        self.taxonomy = definitions
        if self.selection is not None:
            records = self.records
            options = self.assembler.option_builder.build(records, definitions)
            self._rebuild(options.preserve(self.selection), records)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _rebuild(
        self,
        selection: FilterSelection,
        records: list[IncidentRecord] | None = None,
    ) -> ReportViewModel:
        report = self.assembler.assemble(
            self.records if records is None else records, self.taxonomy, selection
        )
        self.selection, self.report = selection, report
        return report

    def load(
        self,
        start: str | date | None = None,
        end: str | date | None = None,
        student: str | None = None,
        category: str | None = None,
        teacher: str | None = None,
        encoded: bool = False,
    ) -> ReportViewModel:
        """Fetch records for the date range and build a report.

        Selected values that no longer occur in the refreshed option lists
        are cleared.

        Raises:
            ReportFetchError: the store query failed. ``report`` keeps the
                previous result.
        """
        selection = build_selection(
            today=self._today(),
            start=start,
            end=end,
            student=student,
            category=category,
            teacher=teacher,
            encoded=encoded,
            window_days=self.window_days,
        )
        start_dt, end_dt = selection.bounds(self.assembler.tz)
        try:
            records = self._store.query_by_time_range(start_dt, end_dt)
        except RecordStoreError as exc:
            logger.warning("Report fetch for %s failed: %s", self.viewer, exc)
            raise ReportFetchError(str(exc)) from exc

        self.records = records
        options = self.assembler.option_builder.build(records, self.taxonomy)
        return self._rebuild(options.preserve(selection), records)

    def refilter(
        self,
        student: str | None = None,
        category: str | None = None,
        teacher: str | None = None,
        encoded: bool = False,
    ) -> ReportViewModel:
        """Apply new categorical filters to the records already fetched."""
        if self.selection is None:
            return self.load(
                student=student, category=category, teacher=teacher, encoded=encoded
            )
        selection = build_selection(
            today=self._today(),
            start=self.selection.start_date,
            end=self.selection.end_date,
            student=student,
            category=category,
            teacher=teacher,
            encoded=encoded,
            window_days=self.window_days,
        )
        return self._rebuild(selection)

    def reset(self) -> ReportViewModel:
        """Reload with the default window and no filters."""
        return self.load()

    def export_csv(self, report: ReportViewModel | None = None) -> tuple[str, str]:
        """Return ``(filename, csv_text)`` for ``report``.

        Without ``report`` the latest report is exported, loading the default
        window first if nothing was loaded yet. Hosts that serve concurrent
        requests pass the report their own request produced.
        """
        if report is None:
            report = self.report if self.report is not None else self.load()
        rows = self.assembler.csv_rows(report.records, report.selection)
        return export_filename(self._today()), render_csv(rows)


__all__ = ["ReportFetchError", "ReportSession"]
