"""Tests for behavior_tracker.taxonomy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from behavior_tracker.models import BehaviorDefinition, BehaviorStatus
from behavior_tracker.taxonomy import BehaviorCatalog
from tests.conftest import ADMIN_EMAIL, NOW


class TestAdd:
    """Tests for BehaviorCatalog.add."""

    def test_creates_active_definition(self, catalog: BehaviorCatalog) -> None:
        definition = catalog.add("Out of seat", "Disruption", updated_by=ADMIN_EMAIL)
        assert definition is not None
        assert definition.status is BehaviorStatus.active
        assert definition.updated_at == NOW
        assert definition.updated_by == ADMIN_EMAIL
        assert catalog.get(definition.id) == definition

    def test_name_is_trimmed(self, catalog: BehaviorCatalog) -> None:
        definition = catalog.add("  Out of seat  ", "Disruption")
        assert definition is not None
        assert definition.name == "Out of seat"

    def test_blank_name_is_rejected(self, catalog: BehaviorCatalog) -> None:
        before = catalog.count
        assert catalog.add("   ", "Disruption") is None
        assert catalog.count == before

    def test_duplicate_is_case_insensitive(self, catalog: BehaviorCatalog) -> None:
        before = catalog.count
        assert catalog.add("TALKING", "Other") is None
        assert catalog.count == before

    def test_retired_name_can_be_reused(self, catalog: BehaviorCatalog) -> None:
        definition = catalog.add("humming", "Noise")
        assert definition is not None
        assert definition.id != "bhv-humming"

    def test_missing_category_defaults_to_other(self, catalog: BehaviorCatalog) -> None:
        assert catalog.add("Whistling").category == "Other"  # type: ignore[union-attr]
        assert catalog.add("Tapping", "  ").category == "Other"  # type: ignore[union-attr]


class TestRetire:
    """Tests for BehaviorCatalog.retire."""

    def test_retire_hides_from_listing(self, catalog: BehaviorCatalog) -> None:
        assert catalog.retire("bhv-talking", updated_by=ADMIN_EMAIL) is True
        assert "Talking" not in [d.name for d in catalog.active()]

    def test_retired_definition_stays_resolvable(self, catalog: BehaviorCatalog) -> None:
        catalog.retire("bhv-talking", updated_by=ADMIN_EMAIL)
        definition = catalog.get("bhv-talking")
        assert definition is not None
        assert definition.status is BehaviorStatus.retired
        assert definition.updated_by == ADMIN_EMAIL

    def test_retire_unknown_or_retired(self, catalog: BehaviorCatalog) -> None:
        assert catalog.retire("missing") is False
        assert catalog.retire("bhv-humming") is False


class TestListing:
    """Tests for active() and by_category()."""

    def test_active_sorted_by_category_then_name(self, catalog: BehaviorCatalog) -> None:
        catalog.add("Arguing", "Defiance")
        names = [d.name for d in catalog.active()]
        assert names == ["Arguing", "Refusal", "Talking", "Kind words"]

    def test_by_category(self, catalog: BehaviorCatalog) -> None:
        grouped = catalog.by_category()
        assert list(grouped) == ["Defiance", "Disruption", "Positive"]
        assert [d.name for d in grouped["Disruption"]] == ["Talking"]

    def test_empty_catalog(self) -> None:
        catalog = BehaviorCatalog()
        assert catalog.active() == []
        assert catalog.by_category() == {}

    def test_find_active(self, catalog: BehaviorCatalog) -> None:
        assert catalog.find_active(" talking ").id == "bhv-talking"  # type: ignore[union-attr]
        assert catalog.find_active("humming") is None


class TestLoading:
    """Tests for load() and bulk_import_json()."""

    def test_load_counts_new_definitions(
        self, behaviors: list[BehaviorDefinition]
    ) -> None:
        catalog = BehaviorCatalog()
        assert catalog.load(behaviors) == 4
        assert catalog.load(behaviors[:1]) == 0

    def test_bulk_import_json_accepts_legacy_flag(self) -> None:
        catalog = BehaviorCatalog()
        catalog.bulk_import_json(
            [
                {"id": "b1", "name": "Talking", "category": "Disruption"},
                {"id": "b2", "name": "Humming", "active": False},
            ]
        )
        assert [d.id for d in catalog.active()] == ["b1"]
        assert catalog.get("b2").status is BehaviorStatus.retired  # type: ignore[union-attr]

    def test_bulk_import_json_rejects_bad_documents(self) -> None:
        with pytest.raises(ValidationError):
            BehaviorCatalog().bulk_import_json([{"category": "No name or id"}])


class TestSubscribe:
    """Tests for subscribe()."""

    def test_delivers_snapshot_immediately(self, catalog: BehaviorCatalog) -> None:
        snapshots: list[list[BehaviorDefinition]] = []
        catalog.subscribe(snapshots.append)
        assert len(snapshots) == 1
        assert len(snapshots[0]) == 3

    def test_delivers_after_each_change(self, catalog: BehaviorCatalog) -> None:
        snapshots: list[list[BehaviorDefinition]] = []
        subscription = catalog.subscribe(snapshots.append)
        catalog.add("Arguing", "Defiance")
        catalog.retire("bhv-talking")
        catalog.add("talking", "Disruption")
        subscription.cancel()
        catalog.add("Yelling", "Disruption")
        assert [len(s) for s in snapshots] == [3, 4, 3, 4]

    def test_rejected_add_does_not_notify(self, catalog: BehaviorCatalog) -> None:
        snapshots: list[list[BehaviorDefinition]] = []
        catalog.subscribe(snapshots.append)
        catalog.add("Talking")
        assert len(snapshots) == 1
