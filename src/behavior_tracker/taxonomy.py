"""Admin-curated catalog of loggable behaviors."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from behavior_tracker.models import DEFAULT_CATEGORY, BehaviorDefinition, BehaviorStatus
from behavior_tracker.store import Broadcaster, Subscription

logger = logging.getLogger(__name__)


def _sort_key(definition: BehaviorDefinition) -> tuple[str, str]:
    return (definition.category.casefold(), definition.name.casefold())


class BehaviorCatalog:
    """Behavior definitions with duplicate rejection and soft retirement.

    Retired definitions stay in the catalog so that incidents referring to
    them remain resolvable, but they are left out of every listing.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._definitions: dict[str, BehaviorDefinition] = {}
        self._changes: Broadcaster[list[BehaviorDefinition]] = Broadcaster()

    def _publish(self) -> None:
        self._changes.publish(self.active())

    def find_active(self, name: str) -> BehaviorDefinition | None:
        """Case-insensitive lookup among active definitions."""
        wanted = name.strip().casefold()
        for definition in self._definitions.values():
            if definition.active and definition.name.casefold() == wanted:
                return definition
        return None

    def add(
        self,
        name: str,
        category: str | None = None,
        updated_by: str = "",
    ) -> BehaviorDefinition | None:
        """Create an active definition.

        Returns None without changing anything when ``name`` is blank or an
        active definition already uses it (case-insensitively).
        """
        name = name.strip()
        if not name:
            return None
        if self.find_active(name) is not None:
            logger.info("Rejected duplicate behavior name %r", name)
            return None

        definition = BehaviorDefinition(
            id=uuid.uuid4().hex,
            name=name,
            category=(category or "").strip() or DEFAULT_CATEGORY,
            updated_at=self._clock(),
            updated_by=updated_by,
        )
        self._definitions[definition.id] = definition
        logger.info("Added behavior %r in %r", definition.name, definition.category)
        self._publish()
        return definition

    def retire(self, behavior_id: str, updated_by: str = "") -> bool:
        """Soft-delete a definition; False if unknown or already retired."""
        definition = self._definitions.get(behavior_id)
        if definition is None or not definition.active:
            return False
        self._definitions[behavior_id] = definition.model_copy(
            update={
                "status": BehaviorStatus.retired,
                "updated_at": self._clock(),
                "updated_by": updated_by,
            }
        )
        logger.info("Retired behavior %r", definition.name)
        self._publish()
        return True

    def load(self, definitions: list[BehaviorDefinition]) -> int:
        """Insert or overwrite definitions as-is; return how many were new."""
        before = len(self._definitions)
        for definition in definitions:
            self._definitions[definition.id] = definition
        self._publish()
        return len(self._definitions) - before

    def bulk_import_json(self, data: list[dict[str, Any]]) -> int:
        """Validate and load definitions from a JSON array of documents."""
        return self.load([BehaviorDefinition.model_validate(item) for item in data])

    def get(self, behavior_id: str) -> BehaviorDefinition | None:
        """Return a definition by id, retired ones included."""
        return self._definitions.get(behavior_id)

    def active(self) -> list[BehaviorDefinition]:
        """Active definitions ordered by category, then name."""
        return sorted(
            (d for d in self._definitions.values() if d.active), key=_sort_key
        )

    def by_category(self) -> dict[str, list[BehaviorDefinition]]:
        """Active definitions grouped under their category, categories sorted."""
        grouped: dict[str, list[BehaviorDefinition]] = {}
        for definition in self.active():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    def subscribe(
        self, callback: Callable[[list[BehaviorDefinition]], None]
    ) -> Subscription:
        """Deliver the active snapshot now and after every change."""
        subscription = self._changes.subscribe(callback)
        callback(self.active())
        return subscription

    @property
    def count(self) -> int:
        return len(self._definitions)


__all__ = ["BehaviorCatalog"]
