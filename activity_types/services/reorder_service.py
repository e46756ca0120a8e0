"""
Conflict-free reordering of existing activity types.

The store checks ``(owner_id, order_num)`` uniqueness on every flushed write,
so moving items straight to their targets can collide with each other (a swap)
or with an item outside the batch that sits on a target slot. Moves go through
negative placeholder values instead; real order numbers are always >= 1.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence, Tuple

from activity_types.db.models import ActivityType
from activity_types.domain.ordering import compacted_positions, next_order_num
from activity_types.repositories.sql_repository import ActivityTypeRepository

logger = logging.getLogger(__name__)


class ConflictFreeReorderer:
    """Moves existing items to new order numbers without a transient duplicate."""

    def __init__(self, repository: ActivityTypeRepository, quarantine_base: int = 1000) -> None:
        self.repository = repository
        self.quarantine_base = quarantine_base

    def reorder(self, owner_id: str, targets: Sequence[Tuple[ActivityType, int]]) -> list[ActivityType]:
        """Write each item's target order number in four flushed phases.

        Phase 1: every item in ``targets`` goes to ``-(base + i)``.
        Phase 2: items outside the batch holding a target value go to
        ``-(base + n + j)``.
        Phase 3: batch items take their real targets.
        Phase 4: items displaced in phase 2 are appended after the new max,
        keeping their previous relative order.

        Returns the items displaced in phase 2.
        """
        if not targets:
            return []
        n = len(targets)
        base = self.quarantine_base
        logger.info("Updating %s existing activity types with constraint handling", n)

        target_by_id = {item.id: int(order_num) for item, order_num in targets}
        target_values = set(target_by_id.values())

        for i, (item, _) in enumerate(targets):
            temp = -(base + i)
            logger.info("Phase 1: moving '%s' to temporary orderNum %s", item.title, temp)
            item.order_num = temp
        self.repository.save_many(item for item, _ in targets)

        displaced = [
            item
            for item in self.repository.list_by_owner(owner_id)
            if item.id not in target_by_id and item.order_num in target_values
        ]
        for j, item in enumerate(displaced):
            temp = -(base + n + j)
            logger.info(
                "Phase 2: moving conflicting activity type '%s' from orderNum %s to temporary orderNum %s",
                item.title,
                item.order_num,
                temp,
            )
            item.order_num = temp
        self.repository.save_many(displaced)

        for item, _ in targets:
            item.order_num = target_by_id[item.id]
            logger.info("Phase 3: setting final orderNum %s for activity type: %s", item.order_num, item.title)
        self.repository.save_many(item for item, _ in targets)

        if displaced:
            nxt = next_order_num(self.repository.max_order_num_by_owner(owner_id))
            for item in displaced:
                logger.info("Phase 4: reassigning conflicting activity type '%s' to new orderNum %s", item.title, nxt)
                item.order_num = nxt
                nxt += 1
            self.repository.save_many(displaced)

        logger.info("Completed multi-phase update for %s activity types (%s displaced)", n, len(displaced))
        return displaced

    def compact(self, owner_id: str, fixed: Mapping[str, int] | None = None) -> int:
        """Close gaps so the owner's order numbers are exactly ``1..N``.

        Items named in ``fixed`` keep that order number; the others keep their
        relative order around them.
        """
        items = self.repository.list_by_owner(owner_id)
        positions = compacted_positions(items, fixed)
        if not positions:
            return 0
        logger.info("Compacting %s activity types for owner %s", len(positions), owner_id)
        self.reorder(owner_id, [(item, positions[item.id]) for item in items if item.id in positions])
        return len(positions)

    def repair_quarantined(self, owner_id: str) -> int:
        """Move placeholder (negative) values left by an interrupted run back past the max."""
        stranded = self.repository.list_quarantined(owner_id)
        if not stranded:
            return 0
        nxt = next_order_num(self.repository.max_order_num_by_owner(owner_id))
        for item in stranded:
            logger.warning(
                "Repairing quarantined activity type '%s' orderNum %s -> %s", item.title, item.order_num, nxt
            )
            item.order_num = nxt
            nxt += 1
        self.repository.save_many(stranded)
        return len(stranded)
