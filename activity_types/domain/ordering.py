"""
Pure ordering rules for a per-owner activity type collection.

Nothing here touches the database: callers pass the owner's current items
(anything with ``id``, ``order_num`` and ``is_pinned``) and the batch, and get
back either transformed drafts or a validation error.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from activity_types.domain.batch import ActivityTypeDraft, BatchUpdate
from activity_types.domain.errors import (
    DuplicateOrderNum,
    OrderNumConflict,
    OrderNumOutOfRange,
    PinnedLimitExceeded,
)

logger = logging.getLogger(__name__)


class OrderedItem(Protocol):
    id: str
    order_num: int
    is_pinned: bool


@dataclass(frozen=True)
class BatchProjection:
    """Counts describing the owner's collection once the batch is applied."""

    final_pinned: int
    final_total: int
    deleted_pinned: int
    new_creations: int


def next_order_num(max_order_num: Optional[int]) -> int:
    return (max_order_num or 0) + 1


def assign_order_numbers(
    existing_ids: Iterable[str],
    max_order_num: Optional[int],
    drafts: Sequence[ActivityTypeDraft],
) -> list[ActivityTypeDraft]:
    """Give every create a fresh order number past the current max.

    Drafts whose id already belongs to the owner keep the order number the
    caller chose for them.
    """
    known = set(existing_ids)
    nxt = next_order_num(max_order_num)
    processed: list[ActivityTypeDraft] = []
    for draft in drafts:
        if draft.id is not None and draft.id in known:
            processed.append(draft)
            continue
        processed.append(draft.with_order_num(nxt))
        logger.info("Assigned orderNum %s to new activity type: %s", nxt, draft.title or draft.id)
        nxt += 1
    return processed


def keep_current_positions(current: Sequence[OrderedItem], drafts: Sequence[ActivityTypeDraft]) -> list[ActivityTypeDraft]:
    """Existing items sent without an order number stay where they are."""
    by_id = {item.id: item for item in current}
    result: list[ActivityTypeDraft] = []
    for draft in drafts:
        item = by_id.get(draft.id) if draft.id is not None else None
        if item is not None and draft.order_num is None:
            draft = draft.with_order_num(item.order_num)
        result.append(draft)
    return result


def validate_batch(current: Sequence[OrderedItem], batch: BatchUpdate, max_pinned: int) -> BatchProjection:
    """Check the projected final state of ``batch`` against the owner's ``current`` items.

    Raises one of the ActivityTypeValidationError subclasses; nothing has
    been written when this runs, so a rejection leaves the store untouched.
    """
    current_ids = {item.id for item in current}
    deleted_ids = set(batch.deleted_ids)
    updated_ids = {draft.id for draft in batch.updated if draft.id is not None}

    deleted_pinned = sum(1 for item in current if item.id in deleted_ids and item.is_pinned)
    unchanged_pinned = sum(
        1 for item in current if item.id not in deleted_ids and item.id not in updated_ids and item.is_pinned
    )
    updated_pinned = sum(1 for draft in batch.updated if draft.pinned)
    final_pinned = unchanged_pinned + updated_pinned

    logger.info(
        "Validating batch: %s current (%s pinned), %s deletions (%s pinned), %s updates (%s pinned), %s unchanged pinned",
        len(current),
        sum(1 for item in current if item.is_pinned),
        len(deleted_ids),
        deleted_pinned,
        len(batch.updated),
        updated_pinned,
        unchanged_pinned,
    )

    if final_pinned > max_pinned:
        raise PinnedLimitExceeded(
            f"Cannot have more than {max_pinned} pinned activity types. Requested: {final_pinned}"
        )

    deletion_count = len(deleted_ids & current_ids)
    new_creations = sum(1 for draft in batch.updated if draft.id is None or draft.id not in current_ids)
    final_total = len(current) - deletion_count + new_creations

    repositioned = [draft for draft in batch.updated if draft.id is not None and draft.id in current_ids]
    for draft in repositioned:
        if draft.order_num is None or draft.order_num < 1 or draft.order_num > final_total:
            raise OrderNumOutOfRange(
                f"Invalid orderNum {draft.order_num} for activity type '{draft.title or draft.id}'. "
                f"Must be in range [1, {final_total}]"
            )

    target_order_nums = [draft.order_num for draft in repositioned]
    if len(set(target_order_nums)) != len(target_order_nums):
        raise DuplicateOrderNum(
            "Duplicate orderNum values detected in update. Each activity type must have a unique orderNum."
        )

    untouched_order_nums = {
        item.order_num for item in current if item.id not in deleted_ids and item.id not in updated_ids
    }
    for order_num in target_order_nums:
        if order_num in untouched_order_nums:
            raise OrderNumConflict(
                f"orderNum {order_num} conflicts with existing activity type. "
                "Each activity type must have a unique orderNum."
            )

    logger.info(
        "Activity type validation passed: %s pinned (max %s), orderNum range [1, %s], unique orderNums",
        final_pinned,
        max_pinned,
        final_total,
    )
    return BatchProjection(
        final_pinned=final_pinned,
        final_total=final_total,
        deleted_pinned=deleted_pinned,
        new_creations=new_creations,
    )


def compacted_positions(items: Sequence[OrderedItem], fixed: Mapping[str, int] | None = None) -> dict[str, int]:
    """Map item id to its final 1-based slot, for items whose order number must change.

    Items in ``fixed`` keep their given slot when it lies in ``1..len(items)``;
    the rest fill the remaining slots in their current relative order.
    """
    total = len(items)
    present = {item.id for item in items}
    held: dict[str, int] = {}
    taken: set[int] = set()
    for item_id, slot in (fixed or {}).items():
        if item_id in present and 1 <= slot <= total and slot not in taken:
            held[item_id] = slot
            taken.add(slot)

    free_slots = iter(slot for slot in range(1, total + 1) if slot not in taken)
    ranked = sorted((item for item in items if item.id not in held), key=lambda item: (item.order_num, item.id))
    placement = dict(held)
    for item in ranked:
        placement[item.id] = next(free_slots)
    return {item.id: placement[item.id] for item in items if item.order_num != placement[item.id]}
