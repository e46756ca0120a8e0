"""
Activity type use cases: batch update, default seeding and reads.

Every mutation for an owner runs under that owner's lock and inside one unit
of work, so a rejected or failed batch leaves nothing behind and two batches
for the same owner never interleave.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from activity_types.core import events
from activity_types.core.config import Settings, get_settings
from activity_types.core.locks import OwnerLock, get_owner_lock
from activity_types.db.models import DEFAULT_ICON, ActivityType, User, new_id
from activity_types.db.session import get_session, unit_of_work
from activity_types.domain.batch import ActivityTypeDraft, BatchUpdate
from activity_types.domain.errors import (
    ActivityTypeError,
    ActivityTypeNotOwned,
    FriendReferenceNotFound,
    NoOpError,
    OwnerNotFound,
)
from activity_types.domain.ordering import (
    assign_order_numbers,
    keep_current_positions,
    next_order_num,
    validate_batch,
)
from activity_types.repositories.sql_repository import ActivityTypeRepository, UserDirectory
from activity_types.services.reorder_service import ConflictFreeReorderer

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_TYPES: tuple[tuple[str, str], ...] = (
    ("Chill", "🛋️"),
    ("Food", "🍽️"),
    ("Active", "🏃"),
    ("Study", "✏️"),
)


class ActivityTypeService:
    """Owner-scoped batch updates over the activity type store."""

    def __init__(self, *, lock: OwnerLock | None = None, settings: Settings | None = None) -> None:
        self.lock = lock or get_owner_lock()
        self.settings = settings or get_settings()

    # -------------------------------------- reads --------------------------------------
    def get_activity_types(self, owner_id: str) -> list[ActivityType]:
        with get_session() as session:
            return ActivityTypeRepository(session).list_by_owner(str(owner_id))

    def next_order_number(self, owner_id: str) -> int:
        with get_session() as session:
            return next_order_num(ActivityTypeRepository(session).max_order_num_by_owner(str(owner_id)))

    # -------------------------------------- batch --------------------------------------
    def update_activity_types(self, owner_id: str, batch: BatchUpdate | Mapping[str, Any]) -> list[ActivityType]:
        """Apply deletions, creates, updates and reorders for one owner as a single unit.

        Returns the owner's full list ordered by ``order_num``.
        """
        owner_id = str(owner_id)
        if not isinstance(batch, BatchUpdate):
            batch = BatchUpdate.from_dict(batch)
        try:
            with self.lock.hold(owner_id):
                if batch.is_empty:
                    raise NoOpError("No activity types to update or delete")
                with unit_of_work() as session:
                    result = self._run_batch(session, owner_id, batch)
        except (ActivityTypeError, SQLAlchemyError) as exc:
            logger.error("Error batch updating activity types for user %s: %s", owner_id, exc)
            raise

        events.publish(
            events.ACTIVITY_TYPES_CHANGED,
            {
                "owner_id": owner_id,
                "updated": len(batch.updated),
                "deleted": len(batch.deleted_ids),
                "total": len(result),
            },
        )
        return result

    def _run_batch(self, session, owner_id: str, batch: BatchUpdate) -> list[ActivityType]:
        repo = ActivityTypeRepository(session)
        users = UserDirectory(session)
        reorderer = ConflictFreeReorderer(repo, self.settings.quarantine_base)

        reorderer.repair_quarantined(owner_id)
        owner = users.get_user_by_id(owner_id)
        if owner is None:
            raise OwnerNotFound(owner_id)

        kept: dict[str, int] = {}
        if batch.updated:
            self._reject_foreign_ids(repo, owner_id, batch.updated)
            repo.flush()
            current = repo.list_by_owner(owner_id)
            logger.info(
                "Current state for user %s: %s pinned, %s total",
                owner_id,
                repo.count_pinned_by_owner(owner_id),
                repo.count_by_owner(owner_id),
            )
            batch = replace(batch, updated=tuple(keep_current_positions(current, batch.updated)))
            validate_batch(current, batch, self.settings.max_pinned_activity_types)
            current_ids = {item.id for item in current}
            kept = {draft.id: draft.order_num for draft in batch.updated if draft.id in current_ids}

        if batch.deleted_ids:
            logger.info("Deleting activity types with IDs: %s", list(batch.deleted_ids))
            repo.delete_many_by_id(owner_id, batch.deleted_ids)

        if batch.updated:
            logger.info("Saving updated or newly created activity types for user: %s", owner.username)
            self._save_drafts(repo, users, reorderer, owner_id, batch.updated)

        reorderer.compact(owner_id, kept)
        return repo.list_by_owner(owner_id)

    def _reject_foreign_ids(
        self, repo: ActivityTypeRepository, owner_id: str, drafts: Sequence[ActivityTypeDraft]
    ) -> None:
        for draft in drafts:
            if draft.id is None:
                continue
            item_owner = repo.owner_of(draft.id)
            if item_owner is not None and item_owner != owner_id:
                raise ActivityTypeNotOwned(f"Activity type {draft.id} does not belong to this user")

    def _resolve_friends(self, users: UserDirectory, draft: ActivityTypeDraft) -> list[User]:
        friends: list[User] = []
        for friend_id in draft.associated_friend_ids:
            try:
                friends.append(users.require_friend(friend_id, draft.title or ""))
            except FriendReferenceNotFound as exc:
                logger.warning("Skipping associated friend: %s", exc)
        return friends

    def _save_drafts(
        self,
        repo: ActivityTypeRepository,
        users: UserDirectory,
        reorderer: ConflictFreeReorderer,
        owner_id: str,
        drafts: Sequence[ActivityTypeDraft],
    ) -> None:
        existing = {item.id: item for item in repo.list_by_owner(owner_id)}
        friends = [self._resolve_friends(users, draft) for draft in drafts]
        assigned = assign_order_numbers(existing.keys(), repo.max_order_num_by_owner(owner_id), drafts)

        creates: list[ActivityType] = []
        targets: list[tuple[ActivityType, int]] = []
        for draft, draft_friends in zip(assigned, friends):
            entity = existing.get(draft.id) if draft.id is not None else None
            if entity is None:
                creates.append(
                    ActivityType(
                        id=draft.id or new_id(),
                        title=draft.title or "",
                        icon=draft.icon or DEFAULT_ICON,
                        owner_id=owner_id,
                        order_num=draft.order_num,
                        is_pinned=draft.pinned,
                        associated_friends=draft_friends,
                    )
                )
                continue
            if draft.title is not None:
                entity.title = draft.title
            if draft.icon:
                entity.icon = draft.icon
            entity.is_pinned = draft.pinned
            entity.associated_friends = draft_friends
            targets.append((entity, draft.order_num))

        # creates hold order numbers past the current max, so they go in directly
        if creates:
            repo.save_many(creates)
            logger.info("Saved %s new activity types", len(creates))
        if targets:
            reorderer.reorder(owner_id, targets)

    # -------------------------------------- seeding --------------------------------------
    def initialize_default_activity_types(self, owner_id: str) -> list[ActivityType]:
        """Create the default set for an owner with no activity types; no-op otherwise.

        Returns the newly created items (empty when the owner already had some).
        """
        owner_id = str(owner_id)
        with self.lock.hold(owner_id):
            with unit_of_work() as session:
                repo = ActivityTypeRepository(session)
                owner = UserDirectory(session).get_user_by_id(owner_id)
                if owner is None:
                    raise OwnerNotFound(owner_id)
                existing = repo.count_by_owner(owner_id)
                if existing:
                    logger.info(
                        "User %s already has %s activity types. Skipping initialization.", owner.username, existing
                    )
                    return []
                start = next_order_num(repo.max_order_num_by_owner(owner_id))
                created = repo.save_many(
                    ActivityType(owner_id=owner_id, title=title, icon=icon, order_num=start + i, is_pinned=False)
                    for i, (title, icon) in enumerate(DEFAULT_ACTIVITY_TYPES)
                )
                username = owner.username
        logger.info("Initialized %s default activity types for user: %s", len(created), username)
        events.publish(events.ACTIVITY_TYPES_INITIALIZED, {"owner_id": owner_id, "count": len(created)})
        return created

    def initialize_all_users(self) -> dict[str, int]:
        """Seed defaults for every user without activity types; one failure does not stop the run."""
        with get_session() as session:
            user_ids = [user.id for user in UserDirectory(session).list_users()]
        logger.info("Starting activity type initialization for %s users", len(user_ids))

        stats = {"initialized": 0, "skipped": 0, "failed": 0}
        for user_id in user_ids:
            try:
                created = self.initialize_default_activity_types(user_id)
            except (ActivityTypeError, SQLAlchemyError) as exc:
                logger.error("Error initializing activity types for user %s: %s", user_id, exc)
                stats["failed"] += 1
                continue
            stats["initialized" if created else "skipped"] += 1

        logger.info(
            "Activity type initialization completed: %s users initialized, %s users skipped, %s failed",
            stats["initialized"],
            stats["skipped"],
            stats["failed"],
        )
        return stats

    def on_user_created(self, payload: Mapping[str, Any]) -> None:
        self.initialize_default_activity_types(payload["user_id"])


def register_event_handlers(service: Optional[ActivityTypeService] = None) -> ActivityTypeService:
    """Seed default activity types whenever a user is created."""
    svc = service or ActivityTypeService()
    events.subscribe(events.USER_CREATED, svc.on_user_created)
    return svc
