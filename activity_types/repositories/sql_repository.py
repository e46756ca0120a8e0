"""High-level data access helpers backed by SQLAlchemy.

Repositories here are bound to a caller-owned Session so a whole batch reads
and writes through one transaction. Every write is flushed right away: the
``(owner_id, order_num)`` constraint fires on that statement, and later reads
in the same session see it.
"""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from activity_types.db.models import ActivityType, User
from activity_types.domain.errors import FriendReferenceNotFound


class ActivityTypeRepository:
    """CRUD helpers for one owner's activity types."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -------------------------- reads --------------------------
    def list_by_owner(self, owner_id: str) -> list[ActivityType]:
        stmt = (
            select(ActivityType)
            .where(ActivityType.owner_id == owner_id)
            .order_by(ActivityType.order_num, ActivityType.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def exists_by_id(self, activity_type_id: str) -> bool:
        stmt = select(ActivityType.id).where(ActivityType.id == activity_type_id).limit(1)
        return self.session.execute(stmt).first() is not None

    def owner_of(self, activity_type_id: str) -> Optional[str]:
        stmt = select(ActivityType.owner_id).where(ActivityType.id == activity_type_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def max_order_num_by_owner(self, owner_id: str) -> Optional[int]:
        # quarantined (negative) values are placeholders, never a real position
        stmt = select(func.max(ActivityType.order_num)).where(
            ActivityType.owner_id == owner_id, ActivityType.order_num > 0
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def count_by_owner(self, owner_id: str) -> int:
        stmt = select(func.count(ActivityType.id)).where(ActivityType.owner_id == owner_id)
        return int(self.session.execute(stmt).scalar_one() or 0)

    def count_pinned_by_owner(self, owner_id: str) -> int:
        stmt = select(func.count(ActivityType.id)).where(
            ActivityType.owner_id == owner_id, ActivityType.is_pinned.is_(True)
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def list_quarantined(self, owner_id: str) -> list[ActivityType]:
        stmt = (
            select(ActivityType)
            .where(ActivityType.owner_id == owner_id, ActivityType.order_num < 0)
            .order_by(ActivityType.order_num.desc(), ActivityType.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    # -------------------------- writes --------------------------
    def save_one(self, item: ActivityType) -> ActivityType:
        self.session.add(item)
        self.session.flush()
        return item

    def save_many(self, items: Iterable[ActivityType]) -> list[ActivityType]:
        entities = list(items)
        if entities:
            self.session.add_all(entities)
            self.session.flush()
        return entities

    def delete_many_by_id(self, owner_id: str, ids: Iterable[str]) -> int:
        wanted = {str(i) for i in ids}
        if not wanted:
            return 0
        stmt = select(ActivityType).where(ActivityType.owner_id == owner_id, ActivityType.id.in_(wanted))
        entities = self.session.execute(stmt).scalars().all()
        # ORM deletes also clear the friend association rows
        for entity in entities:
            self.session.delete(entity)
        self.session.flush()
        return len(entities)

    def flush(self) -> None:
        self.session.flush()


class UserDirectory:
    """Lookups of users that own activity types or are referenced as friends."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.session.get(User, str(user_id))

    def require_friend(self, friend_id: str, title: str = "") -> User:
        friend = self.get_user_by_id(friend_id)
        if friend is None:
            raise FriendReferenceNotFound(friend_id, title)
        return friend

    def list_users(self) -> list[User]:
        return list(self.session.execute(select(User).order_by(User.created_at, User.id)).scalars().all())

    def create_user(self, username: str, user_id: str | None = None) -> User:
        user = User(username=username)
        if user_id:
            user.id = user_id
        self.session.add(user)
        self.session.flush()
        return user
