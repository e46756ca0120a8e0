"""User registration helpers that announce new users to other modules."""
from __future__ import annotations

from activity_types.core import events
from activity_types.db.models import User
from activity_types.db.session import unit_of_work
from activity_types.repositories.sql_repository import UserDirectory


def create_user(username: str, user_id: str | None = None) -> User:
    """Persist a user and publish ``user.created`` once it is committed."""
    name = (username or "").strip()
    if not name:
        raise ValueError("username must not be empty")
    with unit_of_work() as session:
        user = UserDirectory(session).create_user(name, user_id=user_id)
    events.publish(events.USER_CREATED, {"user_id": user.id, "username": user.username})
    return user
