"""Exceptions raised by the activity type batch workflow."""

from __future__ import annotations


class ActivityTypeError(Exception):
    """Base exception for activity type workflows."""


class NoOpError(ActivityTypeError):
    """Raised when a batch carries neither updates nor deletions."""


class OwnerNotFound(ActivityTypeError):
    def __init__(self, owner_id: str):
        super().__init__(f"User {owner_id} not found")
        self.owner_id = owner_id


class FriendReferenceNotFound(ActivityTypeError):
    """An associated friend id did not resolve; the reference is dropped, never fatal."""

    def __init__(self, friend_id: str, title: str = ""):
        super().__init__(f"Associated friend {friend_id} for activity type '{title}' not found")
        self.friend_id = friend_id


class ActivityTypeValidationError(ActivityTypeError):
    """Batch rejected before any write. ``reason`` is safe to show to the user."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PinnedLimitExceeded(ActivityTypeValidationError):
    pass


class OrderNumOutOfRange(ActivityTypeValidationError):
    pass


class DuplicateOrderNum(ActivityTypeValidationError):
    pass


class OrderNumConflict(ActivityTypeValidationError):
    pass


class ActivityTypeNotOwned(ActivityTypeValidationError):
    pass


def is_user_facing(exc: BaseException) -> bool:
    """Validation failures carry a descriptive reason; everything else is a generic failure."""
    return isinstance(exc, (ActivityTypeValidationError, NoOpError))
