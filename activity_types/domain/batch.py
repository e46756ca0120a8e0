"""Input shapes for the batch update entry point."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _friend_ids(raw: Iterable[Any] | None) -> list[str]:
    ids: list[str] = []
    for entry in raw or []:
        # accepts plain ids or minimal friend objects ({"id": ...})
        value = entry.get("id") if isinstance(entry, Mapping) else entry
        value = str(value or "").strip()
        if value and value not in ids:
            ids.append(value)
    return ids


@dataclass(frozen=True)
class ActivityTypeDraft:
    """One item of a batch: an update when ``id`` is known for the owner, otherwise a create."""

    id: Optional[str] = None
    title: Optional[str] = None
    icon: Optional[str] = None
    order_num: Optional[int] = None
    is_pinned: Optional[bool] = None
    associated_friend_ids: tuple[str, ...] = ()

    @property
    def pinned(self) -> bool:
        return bool(self.is_pinned)

    def with_order_num(self, order_num: int) -> "ActivityTypeDraft":
        return replace(self, order_num=order_num)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActivityTypeDraft":
        order_num = _pick(data, "orderNum", "order_num")
        pinned = _pick(data, "isPinned", "is_pinned")
        raw_id = _pick(data, "id")
        title = _pick(data, "title")
        return cls(
            id=str(raw_id) if raw_id else None,
            title=str(title) if title is not None else None,
            icon=_pick(data, "icon"),
            order_num=int(order_num) if order_num is not None else None,
            is_pinned=bool(pinned) if pinned is not None else None,
            associated_friend_ids=tuple(
                _friend_ids(_pick(data, "associatedFriends", "associated_friends", "associated_friend_ids"))
            ),
        )


@dataclass(frozen=True)
class BatchUpdate:
    updated: tuple[ActivityTypeDraft, ...] = ()
    deleted_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.updated and not self.deleted_ids

    @classmethod
    def of(cls, updated: Iterable[ActivityTypeDraft] = (), deleted_ids: Iterable[str] = ()) -> "BatchUpdate":
        return cls(updated=tuple(updated), deleted_ids=tuple(str(i) for i in deleted_ids))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BatchUpdate":
        updated = _pick(data, "updatedActivityTypes", "updated_activity_types", "updated", default=[]) or []
        deleted = _pick(data, "deletedActivityTypeIds", "deleted_activity_type_ids", "deleted_ids", default=[]) or []
        return cls.of((ActivityTypeDraft.from_dict(item) for item in updated), deleted)
