from __future__ import annotations

import random
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from activity_types.core import events  # noqa: E402
from activity_types.core.locks import OwnerLock  # noqa: E402
from activity_types.domain.batch import ActivityTypeDraft, BatchUpdate  # noqa: E402
from activity_types.domain.errors import (  # noqa: E402
    ActivityTypeNotOwned,
    NoOpError,
    OrderNumConflict,
    OrderNumOutOfRange,
    OwnerNotFound,
    PinnedLimitExceeded,
    is_user_facing,
)
from activity_types.repositories.sql_repository import ActivityTypeRepository  # noqa: E402
from activity_types.services.activity_type_service import (  # noqa: E402
    ActivityTypeService,
    register_event_handlers,
)
from activity_types.services.user_service import create_user  # noqa: E402


def _orders(items) -> dict[str, int]:
    return {item.title: item.order_num for item in items}


def _assert_invariants(items, max_pinned: int = 4) -> None:
    assert sorted(item.order_num for item in items) == list(range(1, len(items) + 1))
    assert sum(1 for item in items if item.is_pinned) <= max_pinned


def _snapshot(items) -> list[tuple]:
    return [(i.id, i.title, i.order_num, i.is_pinned) for i in items]


@pytest.fixture()
def svc(db_env):
    return ActivityTypeService()


def test_swap_moves_only_the_two_items(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    result = svc.update_activity_types(
        owner,
        BatchUpdate.of([ActivityTypeDraft(id=ids["A"], title="A", order_num=3), ActivityTypeDraft(id=ids["C"], title="C", order_num=1)]),
    )

    assert _orders(result) == {"C": 1, "B": 2, "A": 3}
    assert [item.title for item in result] == ["C", "B", "A"]
    assert result[1].id == ids["B"]


def test_pinned_overflow_rejects_the_whole_batch(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1, True), ("B", 2, True), ("C", 3, True), ("D", 4, True), ("E", 5)])
    before = _snapshot(svc.get_activity_types(owner))

    with pytest.raises(PinnedLimitExceeded) as err:
        svc.update_activity_types(
            owner,
            BatchUpdate.of(
                [
                    ActivityTypeDraft(id=ids["E"], title="E", order_num=5, is_pinned=True),
                    ActivityTypeDraft(title="New"),
                ]
            ),
        )

    assert is_user_facing(err.value)
    assert _snapshot(svc.get_activity_types(owner)) == before
    assert events.get_buffered_events() == []


def test_new_item_is_appended(svc, make_user, make_items):
    owner = make_user()
    make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    result = svc.update_activity_types(owner, BatchUpdate.of([ActivityTypeDraft(title="Gym", icon="🏋️")]))

    gym = next(item for item in result if item.title == "Gym")
    assert gym.order_num == 4
    assert gym.icon == "🏋️"
    assert gym.is_pinned is False
    assert gym.owner_id == owner


def test_new_item_with_client_id_keeps_it(svc, make_user):
    owner = make_user()

    result = svc.update_activity_types(owner, {"updatedActivityTypes": [{"id": "client-chosen", "title": "Gym"}]})

    assert [(item.id, item.order_num, item.icon) for item in result] == [("client-chosen", 1, "⭐")]


def test_delete_shrinks_range(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3), ("D", 4), ("E", 5)])

    with pytest.raises(OrderNumOutOfRange):
        svc.update_activity_types(
            owner,
            BatchUpdate.of([ActivityTypeDraft(id=ids["A"], order_num=5)], deleted_ids=[ids["B"], ids["C"]]),
        )

    # the deletions were not applied either
    assert len(svc.get_activity_types(owner)) == 5


def test_target_on_untouched_item_is_rejected_by_the_coordinator(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    with pytest.raises(OrderNumConflict):
        svc.update_activity_types(owner, BatchUpdate.of([ActivityTypeDraft(id=ids["A"], order_num=2)]))

    assert _orders(svc.get_activity_types(owner)) == {"A": 1, "B": 2, "C": 3}


def test_delete_then_reposition_keeps_range_contiguous(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3), ("D", 4), ("E", 5)])

    result = svc.update_activity_types(
        owner,
        BatchUpdate.of(
            [ActivityTypeDraft(id=ids["E"], order_num=2), ActivityTypeDraft(id=ids["D"], order_num=3)],
            deleted_ids=[ids["B"], ids["C"]],
        ),
    )

    assert _orders(result) == {"A": 1, "E": 2, "D": 3}
    _assert_invariants(result)


def test_reposition_target_survives_deletion(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3), ("D", 4)])

    result = svc.update_activity_types(
        owner, BatchUpdate.of([ActivityTypeDraft(id=ids["A"], order_num=2)], deleted_ids=[ids["B"]])
    )

    assert _orders(result)["A"] == 2
    assert _orders(result) == {"C": 1, "A": 2, "D": 3}
    _assert_invariants(result)


def test_reposition_target_survives_creation(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    result = svc.update_activity_types(
        owner, BatchUpdate.of([ActivityTypeDraft(id=ids["A"], order_num=4), ActivityTypeDraft(title="X")])
    )

    assert _orders(result)["A"] == 4
    assert _orders(result) == {"B": 1, "C": 2, "X": 3, "A": 4}
    _assert_invariants(result)


def test_deletion_only_batch_closes_the_gap(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    result = svc.update_activity_types(owner, BatchUpdate.of(deleted_ids=[ids["A"]]))

    assert _orders(result) == {"B": 1, "C": 2}


def test_mixed_batch_updates_fields_and_friends(svc, make_user, make_items, caplog):
    owner = make_user("alice")
    friend = make_user("bob")
    ids = make_items(owner, [("A", 1), ("B", 2), ("C", 3)])

    result = svc.update_activity_types(
        owner,
        BatchUpdate.of(
            [
                ActivityTypeDraft(id=ids["A"], title="Chill", icon="🛋️", order_num=2, is_pinned=True,
                                  associated_friend_ids=(friend, "ghost")),
                ActivityTypeDraft(id=ids["B"], order_num=1),
                ActivityTypeDraft(title="Food", associated_friend_ids=(friend,)),
            ]
        ),
    )

    by_title = {item.title: item for item in result}
    assert _orders(result) == {"B": 1, "Chill": 2, "C": 3, "Food": 4}
    assert by_title["Chill"].icon == "🛋️"
    assert by_title["Chill"].is_pinned is True
    assert by_title["Chill"].associated_friend_ids == [friend]
    assert by_title["Food"].associated_friend_ids == [friend]
    assert "ghost" in caplog.text


def test_existing_item_without_order_num_stays_put(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2)])

    result = svc.update_activity_types(owner, BatchUpdate.of([ActivityTypeDraft(id=ids["B"], title="Renamed")]))

    assert _orders(result) == {"A": 1, "Renamed": 2}


class _RecordingLock(OwnerLock):
    def __init__(self) -> None:
        super().__init__()
        self.held: list[str] = []

    @contextmanager
    def hold(self, owner_id: str):
        with super().hold(owner_id):
            self.held.append(owner_id)
            yield


def test_empty_batch_is_a_no_op(make_user):
    owner = make_user()
    lock = _RecordingLock()
    with pytest.raises(NoOpError):
        ActivityTypeService(lock=lock).update_activity_types(owner, BatchUpdate())
    assert lock.held == [owner]
    assert lock.active_owners() == 0


def test_unknown_owner_is_fatal(svc, db_env):
    with pytest.raises(OwnerNotFound) as err:
        svc.update_activity_types("nobody", BatchUpdate.of([ActivityTypeDraft(title="Gym")]))
    assert not is_user_facing(err.value)


def test_other_owners_item_cannot_be_updated(svc, make_user, make_items):
    alice = make_user("alice")
    bob = make_user("bob")
    bob_ids = make_items(bob, [("X", 1)])
    make_items(alice, [("A", 1)])

    with pytest.raises(ActivityTypeNotOwned):
        svc.update_activity_types(alice, BatchUpdate.of([ActivityTypeDraft(id=bob_ids["X"], order_num=1)]))

    assert _orders(svc.get_activity_types(bob)) == {"X": 1}


def test_ownership_check_is_one_lookup_per_item(svc, make_user, make_items, monkeypatch):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2)])

    def _unexpected(self, activity_type_id):
        raise AssertionError("exists_by_id should not be needed")

    monkeypatch.setattr(ActivityTypeRepository, "exists_by_id", _unexpected)
    result = svc.update_activity_types(
        owner,
        BatchUpdate.of([ActivityTypeDraft(id=ids["A"], order_num=2), ActivityTypeDraft(id=ids["B"], order_num=1)]),
    )

    assert _orders(result) == {"B": 1, "A": 2}


def test_successful_batch_publishes_change_event(svc, make_user, make_items):
    owner = make_user()
    ids = make_items(owner, [("A", 1), ("B", 2)])
    events.get_buffered_events()

    svc.update_activity_types(owner, BatchUpdate.of(deleted_ids=[ids["B"]]))

    published = events.get_buffered_events()
    assert published == [
        {
            "type": events.ACTIVITY_TYPES_CHANGED,
            "payload": {"owner_id": owner, "updated": 0, "deleted": 1, "total": 1},
        }
    ]


def test_stranded_placeholders_are_repaired_on_next_batch(svc, make_user, make_items):
    owner = make_user()
    make_items(owner, [("A", 1), ("B", -1000), ("C", 2)])

    result = svc.update_activity_types(owner, BatchUpdate.of([ActivityTypeDraft(title="D")]))

    assert _orders(result) == {"A": 1, "C": 2, "B": 3, "D": 4}


def test_seeding_is_idempotent(svc, make_user):
    owner = make_user()

    first = svc.initialize_default_activity_types(owner)
    second = svc.initialize_default_activity_types(owner)

    assert [(i.title, i.order_num) for i in first] == [("Chill", 1), ("Food", 2), ("Active", 3), ("Study", 4)]
    assert second == []
    items = svc.get_activity_types(owner)
    assert [i.title for i in items] == ["Chill", "Food", "Active", "Study"]
    assert all(not i.is_pinned for i in items)
    assert svc.next_order_number(owner) == 5


def test_seeding_skips_owner_with_existing_items(svc, make_user, make_items):
    owner = make_user()
    make_items(owner, [("Mine", 1)])

    assert svc.initialize_default_activity_types(owner) == []
    assert [i.title for i in svc.get_activity_types(owner)] == ["Mine"]


def test_initialize_all_users_counts(svc, make_user, make_items):
    seeded = make_user("alice")
    make_user("bob")
    make_items(seeded, [("Mine", 1)])

    assert svc.initialize_all_users() == {"initialized": 1, "skipped": 1, "failed": 0}


def test_new_user_gets_defaults_through_event(db_env):
    register_event_handlers()

    user = create_user("dana")

    assert len(ActivityTypeService().get_activity_types(user.id)) == 4
    assert [e["type"] for e in events.get_buffered_events()] == [
        events.USER_CREATED,
        events.ACTIVITY_TYPES_INITIALIZED,
    ]


def test_concurrent_batches_for_one_owner_keep_invariants(svc, make_user, make_items):
    owner = make_user()
    ids = list(make_items(owner, [(f"T{i}", i) for i in range(1, 7)]).values())
    errors: list[BaseException] = []

    def _worker(seed: int) -> None:
        rng = random.Random(seed)
        for _ in range(5):
            order = list(range(1, len(ids) + 1))
            rng.shuffle(order)
            drafts = [ActivityTypeDraft(id=item_id, order_num=num) for item_id, num in zip(ids, order)]
            try:
                _assert_invariants(svc.update_activity_types(owner, BatchUpdate.of(drafts)))
            except BaseException as exc:  # collected and asserted below
                errors.append(exc)

    threads = [threading.Thread(target=_worker, args=(seed,)) for seed in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    _assert_invariants(svc.get_activity_types(owner))
