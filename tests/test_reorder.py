import itertools
from datetime import datetime

import pytest

from taskdeck.reorder import ORDER_STEP, apply_orders, compute_reorder, move_to_index


def make_task(task_id, order, second=0):
    return {
        "id": task_id,
        "text": task_id,
        "completed": False,
        "status": "pending",
        "category": None,
        "priority": None,
        "due_date": None,
        "created_at": datetime(2025, 1, 1, 9, 0, second),
        "order": float(order),
        "deleted_at": None,
        "is_archived": False,
    }


@pytest.fixture
def tasks():
    return [make_task(i, (n + 1) * 1000) for n, i in enumerate("abcd")]


def ids(tasks):
    return [t["id"] for t in tasks]


def drop_before(seq, active, over):
    seq = [i for i in seq if i != active]
    seq.insert(seq.index(over), active)
    return seq


class TestComputeReorder:
    def test_move_down_lands_before_target(self, tasks):
        changes = compute_reorder(tasks, "a", "c")
        assert changes == {"a": 2500.0}
        assert ids(apply_orders(tasks, changes)) == ["b", "a", "c", "d"]

    def test_move_up_lands_before_target(self, tasks):
        changes = compute_reorder(tasks, "d", "b")
        assert changes == {"d": 1500.0}
        assert ids(apply_orders(tasks, changes)) == ["a", "d", "b", "c"]

    def test_move_to_front_and_before_last(self, tasks):
        assert compute_reorder(tasks, "d", "a") == {"d": 1000.0 - ORDER_STEP}
        assert compute_reorder(tasks, "a", "d") == {"a": 3500.0}

    def test_same_or_unknown_ids_are_noops(self, tasks):
        assert compute_reorder(tasks, "b", "b") == {}
        assert compute_reorder(tasks, "zz", "b") == {}
        assert compute_reorder(tasks, "b", "zz") == {}

    def test_already_right_before_target_is_noop(self, tasks):
        assert compute_reorder(tasks, "a", "b") == {}
        assert compute_reorder(tasks, "c", "d") == {}

    def test_repeating_a_drop_changes_nothing(self, tasks):
        once = apply_orders(tasks, compute_reorder(tasks, "a", "b"))
        assert compute_reorder(once, "a", "b") == {}
        for active, over in [("a", "c"), ("d", "b"), ("b", "d")]:
            once = apply_orders(tasks, compute_reorder(tasks, active, over))
            assert compute_reorder(once, active, over) == {}, (active, over)

    def test_input_is_not_mutated(self, tasks):
        before = [dict(t) for t in tasks]
        compute_reorder(tasks, "a", "d")
        assert tasks == before

    def test_unsorted_input_uses_order_field(self, tasks):
        shuffled = [tasks[2], tasks[0], tasks[3], tasks[1]]
        assert compute_reorder(shuffled, "a", "c") == {"a": 2500.0}

    def test_equal_orders_trigger_renumbering(self):
        tied = [make_task("x", 5, second=1), make_task("y", 5, second=2), make_task("z", 5, second=3)]
        changes = compute_reorder(tied, "z", "y")
        assert changes == {"z": 5.0 + ORDER_STEP, "y": 5.0 + 2 * ORDER_STEP}
        assert ids(apply_orders(tied, changes)) == ["x", "z", "y"]

    def test_every_drop_lands_before_target_and_sticks(self):
        mixed = [
            make_task("a", 1000, 1),
            make_task("b", 1000, 2),
            make_task("c", 1000.5, 3),
            make_task("d", 4000, 4),
            make_task("e", 4000, 5),
        ]
        start = ids(mixed)
        for active, over in itertools.permutations(start, 2):
            result = apply_orders(mixed, compute_reorder(mixed, active, over))
            assert ids(result) == drop_before(start, active, over), (active, over)
            assert compute_reorder(result, active, over) == {}, (active, over)


class TestMoveToIndex:
    def test_own_position_is_noop(self, tasks):
        assert move_to_index(tasks, "c", 2) == {}

    def test_repeating_a_move_changes_nothing(self, tasks):
        moved = apply_orders(tasks, move_to_index(tasks, "a", 2))
        assert ids(moved) == ["b", "c", "a", "d"]
        assert move_to_index(moved, "a", 2) == {}

    def test_index_is_clamped(self, tasks):
        changes = move_to_index(tasks, "a", 99)
        assert ids(apply_orders(tasks, changes)) == ["b", "c", "d", "a"]

    def test_unknown_id(self, tasks):
        assert move_to_index(tasks, "nope", 0) == {}
