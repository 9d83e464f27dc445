from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from hackadmin.moderation.domain.models import (
    PriorityBand,
    QueueFilters,
    QueueItem,
    QueueItemType,
    QueueStatus,
)
from hackadmin.moderation.domain.ordering import (
    filter_queue_items,
    get_queue_counts,
    is_properly_ordered,
    normalise_page,
    paginate,
    sort_queue,
    total_pages,
)

BASE = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_item(
    item_id: str,
    priority: int,
    minutes: int,
    *,
    item_type: QueueItemType = QueueItemType.REPORT,
    status: QueueStatus = QueueStatus.PENDING,
    claimed_by: str | None = None,
) -> QueueItem:
    created = BASE + timedelta(minutes=minutes)
    return QueueItem(
        id=item_id,
        item_type=item_type,
        priority=priority,
        title=f"item {item_id}",
        target_type="project",
        target_id=f"target-{item_id}",
        created_at=created,
        updated_at=created,
        status=status,
        claimed_by=claimed_by,
    )


def random_items(seed: int, count: int = 25) -> list[QueueItem]:
    rng = random.Random(seed)
    return [make_item(f"i{n}", rng.randint(1, 10), rng.randint(0, 30)) for n in range(count)]


def test_sort_orders_by_priority_then_age():
    items = [
        make_item("new-high", 8, 30),
        make_item("old-low", 2, 0),
        make_item("old-high", 8, 5),
        make_item("mid", 5, 10),
    ]
    assert [item.id for item in sort_queue(items)] == ["old-high", "new-high", "mid", "old-low"]


def test_ties_broken_by_creation_time_not_id():
    items = [make_item("a", 5, 20), make_item("z", 5, 1)]
    assert [item.id for item in sort_queue(items)] == ["z", "a"]


@pytest.mark.parametrize("seed", range(10))
def test_sort_is_idempotent_and_preserves_membership(seed):
    items = random_items(seed)
    once = sort_queue(items)
    twice = sort_queue(once)
    assert [item.id for item in once] == [item.id for item in twice]
    assert sorted(item.id for item in once) == sorted(item.id for item in items)
    assert len(once) == len(items)
    assert is_properly_ordered(once)


def test_is_properly_ordered_detects_violations():
    assert not is_properly_ordered([make_item("a", 3, 0), make_item("b", 7, 0)])
    assert not is_properly_ordered([make_item("a", 5, 10), make_item("b", 5, 0)])
    assert is_properly_ordered([])


@pytest.mark.parametrize("seed", range(5))
def test_filter_preserves_relative_order(seed):
    ordered = sort_queue(random_items(seed))
    filtered = filter_queue_items(ordered, QueueFilters(priority=PriorityBand.MEDIUM))
    positions = [ordered.index(item) for item in filtered]
    assert positions == sorted(positions)
    assert all(4 <= item.priority < 7 for item in filtered)


def test_filter_by_claimant():
    items = [
        make_item("free", 5, 0),
        make_item("mine", 5, 1, status=QueueStatus.CLAIMED, claimed_by="admin-a"),
        make_item("theirs", 5, 2, status=QueueStatus.CLAIMED, claimed_by="admin-b"),
    ]
    unclaimed = filter_queue_items(items, QueueFilters(claimed_by="unclaimed"))
    mine = filter_queue_items(items, QueueFilters(claimed_by="mine"), admin_id="admin-a")
    specific = filter_queue_items(items, QueueFilters(claimed_by="admin-b"))
    assert [item.id for item in unclaimed] == ["free"]
    assert [item.id for item in mine] == ["mine"]
    assert [item.id for item in specific] == ["theirs"]


def test_mine_without_admin_does_not_filter():
    items = [make_item("a", 5, 0), make_item("b", 5, 1, status=QueueStatus.CLAIMED, claimed_by="x")]
    assert len(filter_queue_items(items, QueueFilters(claimed_by="mine"))) == 2


def test_filter_by_type_status_and_dates():
    items = [
        make_item("r", 5, 0, item_type=QueueItemType.REPORT),
        make_item("u", 5, 10, item_type=QueueItemType.USER, status=QueueStatus.RESOLVED),
        make_item("h", 5, 20, item_type=QueueItemType.HACKATHON),
    ]
    by_types = filter_queue_items(items, QueueFilters(item_type=[QueueItemType.USER, QueueItemType.HACKATHON]))
    assert [item.id for item in by_types] == ["u", "h"]
    by_status = filter_queue_items(items, QueueFilters(status=QueueStatus.PENDING))
    assert [item.id for item in by_status] == ["r", "h"]
    window = QueueFilters(date_from=BASE + timedelta(minutes=5), date_to=BASE + timedelta(minutes=15))
    assert [item.id for item in filter_queue_items(items, window)] == ["u"]


def test_naive_date_bounds_are_read_as_utc():
    items = [make_item("early", 5, 0), make_item("late", 5, 20)]
    naive = (BASE + timedelta(minutes=10)).replace(tzinfo=None)
    assert [item.id for item in filter_queue_items(items, QueueFilters(date_from=naive))] == ["late"]
    assert [item.id for item in filter_queue_items(items, QueueFilters(date_to=naive))] == ["early"]


def test_queue_counts():
    items = [
        make_item("a", 5, 0),
        make_item("b", 5, 0, item_type=QueueItemType.USER, status=QueueStatus.CLAIMED, claimed_by="x"),
        make_item("c", 5, 0, item_type=QueueItemType.USER),
    ]
    counts = get_queue_counts(items)
    assert counts.total == 3
    assert counts.pending == 2
    assert counts.claimed == 1
    assert counts.by_type == {"report": 1, "user": 2}


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 50)),
        (0, 10, (1, 10)),
        (3, 500, (3, 100)),
        (2, 0, (2, 50)),
    ],
)
def test_normalise_page(page, limit, expected):
    assert normalise_page(page, limit, default_limit=50, max_limit=100) == expected


def test_paginate_and_total_pages():
    items = sort_queue(random_items(1, count=7))
    assert paginate(items, 2, 3) == items[3:6]
    assert paginate(items, 4, 3) == []
    assert total_pages(7, 3) == 3
    assert total_pages(0, 3) == 0
