"""Ordering, filtering and paging helpers for the moderation queue.

Queue order is priority descending, then created_at ascending so the oldest
item in a priority tier is served first.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from hackadmin.moderation.domain.models import (
    PriorityBand,
    QueueCounts,
    QueueFilters,
    QueueItem,
    QueueItemType,
    QueueStatus,
)
from hackadmin.moderation.domain.priority import priority_band

UNCLAIMED = "unclaimed"
MINE = "mine"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from query strings are taken as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _queue_key(item: QueueItem) -> tuple[int, float]:
    return (-item.priority, item.created_at.timestamp())


def sort_queue(items: Iterable[QueueItem]) -> list[QueueItem]:
    # sorted() is stable, so exact ties keep their incoming order and re-sorting is a no-op
    return sorted(items, key=_queue_key)


def is_properly_ordered(items: Sequence[QueueItem]) -> bool:
    for current, following in zip(items, items[1:]):
        if current.priority < following.priority:
            return False
        if current.priority == following.priority and current.created_at > following.created_at:
            return False
    return True


def _as_set(value, kind) -> Optional[set]:
    if value is None:
        return None
    if isinstance(value, (str, kind)):
        return {kind(value)}
    return {kind(entry) for entry in value}


def matches_filters(item: QueueItem, filters: QueueFilters, *, admin_id: Optional[str] = None) -> bool:
    types = _as_set(filters.item_type, QueueItemType)
    if types is not None and item.item_type not in types:
        return False

    band = PriorityBand(filters.priority or PriorityBand.ALL)
    if band is not PriorityBand.ALL and priority_band(item.priority) is not band:
        return False

    statuses = _as_set(filters.status, QueueStatus)
    if statuses is not None and item.status not in statuses:
        return False

    if filters.claimed_by:
        if filters.claimed_by == UNCLAIMED:
            if item.claimed_by is not None:
                return False
        elif filters.claimed_by == MINE:
            if admin_id is not None and item.claimed_by != admin_id:
                return False
        elif item.claimed_by != filters.claimed_by:
            return False

    date_from = as_utc(filters.date_from)
    date_to = as_utc(filters.date_to)
    if date_from and item.created_at < date_from:
        return False
    if date_to and item.created_at > date_to:
        return False
    return True


def filter_queue_items(
    items: Iterable[QueueItem],
    filters: QueueFilters,
    *,
    admin_id: Optional[str] = None,
) -> list[QueueItem]:
    """Stable filter: survivors keep their relative order."""
    return [item for item in items if matches_filters(item, filters, admin_id=admin_id)]


def get_queue_counts(items: Iterable[QueueItem]) -> QueueCounts:
    counts = QueueCounts()
    for item in items:
        counts.total += 1
        key = item.item_type.value
        counts.by_type[key] = counts.by_type.get(key, 0) + 1
        if item.status is QueueStatus.PENDING:
            counts.pending += 1
        elif item.status is QueueStatus.CLAIMED:
            counts.claimed += 1
    return counts


def normalise_page(page: Optional[int], limit: Optional[int], *, default_limit: int, max_limit: int) -> tuple[int, int]:
    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or default_limit), max_limit))
    return page, limit


def paginate(items: Sequence[QueueItem], page: int, limit: int) -> list[QueueItem]:
    start = (page - 1) * limit
    return list(items[start : start + limit])


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
