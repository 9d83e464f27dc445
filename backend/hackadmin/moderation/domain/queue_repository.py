"""Queue storage contract and an in-memory implementation."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Mapping, Optional, Protocol, Sequence

from hackadmin.moderation.domain.models import (
    OPEN_STATUSES,
    QueueCounts,
    QueueFilters,
    QueueItem,
    QueueStatus,
)
from hackadmin.moderation.domain.ordering import filter_queue_items, get_queue_counts, sort_queue


class QueueRepository(Protocol):
    async def find_open_for_target(self, target_type: str, target_id: str) -> Optional[QueueItem]:
        ...

    async def insert(self, item: QueueItem) -> Optional[QueueItem]:
        """Store a new item; returns None when the target already has an open item."""
        ...

    async def get(self, item_id: str) -> Optional[QueueItem]:
        ...

    async def conditional_update(
        self,
        item_id: str,
        expected: Mapping[str, Any],
        fields: Mapping[str, Any],
    ) -> Optional[QueueItem]:
        """Apply ``fields`` only if every ``expected`` column still holds its value.

        Returns the updated item, or ``None`` when the store rejected the write.
        Terminal items are never updated.
        """
        ...

    async def query(
        self,
        filters: QueueFilters,
        *,
        admin_id: Optional[str],
        offset: int,
        limit: int,
    ) -> tuple[list[QueueItem], int]:
        ...

    async def open_counts(self) -> QueueCounts:
        ...

    async def pending_count(self) -> int:
        ...

    async def list_for_target(self, target_type: str, target_id: str) -> Sequence[QueueItem]:
        ...


def _matches_expected(item: QueueItem, expected: Mapping[str, Any]) -> bool:
    for column, value in expected.items():
        if getattr(item, column) != value:
            return False
    return True


class InMemoryQueueRepository(QueueRepository):
    """Queue store backed by a dict; writes are serialised by a single lock."""

    def __init__(self) -> None:
        self._items: dict[str, QueueItem] = {}
        self._lock = asyncio.Lock()

    async def find_open_for_target(self, target_type: str, target_id: str) -> Optional[QueueItem]:
        for item in self._items.values():
            if item.target_type == target_type and item.target_id == target_id and item.status in OPEN_STATUSES:
                return replace(item)
        return None

    async def insert(self, item: QueueItem) -> Optional[QueueItem]:
        async with self._lock:
            if item.id in self._items:
                raise ValueError(f"duplicate queue item id: {item.id}")
            for stored in self._items.values():
                if (
                    stored.target_type == item.target_type
                    and stored.target_id == item.target_id
                    and stored.status in OPEN_STATUSES
                ):
                    return None
            self._items[item.id] = replace(item)
        return replace(item)

    async def get(self, item_id: str) -> Optional[QueueItem]:
        item = self._items.get(item_id)
        return replace(item) if item else None

    async def conditional_update(
        self,
        item_id: str,
        expected: Mapping[str, Any],
        fields: Mapping[str, Any],
    ) -> Optional[QueueItem]:
        async with self._lock:
            current = self._items.get(item_id)
            if current is None or current.is_terminal:
                return None
            if not _matches_expected(current, expected):
                return None
            updated = replace(current, **dict(fields))
            self._items[item_id] = updated
            return replace(updated)

    async def query(
        self,
        filters: QueueFilters,
        *,
        admin_id: Optional[str],
        offset: int,
        limit: int,
    ) -> tuple[list[QueueItem], int]:
        ordered = sort_queue(self._items.values())
        matched = filter_queue_items(ordered, filters, admin_id=admin_id)
        window = matched[offset : offset + limit]
        return [replace(item) for item in window], len(matched)

    async def open_counts(self) -> QueueCounts:
        return get_queue_counts(item for item in self._items.values() if item.status in OPEN_STATUSES)

    async def pending_count(self) -> int:
        return sum(1 for item in self._items.values() if item.status is QueueStatus.PENDING)

    async def list_for_target(self, target_type: str, target_id: str) -> Sequence[QueueItem]:
        items = [
            replace(item)
            for item in self._items.values()
            if item.target_type == target_type and item.target_id == target_id
        ]
        items.sort(key=lambda item: item.created_at, reverse=True)
        return items
