"""Notification channel contract used by the ban cascade."""

from __future__ import annotations

from typing import Protocol, Sequence

from hackadmin.moderation.domain.cascade import dedupe_ids


class NotificationChannel(Protocol):
    async def notify(self, user_ids: Sequence[str], reason: str) -> int:
        """Record intent to notify each user once; returns how many were addressed."""
        ...


class InMemoryNotificationChannel(NotificationChannel):
    def __init__(self) -> None:
        self.sent: list[tuple[tuple[str, ...], str]] = []

    async def notify(self, user_ids: Sequence[str], reason: str) -> int:
        recipients = dedupe_ids(user_ids)
        if recipients:
            self.sent.append((recipients, reason))
        return len(recipients)
