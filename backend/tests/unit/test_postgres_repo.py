"""Unit tests for the asyncpg-backed repositories against a stub pool."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from hackadmin.moderation.domain.audit import AuditActionType, AuditLogInput, AuditTargetType
from hackadmin.moderation.domain.errors import EntityUpdateError
from hackadmin.moderation.domain.models import QueueFilters
from hackadmin.moderation.infra.postgres_repo import (
    PostgresAuditSink,
    PostgresPlatformRepository,
    _filter_clauses,
    _Params,
)


class FakePool:
    """asyncpg.Pool stand-in that replays canned rows and records queries."""

    def __init__(self, *, row: dict[str, Any] | None = None, value: Any = None) -> None:
        self.row = row
        self.value = value
        self.queries: list[tuple[str, tuple[Any, ...]]] = []

    async def fetchrow(self, query: str, *params: Any) -> dict[str, Any] | None:
        self.queries.append((query, params))
        return self.row

    async def fetchval(self, query: str, *params: Any) -> Any:
        self.queries.append((query, params))
        return self.value


def audit_input() -> AuditLogInput:
    return AuditLogInput(
        action_type=AuditActionType.USER_BANNED,
        admin_id="admin-1",
        admin_email="admin@hackadmin.test",
        target_type=AuditTargetType.USER,
        target_id="u1",
        reason="spam",
    )


@pytest.mark.asyncio
async def test_audit_insert_without_returned_row_raises():
    sink = PostgresAuditSink(FakePool(row=None))
    with pytest.raises(EntityUpdateError, match="returned no row"):
        await sink.append_log(audit_input())


@pytest.mark.asyncio
async def test_ban_update_is_conditional_on_current_status():
    pool = FakePool(row={"id": "u1", "moderation_status": "banned"})
    repo = PostgresPlatformRepository(pool)
    assert await repo.mark_user_banned("u1") == {"id": "u1", "moderation_status": "banned"}
    query, params = pool.queries[0]
    assert "IS DISTINCT FROM $2" in query
    assert params == ("u1", "banned")


@pytest.mark.asyncio
async def test_ban_of_already_banned_profile_returns_none():
    repo = PostgresPlatformRepository(FakePool(row=None, value=1))
    assert await repo.mark_user_banned("u1") is None


@pytest.mark.asyncio
async def test_ban_of_missing_profile_raises():
    repo = PostgresPlatformRepository(FakePool(row=None, value=None))
    with pytest.raises(EntityUpdateError, match="not found"):
        await repo.mark_user_banned("ghost")


def test_naive_filter_bounds_are_bound_as_utc():
    params = _Params()
    clauses = _filter_clauses(
        QueueFilters(date_from=datetime(2020, 1, 1), date_to=datetime(2020, 2, 1, tzinfo=timezone.utc)),
        None,
        params,
    )
    assert clauses == ["created_at >= $1", "created_at <= $2"]
    assert params.values == [
        datetime(2020, 1, 1, tzinfo=timezone.utc),
        datetime(2020, 2, 1, tzinfo=timezone.utc),
    ]
