"""PostgreSQL-backed repositories for the moderation queue, platform records and audit log."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

import asyncpg

from hackadmin.moderation.domain.audit import (
    AuditActionType,
    AuditLogEntry,
    AuditLogInput,
    AuditSink,
    AuditTargetType,
    ensure_valid,
)
from hackadmin.moderation.domain.errors import EntityUpdateError
from hackadmin.moderation.domain.models import (
    PriorityBand,
    QueueCounts,
    QueueFilters,
    QueueItem,
    QueueItemType,
    QueueStatus,
)
from hackadmin.moderation.domain.ordering import MINE, UNCLAIMED, as_utc
from hackadmin.moderation.domain.platform import (
    ACTIVE_HACKATHON_STATUSES,
    BANNED_STATUS,
    HACKATHON_ENTITY,
    PlatformRepository,
    UserProfile,
)
from hackadmin.moderation.domain.priority import PRIORITY_THRESHOLDS
from hackadmin.moderation.domain.queue_repository import QueueRepository

SCHEMA = """
CREATE TABLE IF NOT EXISTS moderation_queue (
    id TEXT PRIMARY KEY,
    item_type TEXT NOT NULL,
    priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 10),
    title TEXT NOT NULL,
    description TEXT,
    target_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    target_data JSONB,
    report_count INTEGER NOT NULL DEFAULT 0,
    reporter_ids TEXT[] NOT NULL DEFAULT '{}',
    claimed_by TEXT,
    claimed_at TIMESTAMPTZ,
    status TEXT NOT NULL DEFAULT 'pending',
    resolution TEXT,
    resolved_by TEXT,
    resolved_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS moderation_queue_open_target_idx
    ON moderation_queue (target_type, target_id)
    WHERE status IN ('pending', 'claimed');
CREATE INDEX IF NOT EXISTS moderation_queue_order_idx
    ON moderation_queue (priority DESC, created_at ASC);
CREATE TABLE IF NOT EXISTS admin_audit_logs (
    id TEXT PRIMARY KEY,
    action_type TEXT NOT NULL,
    admin_id TEXT NOT NULL,
    admin_email TEXT NOT NULL,
    target_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    reason TEXT NOT NULL,
    before_state JSONB,
    after_state JSONB,
    ip_address TEXT,
    user_agent TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

QUEUE_COLUMNS = (
    "id",
    "item_type",
    "priority",
    "title",
    "description",
    "target_type",
    "target_id",
    "target_data",
    "report_count",
    "reporter_ids",
    "claimed_by",
    "claimed_at",
    "status",
    "resolution",
    "resolved_by",
    "resolved_at",
    "created_at",
    "updated_at",
)
_SELECT_QUEUE = ", ".join(QUEUE_COLUMNS)
_MUTABLE_COLUMNS = frozenset(QUEUE_COLUMNS) - {"id", "created_at"}


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create the tables this service owns; platform tables are managed elsewhere."""
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)


def _to_db(column: str, value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if column == "target_data":
        return json.dumps(value, default=str) if value is not None else None
    if column == "reporter_ids":
        return list(value or ())
    return value


def _json_field(value: Any) -> Optional[dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return dict(value)


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _item_from_record(record: asyncpg.Record) -> QueueItem:
    return QueueItem(
        id=str(record["id"]),
        item_type=QueueItemType(record["item_type"]),
        priority=int(record["priority"]),
        title=str(record["title"]),
        description=record["description"],
        target_type=str(record["target_type"]),
        target_id=str(record["target_id"]),
        target_data=_json_field(record["target_data"]),
        report_count=int(record["report_count"]),
        reporter_ids=tuple(str(value) for value in (record["reporter_ids"] or ())),
        claimed_by=_opt_str(record["claimed_by"]),
        claimed_at=record["claimed_at"],
        status=QueueStatus(record["status"]),
        resolution=record["resolution"],
        resolved_by=_opt_str(record["resolved_by"]),
        resolved_at=record["resolved_at"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class _Params:
    """Accumulates positional query arguments."""

    def __init__(self, *initial: Any) -> None:
        self.values: list[Any] = list(initial)

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _as_list(value: Any, kind: type[Enum]) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, (str, kind)):
        return [kind(value).value]
    return [kind(entry).value for entry in value]


def _filter_clauses(filters: QueueFilters, admin_id: Optional[str], params: _Params) -> list[str]:
    clauses: list[str] = []
    types = _as_list(filters.item_type, QueueItemType)
    if types is not None:
        clauses.append(f"item_type = ANY({params.add(types)}::text[])")

    band = PriorityBand(filters.priority or PriorityBand.ALL)
    high = PRIORITY_THRESHOLDS[PriorityBand.HIGH]
    medium = PRIORITY_THRESHOLDS[PriorityBand.MEDIUM]
    if band is PriorityBand.HIGH:
        clauses.append(f"priority >= {high}")
    elif band is PriorityBand.MEDIUM:
        clauses.append(f"priority >= {medium} AND priority < {high}")
    elif band is PriorityBand.LOW:
        clauses.append(f"priority < {medium}")

    statuses = _as_list(filters.status, QueueStatus)
    if statuses is not None:
        clauses.append(f"status = ANY({params.add(statuses)}::text[])")

    if filters.claimed_by == UNCLAIMED:
        clauses.append("claimed_by IS NULL")
    elif filters.claimed_by == MINE:
        if admin_id is not None:
            clauses.append(f"claimed_by = {params.add(admin_id)}")
    elif filters.claimed_by:
        clauses.append(f"claimed_by = {params.add(filters.claimed_by)}")

    if filters.date_from is not None:
        clauses.append(f"created_at >= {params.add(as_utc(filters.date_from))}")
    if filters.date_to is not None:
        clauses.append(f"created_at <= {params.add(as_utc(filters.date_to))}")
    return clauses


class PostgresQueueRepository(QueueRepository):
    """Queue store over ``moderation_queue``; every transition is a single conditional UPDATE."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def find_open_for_target(self, target_type: str, target_id: str) -> Optional[QueueItem]:
        query = f"""
        SELECT {_SELECT_QUEUE}
        FROM moderation_queue
        WHERE target_type = $1 AND target_id = $2 AND status IN ('pending', 'claimed')
        LIMIT 1
        """
        record = await self.pool.fetchrow(query, target_type, target_id)
        return _item_from_record(record) if record else None

    async def insert(self, item: QueueItem) -> Optional[QueueItem]:
        placeholders = ", ".join(f"${index}" for index in range(1, len(QUEUE_COLUMNS) + 1))
        query = f"""
        INSERT INTO moderation_queue ({_SELECT_QUEUE})
        VALUES ({placeholders})
        ON CONFLICT DO NOTHING
        RETURNING {_SELECT_QUEUE}
        """
        values = [_to_db(column, getattr(item, column)) for column in QUEUE_COLUMNS]
        record = await self.pool.fetchrow(query, *values)
        return _item_from_record(record) if record else None

    async def get(self, item_id: str) -> Optional[QueueItem]:
        query = f"SELECT {_SELECT_QUEUE} FROM moderation_queue WHERE id = $1"
        record = await self.pool.fetchrow(query, item_id)
        return _item_from_record(record) if record else None

    async def conditional_update(
        self,
        item_id: str,
        expected: Mapping[str, Any],
        fields: Mapping[str, Any],
    ) -> Optional[QueueItem]:
        unknown = (set(fields) | set(expected)) - _MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"unknown queue columns: {sorted(unknown)}")
        params = _Params(item_id)
        assignments = [f"{column} = {params.add(_to_db(column, value))}" for column, value in fields.items()]
        conditions = ["id = $1", "status NOT IN ('resolved', 'dismissed')"]
        for column, value in expected.items():
            if value is None:
                conditions.append(f"{column} IS NULL")
            else:
                conditions.append(f"{column} = {params.add(_to_db(column, value))}")
        query = f"""
        UPDATE moderation_queue
        SET {', '.join(assignments)}
        WHERE {' AND '.join(conditions)}
        RETURNING {_SELECT_QUEUE}
        """
        record = await self.pool.fetchrow(query, *params.values)
        return _item_from_record(record) if record else None

    async def query(
        self,
        filters: QueueFilters,
        *,
        admin_id: Optional[str],
        offset: int,
        limit: int,
    ) -> tuple[list[QueueItem], int]:
        params = _Params()
        clauses = _filter_clauses(filters, admin_id, params)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM moderation_queue {where}", *params.values)
            limit_ref = params.add(limit)
            offset_ref = params.add(offset)
            rows = await conn.fetch(
                f"""
                SELECT {_SELECT_QUEUE}
                FROM moderation_queue
                {where}
                ORDER BY priority DESC, created_at ASC
                LIMIT {limit_ref} OFFSET {offset_ref}
                """,
                *params.values,
            )
        return [_item_from_record(row) for row in rows], int(total or 0)

    async def open_counts(self) -> QueueCounts:
        rows = await self.pool.fetch(
            """
            SELECT item_type, status, COUNT(*) AS n
            FROM moderation_queue
            WHERE status IN ('pending', 'claimed')
            GROUP BY item_type, status
            """
        )
        counts = QueueCounts()
        for row in rows:
            n = int(row["n"])
            counts.total += n
            counts.by_type[row["item_type"]] = counts.by_type.get(row["item_type"], 0) + n
            if row["status"] == QueueStatus.PENDING.value:
                counts.pending += n
            else:
                counts.claimed += n
        return counts

    async def pending_count(self) -> int:
        value = await self.pool.fetchval("SELECT COUNT(*) FROM moderation_queue WHERE status = 'pending'")
        return int(value or 0)

    async def list_for_target(self, target_type: str, target_id: str) -> Sequence[QueueItem]:
        query = f"""
        SELECT {_SELECT_QUEUE}
        FROM moderation_queue
        WHERE target_type = $1 AND target_id = $2
        ORDER BY created_at DESC
        """
        rows = await self.pool.fetch(query, target_type, target_id)
        return [_item_from_record(row) for row in rows]


class PostgresPlatformRepository(PlatformRepository):
    """Reads and writes the shared platform tables touched by a ban."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        record = await self.pool.fetchrow(
            """
            SELECT id::text AS id, email, username, role, moderation_status
            FROM profiles
            WHERE id::text = $1
            """,
            user_id,
        )
        if record is None:
            return None
        return UserProfile(
            id=record["id"],
            email=record["email"],
            username=record["username"],
            role=record["role"] or "user",
            moderation_status=record["moderation_status"] or "active",
        )

    async def list_active_hackathon_ids(self, organizer_id: str) -> Sequence[str]:
        rows = await self.pool.fetch(
            """
            SELECT id::text AS id
            FROM organizer_hackathons
            WHERE organizer_id::text = $1 AND status = ANY($2::text[])
            ORDER BY id
            """,
            organizer_id,
            list(ACTIVE_HACKATHON_STATUSES),
        )
        return [row["id"] for row in rows]

    async def list_team_ids(self, user_id: str) -> Sequence[str]:
        rows = await self.pool.fetch(
            """
            SELECT DISTINCT team_id::text AS team_id
            FROM hackathon_registrations
            WHERE user_id::text = $1 AND team_id IS NOT NULL
            """,
            user_id,
        )
        return [row["team_id"] for row in rows]

    async def list_team_member_ids(self, team_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        rows = await self.pool.fetch(
            """
            SELECT user_id::text AS user_id
            FROM hackathon_registrations
            WHERE team_id::text = ANY($1::text[]) AND user_id IS NOT NULL AND user_id::text <> $2
            """,
            list(team_ids),
            exclude_user_id,
        )
        return [row["user_id"] for row in rows]

    async def list_participant_ids(self, hackathon_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        rows = await self.pool.fetch(
            """
            SELECT user_id::text AS user_id
            FROM hackathon_registrations
            WHERE hackathon_id::text = ANY($1::text[]) AND user_id IS NOT NULL AND user_id::text <> $2
            """,
            list(hackathon_ids),
            exclude_user_id,
        )
        return [row["user_id"] for row in rows]

    async def get_entity(self, entity_type: str, entity_id: str) -> Optional[Mapping[str, Any]]:
        table = self._table_for(entity_type)
        record = await self.pool.fetchrow(f"SELECT * FROM {table} WHERE id::text = $1", entity_id)
        return dict(record) if record else None

    async def update_entity_status(
        self,
        entity_type: str,
        entity_id: str,
        fields: Mapping[str, Any],
    ) -> Mapping[str, Any]:
        table = self._table_for(entity_type)
        params = _Params(entity_id)
        assignments = [f"{column} = {params.add(value)}" for column, value in fields.items()]
        assignments.append(f"updated_at = {params.add(datetime.now(timezone.utc))}")
        query = f"UPDATE {table} SET {', '.join(assignments)} WHERE id::text = $1 RETURNING *"
        try:
            record = await self.pool.fetchrow(query, *params.values)
        except asyncpg.PostgresError as exc:
            raise EntityUpdateError(f"{entity_type} {entity_id}: {exc}") from exc
        if record is None:
            raise EntityUpdateError(f"{entity_type} {entity_id} not found")
        return dict(record)

    async def mark_user_banned(self, user_id: str) -> Optional[Mapping[str, Any]]:
        try:
            record = await self.pool.fetchrow(
                """
                UPDATE profiles
                SET moderation_status = $2, updated_at = now()
                WHERE id::text = $1 AND moderation_status IS DISTINCT FROM $2
                RETURNING *
                """,
                user_id,
                BANNED_STATUS,
            )
            if record is not None:
                return dict(record)
            exists = await self.pool.fetchval("SELECT 1 FROM profiles WHERE id::text = $1", user_id)
        except asyncpg.PostgresError as exc:
            raise EntityUpdateError(f"profile {user_id}: {exc}") from exc
        if exists is None:
            raise EntityUpdateError(f"profile {user_id} not found")
        return None

    async def remove_team_membership(self, user_id: str, team_id: str) -> None:
        try:
            status = await self.pool.execute(
                """
                UPDATE hackathon_registrations
                SET team_id = NULL, team_role = NULL, updated_at = now()
                WHERE user_id::text = $1 AND team_id::text = $2
                """,
                user_id,
                team_id,
            )
        except asyncpg.PostgresError as exc:
            raise EntityUpdateError(f"team {team_id}: {exc}") from exc
        if status.endswith(" 0"):
            raise EntityUpdateError(f"no membership for {user_id} in team {team_id}")

    async def get_organizer_flag(self, organizer_id: str) -> bool:
        value = await self.pool.fetchval(
            "SELECT is_flagged FROM organizer_trust_scores WHERE organizer_id::text = $1",
            organizer_id,
        )
        return bool(value)

    async def set_organizer_flag(
        self,
        organizer_id: str,
        *,
        flagged: bool,
        reason: Optional[str] = None,
    ) -> Optional[Mapping[str, Any]]:
        if flagged:
            query = """
                INSERT INTO organizer_trust_scores (organizer_id, is_flagged, flag_reason, flagged_at, last_calculated_at)
                VALUES ($1, true, $2, now(), now())
                ON CONFLICT (organizer_id) DO UPDATE
                SET is_flagged = true, flag_reason = EXCLUDED.flag_reason,
                    flagged_at = now(), last_calculated_at = now()
                WHERE organizer_trust_scores.is_flagged IS NOT TRUE
                RETURNING NULL::text AS previous_reason
            """
            args: tuple[Any, ...] = (organizer_id, reason)
        else:
            query = """
                WITH prev AS (
                    SELECT organizer_id, flag_reason
                    FROM organizer_trust_scores
                    WHERE organizer_id::text = $1 AND is_flagged
                    FOR UPDATE
                )
                UPDATE organizer_trust_scores AS scores
                SET is_flagged = false, flag_reason = NULL, flagged_at = NULL, last_calculated_at = now()
                FROM prev
                WHERE scores.organizer_id = prev.organizer_id
                RETURNING prev.flag_reason AS previous_reason
            """
            args = (organizer_id,)
        try:
            record = await self.pool.fetchrow(query, *args)
        except asyncpg.PostgresError as exc:
            raise EntityUpdateError(f"organizer {organizer_id}: {exc}") from exc
        if record is None:
            return None
        return {"is_flagged": not flagged, "flag_reason": record["previous_reason"]}

    @staticmethod
    def _table_for(entity_type: str) -> str:
        if entity_type == HACKATHON_ENTITY:
            return "organizer_hackathons"
        raise ValueError(f"unknown entity type: {entity_type}")


class PostgresAuditSink(AuditSink):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def append_log(self, entry: AuditLogInput) -> AuditLogEntry:
        ensure_valid(entry)
        record = await self.pool.fetchrow(
            """
            INSERT INTO admin_audit_logs
                (id, action_type, admin_id, admin_email, target_type, target_id, reason, before_state, after_state)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9::jsonb)
            RETURNING id, action_type, admin_id, admin_email, target_type, target_id, reason,
                      before_state, after_state, created_at
            """,
            str(uuid4()),
            AuditActionType(entry.action_type).value,
            entry.admin_id,
            entry.admin_email,
            AuditTargetType(entry.target_type).value,
            str(entry.target_id),
            entry.reason.strip(),
            json.dumps(dict(entry.before_state), default=str) if entry.before_state is not None else None,
            json.dumps(dict(entry.after_state), default=str) if entry.after_state is not None else None,
        )
        if record is None:
            raise EntityUpdateError("audit log insert returned no row")
        return AuditLogEntry(
            id=str(record["id"]),
            action_type=AuditActionType(record["action_type"]),
            admin_id=str(record["admin_id"]),
            admin_email=str(record["admin_email"]),
            target_type=AuditTargetType(record["target_type"]),
            target_id=str(record["target_id"]),
            reason=str(record["reason"]),
            before_state=_json_field(record["before_state"]),
            after_state=_json_field(record["after_state"]),
            created_at=record["created_at"],
        )
