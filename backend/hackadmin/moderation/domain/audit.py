"""Audit record shape and the sink contract used by moderation workflows."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Protocol
from uuid import uuid4

from hackadmin.moderation.domain.errors import AuditValidationError
from hackadmin.moderation.domain.validation import ValidationResult


class AuditActionType(str, Enum):
    HACKATHON_APPROVED = "hackathon_approved"
    HACKATHON_REJECTED = "hackathon_rejected"
    HACKATHON_UNPUBLISHED = "hackathon_unpublished"
    HACKATHON_DELETED = "hackathon_deleted"
    HACKATHON_EDITED = "hackathon_edited"
    HACKATHON_FEATURED = "hackathon_featured"
    HACKATHON_UNFEATURED = "hackathon_unfeatured"
    USER_WARNED = "user_warned"
    USER_MUTED = "user_muted"
    USER_SUSPENDED = "user_suspended"
    USER_BANNED = "user_banned"
    USER_UNBANNED = "user_unbanned"
    USER_DELETED = "user_deleted"
    USERS_NOTIFIED = "users_notified"
    ORGANIZER_REVOKED = "organizer_revoked"
    ORGANIZER_FLAGGED = "organizer_flagged"
    ORGANIZER_UNFLAGGED = "organizer_unflagged"
    BULK_ACTION = "bulk_action"
    ROLE_CHANGED = "role_changed"
    TEAM_MEMBER_REMOVED = "team_member_removed"
    QUEUE_ITEM_CLAIMED = "queue_item_claimed"
    QUEUE_ITEM_RELEASED = "queue_item_released"
    QUEUE_ITEM_RESOLVED = "queue_item_resolved"
    QUEUE_ITEM_DISMISSED = "queue_item_dismissed"


class AuditTargetType(str, Enum):
    HACKATHON = "hackathon"
    USER = "user"
    ORGANIZER = "organizer"
    PROJECT = "project"
    SUBMISSION = "submission"
    QUEUE_ITEM = "queue_item"
    TEAM = "team"
    ADMIN_ROLE = "admin_role"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class AuditLogInput:
    action_type: AuditActionType
    admin_id: str
    admin_email: str
    target_type: AuditTargetType
    target_id: str
    reason: str
    before_state: Optional[Mapping[str, Any]] = None
    after_state: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True, slots=True)
class AuditLogEntry:
    """Immutable audit trail row."""

    id: str
    action_type: AuditActionType
    admin_id: str
    admin_email: str
    target_type: AuditTargetType
    target_id: str
    reason: str
    before_state: Optional[Mapping[str, Any]]
    after_state: Optional[Mapping[str, Any]]
    created_at: datetime


def _is_member(enum_cls: type[Enum], value: object) -> bool:
    try:
        enum_cls(value)
    except ValueError:
        return False
    return True


def validate_audit_log_input(entry: AuditLogInput) -> ValidationResult:
    result = ValidationResult()
    errors = result.errors
    if not entry.action_type:
        errors.append("action_type is required")
    elif not _is_member(AuditActionType, entry.action_type):
        errors.append(f"Invalid action_type: {entry.action_type}")
    if not entry.admin_id or not str(entry.admin_id).strip():
        errors.append("admin_id is required")
    if not entry.admin_email:
        errors.append("admin_email is required")
    elif "@" not in entry.admin_email:
        errors.append("admin_email must be a valid email address")
    if not entry.target_type:
        errors.append("target_type is required")
    elif not _is_member(AuditTargetType, entry.target_type):
        errors.append(f"Invalid target_type: {entry.target_type}")
    if not entry.target_id or not str(entry.target_id).strip():
        errors.append("target_id is required")
    if not entry.reason or not entry.reason.strip():
        errors.append("reason is required")
    return result


def ensure_valid(entry: AuditLogInput) -> None:
    result = validate_audit_log_input(entry)
    if not result.valid:
        raise AuditValidationError(result.errors)


class AuditSink(Protocol):
    """Append-only destination for audit records."""

    async def append_log(self, entry: AuditLogInput) -> AuditLogEntry:
        ...


class InMemoryAuditSink(AuditSink):
    """Lightweight in-memory sink for local development and tests."""

    def __init__(self) -> None:
        self.entries: list[AuditLogEntry] = []
        self._lock = asyncio.Lock()

    async def append_log(self, entry: AuditLogInput) -> AuditLogEntry:
        ensure_valid(entry)
        record = AuditLogEntry(
            id=str(uuid4()),
            action_type=AuditActionType(entry.action_type),
            admin_id=entry.admin_id,
            admin_email=entry.admin_email,
            target_type=AuditTargetType(entry.target_type),
            target_id=str(entry.target_id),
            reason=entry.reason.strip(),
            before_state=dict(entry.before_state) if entry.before_state is not None else None,
            after_state=dict(entry.after_state) if entry.after_state is not None else None,
            created_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            self.entries.append(record)
        return record

    def by_action(self, action_type: AuditActionType) -> list[AuditLogEntry]:
        return [entry for entry in self.entries if entry.action_type is action_type]
