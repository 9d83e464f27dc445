"""Data model for the moderation queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union


class QueueItemType(str, Enum):
    REPORT = "report"
    USER = "user"
    HACKATHON = "hackathon"
    PROJECT = "project"


class QueueStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class QueueResolution(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    DISMISSED = "dismissed"
    ESCALATED = "escalated"


class PriorityBand(str, Enum):
    ALL = "all"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


TERMINAL_STATUSES = frozenset({QueueStatus.RESOLVED, QueueStatus.DISMISSED})
OPEN_STATUSES = frozenset({QueueStatus.PENDING, QueueStatus.CLAIMED})


@dataclass(slots=True)
class QueueItem:
    """One unit of moderation work as persisted in the queue store."""

    id: str
    item_type: QueueItemType
    priority: int
    title: str
    target_type: str
    target_id: str
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    target_data: Optional[Mapping[str, Any]] = None
    report_count: int = 0
    reporter_ids: tuple[str, ...] = ()
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    status: QueueStatus = QueueStatus.PENDING
    resolution: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def snapshot(self) -> dict[str, Any]:
        """State captured into audit before/after fields."""
        return {
            "status": self.status.value,
            "priority": self.priority,
            "report_count": self.report_count,
            "claimed_by": self.claimed_by,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
            "resolution": self.resolution,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass(slots=True)
class AddToQueueInput:
    item_type: Union[QueueItemType, str, None]
    title: Optional[str]
    target_type: Optional[str]
    target_id: Optional[str]
    description: Optional[str] = None
    target_data: Optional[Mapping[str, Any]] = None
    reporter_id: Optional[str] = None
    reporter_trust_score: Optional[float] = None


@dataclass(slots=True)
class ResolveQueueInput:
    resolution: QueueResolution
    reason: str
    action_taken: Optional[str] = None


@dataclass(slots=True)
class QueueFilters:
    item_type: Union[QueueItemType, Sequence[QueueItemType], None] = None
    priority: PriorityBand = PriorityBand.ALL
    status: Union[QueueStatus, Sequence[QueueStatus], None] = None
    # "unclaimed", "mine" or a concrete admin id
    claimed_by: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = 1
    limit: Optional[int] = None


@dataclass(slots=True)
class QueueCounts:
    total: int = 0
    pending: int = 0
    claimed: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class QueueResponse:
    items: list[QueueItem]
    counts: QueueCounts
    page: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class AdminActor:
    """The operator performing an action; recorded on every audit entry."""

    id: str
    email: str
