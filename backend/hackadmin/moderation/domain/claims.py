"""Claim state machine for queue items.

    pending --claim--> claimed --resolve--> resolved | dismissed
       ^                  |
       +-----release------+

The guards below only inspect an in-memory snapshot and are advisory. The
authoritative check is the conditional write issued with the matching
``expected_*`` state: two operators can both pass ``can_claim`` on the same
snapshot, only one of them gets their write accepted by the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from hackadmin.moderation.domain.models import (
    QueueItem,
    QueueResolution,
    QueueStatus,
)


@dataclass(frozen=True, slots=True)
class GuardResult:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def can_claim(item: QueueItem, admin_id: str) -> GuardResult:
    if item.claimed_by is not None and item.claimed_by != admin_id:
        return GuardResult(False, "Item is already claimed by another admin")
    if item.claimed_by == admin_id:
        # Re-claiming is rejected so the claimant has to release or resolve explicitly
        return GuardResult(False, "Item is already claimed by you")
    if item.is_terminal:
        return GuardResult(False, f"Item is already {item.status.value}")
    return GuardResult(True, "Item can be claimed")


def can_release(item: QueueItem, admin_id: str) -> GuardResult:
    if item.claimed_by is None:
        return GuardResult(False, "Item is not claimed")
    if item.claimed_by != admin_id:
        return GuardResult(False, "Item is claimed by another admin")
    if item.is_terminal:
        return GuardResult(False, f"Item is already {item.status.value}")
    return GuardResult(True, "Item can be released")


def can_resolve(item: QueueItem, admin_id: str) -> GuardResult:
    if item.is_terminal:
        return GuardResult(False, f"Item is already {item.status.value}")
    if item.claimed_by != admin_id:
        return GuardResult(False, "You must claim the item before resolving it")
    return GuardResult(True, "Item can be resolved")


def final_status_for(resolution: QueueResolution) -> QueueStatus:
    if QueueResolution(resolution) is QueueResolution.DISMISSED:
        return QueueStatus.DISMISSED
    return QueueStatus.RESOLVED


def format_resolution(resolution: QueueResolution, reason: str, action_taken: Optional[str] = None) -> str:
    text = f"{QueueResolution(resolution).value}: {reason.strip()}"
    if action_taken:
        text += f" (Action: {action_taken})"
    return text


# Expected prior state for each conditional write. None means "IS NULL".

def expected_for_claim() -> Mapping[str, Any]:
    return {"claimed_by": None, "status": QueueStatus.PENDING}


def expected_for_claimant(admin_id: str) -> Mapping[str, Any]:
    return {"claimed_by": admin_id, "status": QueueStatus.CLAIMED}


def claim_fields(admin_id: str, now: datetime) -> dict[str, Any]:
    return {
        "claimed_by": admin_id,
        "claimed_at": now,
        "status": QueueStatus.CLAIMED,
        "updated_at": now,
    }


def release_fields(now: datetime) -> dict[str, Any]:
    return {
        "claimed_by": None,
        "claimed_at": None,
        "status": QueueStatus.PENDING,
        "updated_at": now,
    }


def resolve_fields(
    admin_id: str,
    resolution: QueueResolution,
    reason: str,
    action_taken: Optional[str],
    now: datetime,
) -> dict[str, Any]:
    # claimed_by is cleared together with the status change so that
    # "claimed_by is set" keeps meaning "status is claimed"
    return {
        "status": final_status_for(resolution),
        "resolution": format_resolution(resolution, reason, action_taken),
        "resolved_by": admin_id,
        "resolved_at": now,
        "claimed_by": None,
        "updated_at": now,
    }
