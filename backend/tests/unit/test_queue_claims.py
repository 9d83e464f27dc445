from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hackadmin.moderation.domain import claims
from hackadmin.moderation.domain.models import (
    QueueItem,
    QueueItemType,
    QueueResolution,
    QueueStatus,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def make_item(*, status: QueueStatus = QueueStatus.PENDING, claimed_by: str | None = None) -> QueueItem:
    return QueueItem(
        id="item-1",
        item_type=QueueItemType.REPORT,
        priority=5,
        title="Spam project",
        target_type="project",
        target_id="p-1",
        created_at=NOW,
        updated_at=NOW,
        status=status,
        claimed_by=claimed_by,
    )


def test_claim_by_other_admin_is_rejected():
    item = make_item(status=QueueStatus.CLAIMED, claimed_by="A")
    result = claims.can_claim(item, "B")
    assert result.allowed is False
    assert "already claimed" in result.reason


def test_reclaim_by_same_admin_is_rejected():
    item = make_item(status=QueueStatus.CLAIMED, claimed_by="A")
    result = claims.can_claim(item, "A")
    assert not result
    assert result.reason == "Item is already claimed by you"


def test_claim_allowed_only_for_unclaimed_open_items():
    assert claims.can_claim(make_item(), "A")
    resolved = claims.can_claim(make_item(status=QueueStatus.RESOLVED), "A")
    assert not resolved
    assert resolved.reason == "Item is already resolved"
    assert not claims.can_claim(make_item(status=QueueStatus.DISMISSED), "A")


@pytest.mark.parametrize(
    "item, actor, allowed",
    [
        (make_item(), "A", False),
        (make_item(status=QueueStatus.CLAIMED, claimed_by="B"), "A", False),
        (make_item(status=QueueStatus.CLAIMED, claimed_by="A"), "A", True),
    ],
)
def test_release_guard(item, actor, allowed):
    assert bool(claims.can_release(item, actor)) is allowed


@pytest.mark.parametrize(
    "item, allowed",
    [
        (make_item(), False),
        (make_item(status=QueueStatus.CLAIMED, claimed_by="B"), False),
        (make_item(status=QueueStatus.CLAIMED, claimed_by="A"), True),
        (make_item(status=QueueStatus.RESOLVED), False),
        (make_item(status=QueueStatus.DISMISSED), False),
    ],
)
def test_resolve_requires_claim_by_actor(item, allowed):
    assert bool(claims.can_resolve(item, "A")) is allowed


def test_resolve_unclaimed_reason():
    assert claims.can_resolve(make_item(), "A").reason == "You must claim the item before resolving it"


@pytest.mark.parametrize(
    "resolution, status",
    [
        (QueueResolution.DISMISSED, QueueStatus.DISMISSED),
        (QueueResolution.APPROVED, QueueStatus.RESOLVED),
        (QueueResolution.REJECTED, QueueStatus.RESOLVED),
        (QueueResolution.ESCALATED, QueueStatus.RESOLVED),
    ],
)
def test_final_status_for_resolution(resolution, status):
    assert claims.final_status_for(resolution) is status


def test_format_resolution():
    assert claims.format_resolution(QueueResolution.REJECTED, " spam ") == "rejected: spam"
    assert (
        claims.format_resolution(QueueResolution.APPROVED, "fine", "restored")
        == "approved: fine (Action: restored)"
    )


def test_claim_and_release_fields_move_claim_with_status():
    claimed = claims.claim_fields("A", NOW)
    assert claimed["claimed_by"] == "A"
    assert claimed["status"] is QueueStatus.CLAIMED
    released = claims.release_fields(NOW)
    assert released["claimed_by"] is None
    assert released["claimed_at"] is None
    assert released["status"] is QueueStatus.PENDING


def test_resolve_fields_clear_claimant():
    fields = claims.resolve_fields("A", QueueResolution.DISMISSED, "duplicate", None, NOW)
    assert fields["status"] is QueueStatus.DISMISSED
    assert fields["claimed_by"] is None
    assert fields["resolved_by"] == "A"
    assert fields["resolution"] == "dismissed: duplicate"


def test_expected_states():
    assert claims.expected_for_claim() == {"claimed_by": None, "status": QueueStatus.PENDING}
    assert claims.expected_for_claimant("A") == {"claimed_by": "A", "status": QueueStatus.CLAIMED}
