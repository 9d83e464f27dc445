from __future__ import annotations

import dataclasses

import pytest

from hackadmin.moderation.domain.audit import AuditActionType, InMemoryAuditSink
from hackadmin.moderation.domain.ban_service import BanService
from hackadmin.moderation.domain.cascade import CascadeEffectKind
from hackadmin.moderation.domain.errors import (
    AuditValidationError,
    BanValidationError,
    EntityUpdateError,
    PolicyViolationError,
    UserNotFoundError,
)
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.notifications import InMemoryNotificationChannel
from hackadmin.moderation.domain.platform import (
    HACKATHON_ENTITY,
    InMemoryPlatformRepository,
    Registration,
    UserProfile,
)

ADMIN = AdminActor(id="admin-1", email="admin@hackadmin.test")


def seed_platform(cls=InMemoryPlatformRepository, **kwargs) -> InMemoryPlatformRepository:
    return cls(
        users=[
            UserProfile(id="org-1", email="org@example.test", role="organizer"),
            UserProfile(id="hacker-1", email="h1@example.test"),
            UserProfile(id="u2"),
            UserProfile(id="u3"),
            UserProfile(id="u4"),
        ],
        hackathons=[
            {"id": "10", "organizer_id": "org-1", "status": "published", "hackathon_name": "Spring Jam"},
            {"id": "11", "organizer_id": "org-1", "status": "pending_review", "hackathon_name": "Summer Jam"},
            {"id": "12", "organizer_id": "org-1", "status": "draft", "hackathon_name": "Draft Jam"},
            {"id": "13", "organizer_id": "someone-else", "status": "published", "hackathon_name": "Other"},
        ],
        registrations=[
            Registration(user_id="org-1", hackathon_id="13", team_id="t1", team_role="lead"),
            Registration(user_id="u2", hackathon_id="13", team_id="t1", team_role="member"),
            Registration(user_id="u3", hackathon_id="10"),
            Registration(user_id="u4", hackathon_id="10"),
            Registration(user_id="u2", hackathon_id="11"),
            Registration(user_id="hacker-1", hackathon_id="13", team_id="t2", team_role="member"),
            Registration(user_id="u4", hackathon_id="13", team_id="t2", team_role="lead"),
        ],
        **kwargs,
    )


def build(platform=None, notifications=None):
    platform = platform or seed_platform()
    audit = InMemoryAuditSink()
    channel = notifications or InMemoryNotificationChannel()
    return BanService(platform=platform, audit=audit, notifications=channel), platform, audit, channel


@pytest.mark.asyncio
async def test_banning_organizer_runs_full_cascade():
    service, platform, audit, channel = build()
    result = await service.ban_user_with_cascade("org-1", "fraudulent prizes", ADMIN)

    assert result.user_id == "org-1"
    assert result.hackathons_unpublished == 2
    assert result.teams_removed == 1
    assert result.notifications_sent == 3
    assert result.affected_users == ("u2", "u3", "u4")
    assert result.failures == []

    assert platform.users["org-1"].moderation_status == "banned"
    for hackathon_id in ("10", "11"):
        row = platform.hackathons[hackathon_id]
        assert row["status"] == "unpublished"
        assert row["admin_notes"] == "Unpublished due to organizer ban: fraudulent prizes"
    assert platform.hackathons["12"]["status"] == "draft"
    assert platform.hackathons["13"]["status"] == "published"
    membership = [reg for reg in platform.registrations if reg.user_id == "org-1"][0]
    assert membership.team_id is None
    assert membership.team_role is None

    assert channel.sent == [(("u2", "u3", "u4"), "fraudulent prizes")]

    unpublished = audit.by_action(AuditActionType.HACKATHON_UNPUBLISHED)
    assert sorted(entry.target_id for entry in unpublished) == ["10", "11"]
    assert unpublished[0].reason == "Cascade effect from user ban: fraudulent prizes"
    assert unpublished[0].before_state["status"] in {"published", "pending_review"}
    assert unpublished[0].after_state["status"] == "unpublished"

    banned = audit.by_action(AuditActionType.USER_BANNED)
    assert len(banned) == 1
    assert banned[0].before_state == {"role": "organizer", "moderation_status": "active"}
    assert banned[0].after_state["moderation_status"] == "banned"
    assert banned[0].after_state["cascade_effects"] == {
        "hackathons_unpublished": 2,
        "teams_removed": 1,
        "notifications_sent": 3,
    }

    removed = audit.by_action(AuditActionType.TEAM_MEMBER_REMOVED)
    assert [(entry.target_type.value, entry.target_id) for entry in removed] == [("team", "t1")]
    assert removed[0].after_state == {"user_id": "org-1", "team_id": None}
    notified = audit.by_action(AuditActionType.USERS_NOTIFIED)
    assert len(notified) == 1
    assert notified[0].target_id == "org-1"
    assert notified[0].after_state == {"affected_user_ids": ["u2", "u3", "u4"], "notifications_sent": 3}


@pytest.mark.asyncio
async def test_banning_participant_skips_unpublish():
    service, platform, audit, _ = build()
    result = await service.ban_user_with_cascade("hacker-1", "harassment", ADMIN)
    assert result.hackathons_unpublished == 0
    assert result.teams_removed == 1
    assert result.affected_users == ("u4",)
    assert audit.by_action(AuditActionType.HACKATHON_UNPUBLISHED) == []
    assert platform.hackathons["13"]["status"] == "published"


@pytest.mark.asyncio
async def test_user_without_cascade_only_gets_banned():
    service, platform, audit, channel = build()
    result = await service.ban_user_with_cascade("u3", "spam", ADMIN)
    assert (result.hackathons_unpublished, result.teams_removed, result.notifications_sent) == (0, 0, 0)
    assert result.results == []
    assert channel.sent == []
    assert platform.users["u3"].moderation_status == "banned"
    assert len(audit.by_action(AuditActionType.USER_BANNED)) == 1


class FlakyHackathonPlatform(InMemoryPlatformRepository):
    async def update_entity_status(self, entity_type, entity_id, fields):
        if entity_type == HACKATHON_ENTITY and entity_id == "10":
            raise EntityUpdateError("hackathon 10: connection reset")
        return await super().update_entity_status(entity_type, entity_id, fields)


@pytest.mark.asyncio
async def test_one_failed_unpublish_does_not_abort_cascade():
    service, platform, audit, _ = build(platform=seed_platform(FlakyHackathonPlatform))
    result = await service.ban_user_with_cascade("org-1", "fraud", ADMIN)

    assert result.hackathons_unpublished == 1
    assert result.teams_removed == 1
    assert result.notifications_sent == 3
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.effect is CascadeEffectKind.UNPUBLISH_HACKATHON
    assert failure.target_id == "10"
    assert "connection reset" in failure.error

    assert platform.hackathons["10"]["status"] == "published"
    assert platform.hackathons["11"]["status"] == "unpublished"
    banned = audit.by_action(AuditActionType.USER_BANNED)
    assert banned[0].after_state["cascade_effects"]["hackathons_unpublished"] == 1


class BrokenTeamsPlatform(InMemoryPlatformRepository):
    async def remove_team_membership(self, user_id, team_id):
        raise RuntimeError("registrations table locked")


@pytest.mark.asyncio
async def test_team_removal_failure_is_isolated():
    service, _, audit, _ = build(platform=seed_platform(BrokenTeamsPlatform))
    result = await service.ban_user_with_cascade("org-1", "fraud", ADMIN)
    assert result.teams_removed == 0
    assert result.hackathons_unpublished == 2
    assert [failure.effect for failure in result.failures] == [CascadeEffectKind.REMOVE_FROM_TEAM]
    assert len(audit.by_action(AuditActionType.USER_BANNED)) == 1
    assert audit.by_action(AuditActionType.TEAM_MEMBER_REMOVED) == []


class DownNotificationChannel(InMemoryNotificationChannel):
    async def notify(self, user_ids, reason):
        raise ConnectionError("stream unavailable")


@pytest.mark.asyncio
async def test_notification_failure_is_isolated():
    service, _, audit, _ = build(notifications=DownNotificationChannel())
    result = await service.ban_user_with_cascade("org-1", "fraud", ADMIN)
    assert result.notifications_sent == 0
    assert result.affected_users == ("u2", "u3", "u4")
    assert [failure.effect for failure in result.failures] == [CascadeEffectKind.NOTIFY_USERS]
    assert len(audit.by_action(AuditActionType.USER_BANNED)) == 1
    assert audit.by_action(AuditActionType.USERS_NOTIFIED) == []


class ReadOnlyProfilesPlatform(InMemoryPlatformRepository):
    async def mark_user_banned(self, user_id):
        raise EntityUpdateError("profiles is read-only")


@pytest.mark.asyncio
async def test_failure_to_mark_user_banned_propagates():
    service, platform, audit, _ = build(platform=seed_platform(ReadOnlyProfilesPlatform))
    with pytest.raises(EntityUpdateError):
        await service.ban_user_with_cascade("org-1", "fraud", ADMIN)
    assert platform.hackathons["10"]["status"] == "published"
    assert audit.entries == []


@pytest.mark.asyncio
async def test_ban_preconditions():
    service, _, _, _ = build()
    with pytest.raises(UserNotFoundError):
        await service.ban_user_with_cascade("ghost", "spam", ADMIN)
    with pytest.raises(BanValidationError):
        await service.ban_user_with_cascade("u3", "  ", ADMIN)
    await service.ban_user_with_cascade("u3", "spam", ADMIN)
    with pytest.raises(PolicyViolationError, match="already banned"):
        await service.ban_user_with_cascade("u3", "spam again", ADMIN)


@pytest.mark.asyncio
async def test_unauditable_actor_is_rejected_before_the_ban():
    service, platform, audit, channel = build()
    with pytest.raises(AuditValidationError):
        await service.ban_user_with_cascade("org-1", "fraud", AdminActor(id="admin-1", email="ops"))
    assert platform.users["org-1"].moderation_status == "active"
    assert platform.hackathons["10"]["status"] == "published"
    assert channel.sent == []
    assert audit.entries == []

    await service.ban_user_with_cascade("org-1", "fraud", ADMIN)
    assert len(audit.by_action(AuditActionType.USER_BANNED)) == 1


class StaleProfilePlatform(InMemoryPlatformRepository):
    """Serves the profile as it looked before any ban was applied."""

    async def get_user(self, user_id):
        user = await super().get_user(user_id)
        return dataclasses.replace(user, moderation_status="active") if user else None


@pytest.mark.asyncio
async def test_second_ban_from_stale_read_is_refused_by_the_store():
    service, platform, audit, channel = build(platform=seed_platform(StaleProfilePlatform))
    await service.ban_user_with_cascade("org-1", "fraud", ADMIN)
    with pytest.raises(PolicyViolationError, match="already banned"):
        await service.ban_user_with_cascade("org-1", "fraud again", ADMIN)
    assert len(audit.by_action(AuditActionType.USER_BANNED)) == 1
    assert len(audit.by_action(AuditActionType.HACKATHON_UNPUBLISHED)) == 2
    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_preview_describes_cascade_without_writing():
    service, platform, audit, channel = build()
    preview = await service.preview_ban_cascade("org-1")
    assert preview.is_organizer is True
    assert preview.hackathons_to_unpublish == ("10", "11")
    assert preview.teams_to_remove_from == ("t1",)
    assert preview.users_to_notify == ("u2", "u3", "u4")
    assert preview.affected_users_count == 3

    assert platform.users["org-1"].moderation_status == "active"
    assert platform.hackathons["10"]["status"] == "published"
    assert audit.entries == []
    assert channel.sent == []

    with pytest.raises(UserNotFoundError):
        await service.preview_ban_cascade("ghost")
