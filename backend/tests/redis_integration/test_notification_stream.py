import pytest

from hackadmin.infra.redis import redis_client
from hackadmin.moderation.domain.audit import InMemoryAuditSink
from hackadmin.moderation.domain.ban_service import BanService
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.platform import InMemoryPlatformRepository, Registration, UserProfile
from hackadmin.moderation.infra.notifications import RedisNotificationChannel


@pytest.mark.asyncio
async def test_notify_appends_one_entry_per_distinct_user():
	channel = RedisNotificationChannel(redis_client, stream="test:notifications")
	sent = await channel.notify(["u1", "u2", "u1"], "organizer banned")
	assert sent == 2

	entries = await redis_client.xrange("test:notifications")
	assert [fields["user_id"] for _, fields in entries] == ["u1", "u2"]
	assert all(fields["reason"] == "organizer banned" for _, fields in entries)
	assert all(fields["kind"] == "moderation.user_banned" for _, fields in entries)


@pytest.mark.asyncio
async def test_notify_without_recipients_writes_nothing():
	channel = RedisNotificationChannel(redis_client, stream="test:empty")
	assert await channel.notify([], "nothing") == 0
	assert await redis_client.exists("test:empty") == 0


@pytest.mark.asyncio
async def test_ban_cascade_publishes_to_stream():
	platform = InMemoryPlatformRepository(
		users=[UserProfile(id="u1"), UserProfile(id="u2")],
		registrations=[
			Registration(user_id="u1", hackathon_id="h1", team_id="t1"),
			Registration(user_id="u2", hackathon_id="h1", team_id="t1"),
		],
	)
	channel = RedisNotificationChannel(redis_client, stream="test:ban")
	service = BanService(platform=platform, audit=InMemoryAuditSink(), notifications=channel)
	result = await service.ban_user_with_cascade("u1", "cheating", AdminActor(id="a", email="a@hackadmin.test"))
	assert result.notifications_sent == 1
	entries = await redis_client.xrange("test:ban")
	assert [fields["user_id"] for _, fields in entries] == ["u2"]
