import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from hackadmin.infra import postgres
from hackadmin.main import app
from hackadmin.moderation.domain import container
from hackadmin.moderation.domain.audit import InMemoryAuditSink
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.notifications import InMemoryNotificationChannel
from hackadmin.moderation.domain.platform import InMemoryPlatformRepository
from hackadmin.moderation.domain.queue_repository import InMemoryQueueRepository
from hackadmin.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from hackadmin.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Keep the app on in-process stores with no staff allow-list."""
	original_backend = settings.moderation_backend
	original_public = settings.obs_metrics_public
	settings.moderation_backend = "memory"
	settings.obs_metrics_public = True
	try:
		yield
	finally:
		settings.moderation_backend = original_backend
		settings.obs_metrics_public = original_public


@pytest.fixture(autouse=True)
def moderation_stores():
	"""Fresh in-memory moderation stores wired into the container for every test."""
	stores = {
		"queue": InMemoryQueueRepository(),
		"platform": InMemoryPlatformRepository(),
		"audit": InMemoryAuditSink(),
		"notifications": InMemoryNotificationChannel(),
	}
	container.configure(
		queue_repository=stores["queue"],
		platform_repository=stores["platform"],
		audit_sink=stores["audit"],
		notifications=stores["notifications"],
		staff_ids=(),
	)
	return stores


@pytest.fixture
def admin_a() -> AdminActor:
	return AdminActor(id="admin-a", email="a@hackadmin.test")


@pytest.fixture
def admin_b() -> AdminActor:
	return AdminActor(id="admin-b", email="b@hackadmin.test")


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
