import pytest

from hackadmin.settings import settings


@pytest.mark.asyncio
async def test_health(api_client):
	resp = await api_client.get("/health")
	assert resp.status_code == 200
	assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_readiness_in_memory_mode(api_client):
	resp = await api_client.get("/health/ready")
	assert resp.status_code == 200
	assert resp.json()["checks"]["backend"]["mode"] == "memory"


@pytest.mark.asyncio
async def test_metrics_expose_queue_counters(api_client):
	await api_client.post(
		"/api/admin/v1/queue",
		json={"item_type": "user", "title": "Spam bot", "target_type": "user", "target_id": "bot-1"},
	)
	resp = await api_client.get("/metrics")
	assert resp.status_code == 200
	assert "hackadmin_queue_transitions_total" in resp.text


@pytest.mark.asyncio
async def test_metrics_require_token_when_private(api_client, monkeypatch):
	monkeypatch.setattr(settings, "obs_metrics_public", False)
	monkeypatch.setattr(settings, "obs_admin_token", "s3cret")
	assert (await api_client.get("/metrics")).status_code == 403
	resp = await api_client.get("/metrics", headers={"X-Admin-Token": "s3cret"})
	assert resp.status_code == 200
