"""Health Probes — liveness always 200, readiness follows the database."""

import nexus.infrastructure.database as db_module


async def test_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


async def test_readiness_with_database(client):
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ready"
    assert body["checks"] == {"database": "healthy"}
    assert body["registrar_mode"] == "mock"


async def test_readiness_reports_integrations_without_secrets(client, settings):
    settings.stripe_webhook_secret = ""
    res = await client.get("/api/v1/health/ready")
    integrations = res.json()["integrations"]
    assert integrations["meta_ads"] is True
    assert integrations["stripe"] is False
    assert "sk_test_123" not in res.text


async def test_readiness_without_database(client, monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 503
    assert res.json()["reason"] == "database_unavailable"
