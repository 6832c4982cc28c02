from fastapi.testclient import TestClient

from app.core.config import Settings, validate_settings

import pytest

UPDATE = {
    "update_id": 1,
    "message": {
        "message_id": 1,
        "from": {"id": 777, "is_bot": False, "first_name": "Test", "username": "test_user"},
        "chat": {"id": 777, "type": "private"},
        "text": "/start",
    },
}

SECRET = "s3cret"
HEADER = "X-Telegram-Bot-Api-Secret-Token"


@pytest.fixture
def client(make_app):
    with TestClient(make_app(WEBHOOK_SECRET=SECRET)) as test_client:
        yield test_client


def test_live(client):
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_health_reports_memory_storage(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["storage"] == "memory"
    assert data["checks"]["active_sessions"] == 0


def test_ready(client):
    assert client.get("/ready").json() == {"status": "ready"}


def test_wrong_secret_is_refused(client, transport):
    response = client.post("/api/v1/webhook", json=UPDATE, headers={HEADER: "nope"})

    assert response.status_code == 403
    assert transport.calls == []


def test_missing_secret_is_refused(client):
    response = client.post("/api/v1/webhook", json=UPDATE)
    assert response.status_code == 403


def test_update_is_dispatched(client, transport):
    response = client.post("/api/v1/webhook", json=UPDATE, headers={HEADER: SECRET})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert "Welcome" in transport.last_text_to(777)


def test_invalid_json(client):
    response = client.post(
        "/api/v1/webhook",
        content=b"not json",
        headers={HEADER: SECRET, "Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_webhook_route_status(client):
    assert client.get("/api/v1/webhook").json()["status"] == "ok"


def test_no_secret_configured_accepts_updates(make_app, transport):
    with TestClient(make_app()) as test_client:
        response = test_client.post("/api/v1/webhook", json=UPDATE)

    assert response.status_code == 200
    assert "Welcome" in transport.last_text_to(777)


def test_validate_settings():
    good = Settings(_env_file=None, BOT_TOKEN="1:x", ADMIN_IDS="1, 2,abc")
    assert validate_settings(good)
    assert good.admin_ids == frozenset({1, 2})

    with pytest.raises(ValueError):
        validate_settings(Settings(_env_file=None, BOT_TOKEN="", ADMIN_IDS="1"))

    with pytest.raises(ValueError):
        validate_settings(Settings(_env_file=None, BOT_TOKEN="1:x", ADMIN_IDS=""))

    with pytest.raises(ValueError):
        validate_settings(Settings(
            _env_file=None, ENVIRONMENT="production", BOT_TOKEN="1:x", ADMIN_IDS="1",
            STORAGE_BACKEND="memory",
        ))


def test_channel_name_gets_at_prefix():
    assert Settings(_env_file=None, CHANNEL_USERNAME="jumarket").CHANNEL_USERNAME == "@jumarket"
    assert Settings(_env_file=None, CHANNEL_USERNAME="-100123").CHANNEL_USERNAME == "-100123"
