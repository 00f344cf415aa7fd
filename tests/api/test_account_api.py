import pytest

from tests.conftest import WEBHOOK_SECRET
from tests.fakes import auth

INSERT = {
    "type": "INSERT",
    "table": "users",
    "record": {
        "id": "user-1",
        "email": "user1@example.com",
        "raw_user_meta_data": {"username": "capy"},
    },
}


@pytest.mark.asyncio
async def test_me_requires_a_token(app_client):
    res = await app_client.get("/users/me")
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_me_before_and_after_the_webhook_sync(app_client):
    before = await app_client.get("/users/me", headers=auth())
    assert before.status_code == 200
    assert before.json()["synced"] is False
    assert before.json()["claims"]["email"] == "user1@example.com"

    hook = await app_client.post(
        "/webhooks/identity", json=INSERT, headers={"X-Webhook-Secret": WEBHOOK_SECRET}
    )
    assert hook.json() == {"ok": True, "action": "created"}

    after = await app_client.get("/users/me", headers=auth())
    assert after.json()["synced"] is True
    assert after.json()["username"] == "capy"


@pytest.mark.asyncio
async def test_webhook_rejects_a_wrong_secret(app_client):
    missing = await app_client.post("/webhooks/identity", json=INSERT)
    wrong = await app_client.post(
        "/webhooks/identity", json=INSERT, headers={"X-Webhook-Secret": "guess"}
    )
    assert missing.status_code == 401
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_webhook_without_configured_secret_is_unavailable(app_client, container):
    container.settings.webhook_secret = None

    res = await app_client.post(
        "/webhooks/identity", json=INSERT, headers={"X-Webhook-Secret": WEBHOOK_SECRET}
    )

    assert res.status_code == 503


@pytest.mark.asyncio
async def test_admin_role_comes_from_app_metadata(app_client):
    res = await app_client.get("/users/me", headers=auth("admin-token"))
    assert res.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_identity_outage_is_503(app_client, providers):
    providers.identity_status = 500
    res = await app_client.get("/users/me", headers=auth())
    assert res.status_code == 503


@pytest.mark.asyncio
async def test_cache_stats_require_auth(app_client):
    assert (await app_client.get("/cache/stats")).status_code == 401

    res = await app_client.get("/cache/stats", headers=auth())
    assert res.status_code == 200
    assert {"hits", "misses", "hit_rate", "backend"} <= set(res.json())


@pytest.mark.asyncio
async def test_cache_reset_is_admin_only(app_client, cache_store):
    await cache_store.set("k", 1, 60)

    assert (await app_client.delete("/cache", headers=auth())).status_code == 403
    assert (await app_client.delete("/cache", headers=auth("admin-token"))).status_code == 204
    assert await cache_store.get("k") is None
