import pytest

from tests.fakes import auth

PARIS = {"lat": 48.8566, "lng": 2.3522}


async def _create(app_client, token="user-token", **fields):
    payload = {"name": "Pont des Arts", "latitude": 48.8583, "longitude": 2.3375}
    payload.update(fields)
    res = await app_client.post("/points", json=payload, headers=auth(token))
    assert res.status_code == 201, res.text
    return res.json()


@pytest.mark.asyncio
async def test_search_returns_200_for_anonymous_callers(app_client, db):
    db.add_point(name="Hôtel de Ville", latitude=48.8564, longitude=2.3525)

    res = await app_client.get("/points/search", params={**PARIS, "radius": 1000})

    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 1
    assert body["sources"] == {"local": 1, "external": 0}
    assert body["cached"] is False
    assert body["data"][0]["source"] == "local"


@pytest.mark.asyncio
async def test_search_validation_errors(app_client):
    out_of_range = await app_client.get("/points/search", params={"lat": 95, "lng": 2})
    too_many = await app_client.get("/points/search", params={**PARIS, "limit": 60})
    bad_category = await app_client.get("/points/search", params={**PARIS, "category": "volcano"})
    missing = await app_client.get("/points/search", params={"lat": 48.8})

    assert out_of_range.status_code == 400
    assert too_many.status_code == 400
    assert bad_category.status_code == 400
    assert missing.status_code == 422
    assert missing.json()["detail"] == "Unprocessable Entity"


@pytest.mark.asyncio
async def test_search_limit_follows_the_configured_maximum(app_client):
    largest = await app_client.get("/points/search", params={**PARIS, "limit": 50})
    above = await app_client.get("/points/search", params={**PARIS, "limit": 80})
    zero = await app_client.get("/points/search", params={**PARIS, "limit": 0})

    assert largest.status_code == 200
    assert above.status_code == 400
    assert "between 1 and 50" in above.json()["detail"]
    assert zero.status_code == 400

    schema = (await app_client.get("/openapi.json")).json()
    params = schema["paths"]["/points/search"]["get"]["parameters"]
    limit = next(p for p in params if p["name"] == "limit")
    assert "maximum" not in limit["schema"]


@pytest.mark.asyncio
async def test_search_accepts_every_category_syntax(app_client, db):
    db.add_point(name="Église", category="religious")
    db.add_point(name="Plage", latitude=48.8570, category="beach")
    db.add_point(name="Forêt", latitude=48.8575, category="forest")

    res = await app_client.get(
        "/points/search?lat=48.8566&lng=2.3522&radius=2000"
        "&categories=religious&category=beach&category[]=RELIGIOUS"
    )

    assert res.status_code == 200
    assert {item["name"] for item in res.json()["data"]} == {"Église", "Plage"}


@pytest.mark.asyncio
async def test_creating_a_point_requires_a_token(app_client):
    res = await app_client.post("/points", json={"name": "x", "latitude": 1, "longitude": 2})
    assert res.status_code == 401
    assert res.headers["WWW-Authenticate"] == "Bearer"

    res = await app_client.post(
        "/points", json={"name": "x", "latitude": 1, "longitude": 2}, headers=auth("forged")
    )
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_point_lifecycle(app_client):
    created = await _create(app_client)
    assert created["status"] == "pending"
    point_url = f"/points/{created['id']}"

    assert (await app_client.get(point_url)).status_code == 404
    assert (await app_client.get(point_url, headers=auth())).status_code == 200

    forbidden = await app_client.patch(
        point_url, json={"name": "Mine now"}, headers=auth("other-token")
    )
    assert forbidden.status_code == 403

    moderated = await app_client.patch(
        f"{point_url}/status", json={"status": "approved"}, headers=auth("admin-token")
    )
    assert moderated.status_code == 200
    assert (await app_client.get(point_url)).json()["status"] == "approved"

    renamed = await app_client.patch(point_url, json={"name": "Passerelle"}, headers=auth())
    assert renamed.json()["name"] == "Passerelle"

    assert (await app_client.delete(point_url, headers=auth())).status_code == 204
    assert (await app_client.get(point_url)).status_code == 404


@pytest.mark.asyncio
async def test_moderation_is_admin_only(app_client):
    created = await _create(app_client)

    res = await app_client.patch(
        f"/points/{created['id']}/status", json={"status": "approved"}, headers=auth()
    )

    assert res.status_code == 403


@pytest.mark.asyncio
async def test_search_sees_a_point_approved_after_the_search_was_cached(app_client):
    params = {**PARIS, "radius": 1000}
    assert (await app_client.get("/points/search", params=params)).json()["total"] == 0
    assert (await app_client.get("/points/search", params=params)).json()["cached"] is True

    created = await _create(app_client, latitude=48.8567, longitude=2.3523)
    await app_client.patch(
        f"/points/{created['id']}/status", json={"status": "approved"}, headers=auth("admin-token")
    )

    body = (await app_client.get("/points/search", params=params)).json()
    assert body["cached"] is False
    assert [item["id"] for item in body["data"]] == [created["id"]]


@pytest.mark.asyncio
async def test_mine_and_nearby(app_client, db):
    mine = await _create(app_client)
    db.add_point(name="Louvre", latitude=48.8606, longitude=2.3376)

    listed = await app_client.get("/points/mine", headers=auth())
    nearby = await app_client.get("/points/nearby", params={**PARIS, "radius": 3000})
    nearby_owner = await app_client.get(
        "/points/nearby", params={**PARIS, "radius": 3000}, headers=auth()
    )

    assert [p["id"] for p in listed.json()] == [mine["id"]]
    assert [p["name"] for p in nearby.json()] == ["Louvre"]
    assert len(nearby_owner.json()) == 2


@pytest.mark.asyncio
async def test_import_without_a_places_key_is_rejected(app_client):
    res = await app_client.post(
        "/points/import", json={"place_id": "ChIJx"}, headers=auth("admin-token")
    )
    assert res.status_code == 400

    res = await app_client.post("/points/import", json={"place_id": "ChIJx"}, headers=auth())
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_invalid_payload_is_422(app_client):
    res = await app_client.post(
        "/points", json={"name": "", "latitude": 91, "longitude": 2}, headers=auth()
    )
    assert res.status_code == 422
    locs = [tuple(e["loc"]) for e in res.json()["errors"]]
    assert ("body", "name") in locs
    assert ("body", "latitude") in locs
