"""
ecotrack/tests/test_api.py

HTTP surface: status codes, error envelope and the dashboard numbers.
"""

import pytest
from fastapi.testclient import TestClient

from ecotrack.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _log(client, owner_id="u1", activity_id="car-petrol", quantity=10, **extra):
    return client.post(
        "/v1/activities/log",
        json={"owner_id": owner_id, "activity_id": activity_id, "quantity": quantity, **extra},
    )


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readyz_with_tables(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200


def test_log_activity_returns_entry(client):
    resp = _log(client, note="commute")

    assert resp.status_code == 201
    body = resp.json()["data"]
    assert body["carbon_impact"] == pytest.approx(2.1)
    assert body["category_id"] == "transport"
    assert body["note"] == "commute"
    assert resp.headers.get("x-request-id")


def test_two_drives_make_eight_percent_of_weekly_goal(client):
    _log(client)
    _log(client)

    resp = client.get("/v1/stats/today", params={"owner_id": "u1"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["today_total"] == pytest.approx(4.2)
    assert body["weekly_goal"] == pytest.approx(50)
    assert body["weekly_progress_percent"] == 8
    assert body["activity_count"] == 2
    assert len(body["activities"]) == 2


def test_weekly_goal_setting_changes_progress(client):
    _log(client)
    resp = client.put("/v1/profile/settings", json={"owner_id": "u1", "weekly_goal": 10})
    assert resp.status_code == 200
    assert resp.json()["data"]["weekly_goal"] == pytest.approx(10)

    body = client.get("/v1/stats/today", params={"owner_id": "u1"}).json()
    assert body["weekly_progress_percent"] == 21


def test_invalid_quantity_envelope(client):
    resp = _log(client, quantity=-5)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "invalid_quantity"
    assert body["error"]["request_id"] == resp.headers["x-request-id"]
    assert body["detail"] == body["error"]["message"]


@pytest.mark.parametrize("quantity", ["1e25", 1e300, "123456789012345678"])
def test_oversized_quantity_is_typed_error(client, quantity):
    resp = _log(client, quantity=quantity)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_quantity"
    profile = client.get("/v1/profile", params={"owner_id": "u1"}).json()["data"]
    assert profile["activities_logged"] == 0


def test_unknown_activity_envelope(client):
    resp = _log(client, activity_id="teleport")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "unknown_activity"


def test_request_id_is_propagated(client):
    resp = client.post(
        "/v1/activities/log",
        json={"owner_id": "u1", "activity_id": "teleport", "quantity": 1},
        headers={"x-request-id": "req-123"},
    )

    assert resp.headers["x-request-id"] == "req-123"
    assert resp.json()["error"]["request_id"] == "req-123"


def test_missing_body_fields_are_validation_errors(client):
    resp = client.post("/v1/activities/log", json={"owner_id": "u1"})

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"


def test_delete_and_history(client):
    first = _log(client).json()["data"]
    _log(client, activity_id="bus", quantity=4)

    history = client.get("/v1/activities/history", params={"owner_id": "u1"}).json()
    assert history["total"] == 2
    assert [e["activity_id"] for e in history["data"]][0] in {"bus", "car-petrol"}

    resp = client.delete(f"/v1/activities/log/{first['id']}", params={"owner_id": "u1"})
    assert resp.status_code == 204

    again = client.delete(f"/v1/activities/log/{first['id']}", params={"owner_id": "u1"})
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "not_found"

    history = client.get("/v1/activities/history", params={"owner_id": "u1", "category_id": "transport"}).json()
    assert history["total"] == 1
    assert history["data"][0]["activity_id"] == "bus"


def test_catalog_routes(client):
    categories = client.get("/v1/catalog/categories").json()
    assert categories["count"] == 5

    food = client.get("/v1/catalog/categories/food/activities").json()
    assert all(a["category_id"] == "food" for a in food["data"])

    assert client.get("/v1/catalog/categories/space/activities").status_code == 404
    assert client.get("/v1/catalog/activities/car-petrol").json()["data"]["carbon_per_unit"] == pytest.approx(0.21)
    assert client.get("/v1/catalog/challenges").json()["count"] >= 1
    assert client.get("/v1/catalog/badges").json()["count"] >= 1


def test_period_stats(client):
    _log(client)
    _log(client, activity_id="plant-based-meal", quantity=1)

    resp = client.get("/v1/stats", params={"owner_id": "u1", "period": "monthly"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_impact"] == pytest.approx(0.6)
    assert sum(data["per_category_totals"].values()) == pytest.approx(data["total_impact"])

    bad = client.get("/v1/stats", params={"owner_id": "u1", "period": "yearly"})
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "validation_error"


def test_challenge_flow(client):
    joined = client.post("/v1/challenges/join", json={"owner_id": "u1", "template_id": "bike-week"})
    assert joined.status_code == 201
    instance_id = joined.json()["data"]["id"]

    dup = client.post("/v1/challenges/join", json={"owner_id": "u1", "template_id": "bike-week"})
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "already_joined"

    not_yet = client.post(f"/v1/challenges/{instance_id}/share", json={"owner_id": "u1", "platform": "twitter"})
    assert not_yet.status_code == 400

    for _ in range(3):
        _log(client, activity_id="cycling", quantity=2)

    progressed = client.post(f"/v1/challenges/{instance_id}/progress", json={"owner_id": "u1"})
    assert progressed.status_code == 200
    assert progressed.json()["data"]["status"] == "completed"
    assert progressed.json()["data"]["global_rank"] == 1

    shared = client.post(f"/v1/challenges/{instance_id}/share", json={"owner_id": "u1", "platform": "twitter"})
    assert shared.status_code == 204

    card = client.get(f"/v1/challenges/{instance_id}/share", params={"owner_id": "u1"}).json()["data"]
    assert card["shared_platforms"] == ["twitter"]
    assert card["total_participants"] == 1

    listing = client.get("/v1/challenges", params={"owner_id": "u1"}).json()
    assert [i["id"] for i in listing["completed"]] == [instance_id]
    assert listing["active"] == []

    board = client.get("/v1/challenges/leaderboard/bike-week").json()
    assert board["data"][0]["owner_id"] == "u1"

    assert client.post("/v1/challenges/expire").json() == {"expired": 0}


def test_unknown_instance_is_not_found(client):
    resp = client.post("/v1/challenges/missing/progress", json={"owner_id": "u1"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_profile_view(client):
    _log(client)
    client.post("/v1/challenges/join", json={"owner_id": "u1", "template_id": "eco-logger"})

    body = client.get("/v1/profile", params={"owner_id": "u1"}).json()["data"]

    assert body["activities_logged"] == 1
    assert body["streak_days"] == 1
    assert [b["badge_id"] for b in body["badges"]] == ["first-step"]
    assert body["current_challenge"]["template_id"] == "eco-logger"

    badges = client.get("/v1/profile/badges", params={"owner_id": "u1"}).json()
    assert badges["unlocked"] == 1
    assert badges["total"] == len(badges["data"])


def test_invalid_settings_rejected(client):
    resp = client.put("/v1/profile/settings", json={"owner_id": "u1", "time_zone": "Nowhere/Land"})
    assert resp.status_code == 400

    resp = client.put("/v1/profile/settings", json={"owner_id": "u1", "weekly_goal": 0})
    assert resp.status_code == 400


def test_unknown_route_uses_envelope(client):
    resp = client.get("/v1/does-not-exist")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_owner_can_come_from_header(client):
    _log(client, owner_id="header-user")

    resp = client.get("/v1/profile", headers={"X-User-Id": "header-user"})

    assert resp.status_code == 200
    assert resp.json()["data"]["owner_id"] == "header-user"


def test_missing_owner_is_validation_error(client):
    resp = client.get("/v1/stats/today")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"
