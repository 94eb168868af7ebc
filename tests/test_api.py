import pytest
from starlette.testclient import TestClient

from placerank.api.app import app
from placerank.domain.models import Category

USER = {"X-User-Id": "u1"}


@pytest.fixture
def client(monkeypatch, engine):
    # Patch the cached engine factory so API tests use the tmp-dir stores.
    import placerank.api.routes as routes

    monkeypatch.setattr(routes, "_engine", lambda: engine)
    with TestClient(app) as c:
        yield c


def test_start_without_existing_visits_auto_completes(client):
    resp = client.post(
        "/api/pairwise/start",
        json={"visit_type": "country", "country_name": "Japan", "category": "Mid"},
        headers=USER,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_complete"] is True
    assert data["result"] == {"score": pytest.approx(5.45), "category": "Mid"}
    assert "Mid category" in data["message"]
    assert data["meta"]["store"]["writes"] == 1


def test_full_comparison_flow(client, add_visit):
    add_visit("g1", 8.0, Category.GOOD, country_id="fr")

    start = client.post(
        "/api/pairwise/start", json={"visit_type": "country", "country_name": "Spain"}, headers=USER
    ).json()
    assert start["is_complete"] is False
    assert start["comparison"]["compare_visit"]["id"] == "g1"
    assert start["comparison"]["progress"] == {"current": 0, "total": 1}

    done = client.post(
        "/api/pairwise/compare",
        json={"session_id": start["session_id"], "new_location_better": True},
        headers=USER,
    )
    assert done.status_code == 200
    assert done.json()["result"]["score"] == pytest.approx(9.0)

    summary = client.get(f"/api/pairwise/session/{start['session_id']}", headers=USER)
    assert summary.json()["is_complete"] is True

    created = client.post("/api/pairwise/create-visit", json={"session_id": start["session_id"]}, headers=USER)
    assert created.status_code == 201
    assert created.json()["created"] is True
    assert created.json()["visit"]["country_id"] == "es"

    again = client.post(
        "/api/pairwise/compare",
        json={"session_id": start["session_id"], "new_location_better": False},
        headers=USER,
    )
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "STATE_CONFLICT"


def test_create_visit_returns_200_when_updating(client):
    first = client.post(
        "/api/pairwise/start", json={"visit_type": "country", "country_name": "Japan"}, headers=USER
    ).json()
    created = client.post("/api/pairwise/create-visit", json={"session_id": first["session_id"]}, headers=USER)
    assert created.status_code == 201

    second = client.post(
        "/api/pairwise/start",
        json={"visit_type": "country", "country_name": "Japan", "category": "Mid"},
        headers=USER,
    ).json()
    updated = client.post("/api/pairwise/create-visit", json={"session_id": second["session_id"]}, headers=USER)
    assert updated.status_code == 200
    assert updated.json()["created"] is False
    assert updated.json()["visit"]["id"] == created.json()["visit"]["id"]


def test_validation_errors_map_to_400(client, add_visit):
    bad_type = client.post("/api/pairwise/start", json={"visit_type": "city"}, headers=USER)
    assert bad_type.status_code == 400
    assert bad_type.json()["detail"]["code"] == "VALIDATION_ERROR"

    add_visit("g1", 8.0, Category.GOOD, country_id="fr")
    start = client.post(
        "/api/pairwise/start", json={"visit_type": "country", "country_name": "Spain"}, headers=USER
    ).json()
    not_bool = client.post(
        "/api/pairwise/compare",
        json={"session_id": start["session_id"], "new_location_better": "yes"},
        headers=USER,
    )
    assert not_bool.status_code == 400


def test_unknown_session_and_foreign_user_map_to_404(client):
    resp = client.post("/api/pairwise/compare", json={"session_id": "nope", "new_location_better": True}, headers=USER)
    assert resp.status_code == 404

    start = client.post(
        "/api/pairwise/start", json={"visit_type": "country", "country_name": "Japan"}, headers=USER
    ).json()
    other = client.get(f"/api/pairwise/session/{start['session_id']}", headers={"X-User-Id": "u2"})
    assert other.status_code == 404


def test_missing_user_header_is_rejected(client):
    resp = client.get("/api/pairwise/rankings")
    assert resp.status_code == 422


def test_rankings_rebalance_and_position(client, add_visit):
    add_visit("b1", 2.0, Category.BAD, country_id="fr")
    add_visit("b2", 2.0, Category.BAD, country_id="it")

    ranked = client.get("/api/pairwise/rankings", params={"visit_type": "country"}, headers=USER).json()
    assert [i["id"] for i in ranked["Bad"]] == ["b1", "b2"]
    assert ranked["Good"] == []

    rb = client.post("/api/pairwise/rebalance", json={"category": "Bad"}, headers=USER).json()
    assert rb == {"message": "Rebalanced 2 visits in Bad category", "affected_count": 2}

    pos = client.get("/api/pairwise/position/b2", params={"visit_type": "country"}, headers=USER).json()
    assert (pos["position"], pos["total"], pos["score"]) == (2, 2, pytest.approx(0.0))


def test_cleanup_reports_deleted_count(client):
    resp = client.post("/api/pairwise/cleanup")
    assert resp.status_code == 200
    assert resp.json() == {"deleted_count": 0}


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
