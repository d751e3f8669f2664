import threading
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from dinerec.app import create_app
from dinerec.errors import BatchAlreadyRunning
from dinerec.storage.models import SimilarityEdge, SimilarityEvidence, SimilarityKind, Venue
from dinerec.storage.snapshot import load_store
from dinerec.storage.store import InMemoryStore


@pytest.fixture
def client(service, store):
    store.upsert_venues([
        Venue(id="v1", name="Trattoria", city="Bangalore", cuisines=frozenset({"italian"}), price_tier=2, rating=4.5),
        Venue(id="v2", name="Pasta Bar", city="Bangalore", cuisines=frozenset({"italian"}), price_tier=2, rating=4.0),
        Venue(id="v3", name="Sushi Go", city="Mumbai", cuisines=frozenset({"sushi"}), price_tier=3, rating=4.2),
        Venue(id="v4", name="Gone", city="Bangalore", cuisines=frozenset({"italian"}), is_active=False),
    ])
    return TestClient(create_app(service))


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_personalized_for_anonymous_user(client):
    resp = client.post("/recommendations/personalized", json={"location": "Bangalore"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["algorithm"] == "trending"
    assert body["total_candidates"] == 2
    assert [r["venue"]["id"] for r in body["recommendations"]] == ["v1", "v2"]
    assert body["exposure_id"]


@pytest.mark.parametrize("payload", [
    {"latitude": 12.97},
    {"radius_km": 3},
    {"limit": 100},
    {"price_range": 0},
    {"cuisine": [""]},
])
def test_personalized_rejects_invalid_input(client, payload):
    resp = client.post("/recommendations/personalized", json=payload)
    assert resp.status_code == 422


def test_personalized_catalog_outage_is_503(client, store):
    with patch.object(store, "list_venues", side_effect=ConnectionError("down")):
        resp = client.post("/recommendations/personalized", json={})
    assert resp.status_code == 503


def test_trending_by_location(client):
    resp = client.get("/recommendations/trending", params={"location": "mumbai", "time_window": "daily"})
    assert resp.status_code == 200
    body = resp.json()
    assert [r["venue"]["id"] for r in body] == ["v3"]
    assert body[0]["algorithm"] == "trending"
    assert body[0]["confidence"] == 0.5


def test_trending_rejects_unknown_window(client):
    resp = client.get("/recommendations/trending", params={"time_window": "yearly"})
    assert resp.status_code == 422


def test_similar_from_precomputed_edges(client, store):
    store.insert_similarities([
        SimilarityEdge(
            venue_id="v1",
            similar_venue_id="v2",
            score=0.8,
            kind=SimilarityKind.hybrid,
            evidence=SimilarityEvidence(reasons=["Similar cuisine"]),
        ),
        SimilarityEdge(venue_id="v1", similar_venue_id="v2", score=0.7, kind=SimilarityKind.content),
        SimilarityEdge(venue_id="v1", similar_venue_id="v3", score=0.2, kind=SimilarityKind.hybrid),
    ])

    resp = client.get("/recommendations/similar/v1")

    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 1
    assert body[0]["venue"]["id"] == "v2"
    assert body[0]["confidence"] == 0.9
    assert body[0]["reasons"] == ["Similar to selected restaurant", "Similar cuisine"]


def test_similar_falls_back_to_content(client):
    resp = client.get("/recommendations/similar/v1")

    body = resp.json()
    assert [r["venue"]["id"] for r in body] == ["v2"]
    assert body[0]["algorithm"] == "content_based_fallback"
    assert body[0]["confidence"] == 0.7


@pytest.mark.parametrize("venue_id", ["missing", "v4"])
def test_similar_for_unknown_or_inactive_venue(client, venue_id):
    resp = client.get(f"/recommendations/similar/{venue_id}")
    assert resp.status_code == 200
    assert resp.json() == []


def test_feedback_roundtrip(client):
    served = client.post("/recommendations/personalized", json={"user_id": "u1"}).json()

    resp = client.post("/recommendations/feedback", json={
        "user_id": "u1",
        "venue_id": "v1",
        "feedback_type": "positive",
        "action": "booked",
        "recommendation_id": served["exposure_id"],
    })
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "recorded",
        "interaction_weight": 5.0,
        "updated_preferences": 3,
        "attributed": True,
    }

    summary = client.get("/recommendations/feedback/u1").json()
    assert summary["total"] == 1
    assert summary["by_action"]["booked"] == 1
    assert summary["attributed_exposures"] == 1

    exposures = client.get("/recommendations/exposures/u1").json()
    assert len(exposures) == 1
    assert exposures[0]["interaction"] == "booked"


@pytest.mark.parametrize("payload", [
    {"user_id": "u1", "venue_id": "v1", "feedback_type": "great", "action": "clicked"},
    {"user_id": "u1", "venue_id": "v1", "feedback_type": "positive", "action": "shared"},
    {"user_id": "u1", "venue_id": "v1", "feedback_type": "positive", "action": "reviewed", "rating": 6},
    {"venue_id": "v1", "feedback_type": "positive", "action": "clicked"},
])
def test_feedback_rejects_invalid_input(client, payload):
    resp = client.post("/recommendations/feedback", json=payload)
    assert resp.status_code == 422


def test_batch_similarities(client, store):
    resp = client.post("/batch/similarities")
    assert resp.status_code == 200
    body = resp.json()
    assert body["venues"] == 3
    assert body["edges"] == len(store.list_similarities())


def test_batch_similarities_conflict(client, service):
    with patch.object(service.aggregator, "run", side_effect=BatchAlreadyRunning("busy")):
        resp = client.post("/batch/similarities")
    assert resp.status_code == 409


def test_batch_trending(client, store):
    resp = client.post("/batch/trending", params={"scope": "Bangalore", "window": "monthly"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["window"] == "monthly"
    assert body["snapshots"] == 2
    assert {s.venue_id for s in store.list_trend_snapshots(scope="Bangalore")} == {"v1", "v2"}


def test_cache_stats(client):
    resp = client.get("/cache/stats")
    assert resp.status_code == 200
    assert resp.json() == {"size": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_bundled_snapshot_loads():
    store = load_store()

    assert len(store.list_venues()) == 7
    assert len(store.list_venues(active_only=True)) == 6
    assert store.completed_bookers_by_venue()["v1"] == {"u1", "u2", "u3"}

    client = TestClient(create_app())
    resp = client.get("/recommendations/trending", params={"location": "Mumbai"})
    assert [r["venue"]["id"] for r in resp.json()] == ["v6"]


def test_concurrent_first_requests_share_one_service():
    loads = []

    def slow_load():
        loads.append(1)
        time.sleep(0.2)
        store = InMemoryStore()
        store.upsert_venues([Venue(id="v1", city="Bangalore", rating=4.0)])
        return store

    app = create_app()
    payload = {"user_id": "u1", "venue_id": "v1", "feedback_type": "positive", "action": "clicked"}
    statuses = []

    def post_feedback():
        statuses.append(TestClient(app).post("/recommendations/feedback", json=payload).status_code)

    with patch("dinerec.app.load_store", side_effect=slow_load):
        threads = [threading.Thread(target=post_feedback) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert statuses == [200] * 4
    assert len(loads) == 1
    assert len(app.state.service.store.list_interactions(user_id="u1")) == 4
