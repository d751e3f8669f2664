from unittest.mock import patch

import pytest

from dinerec.analytics.feedback import decrease_confidence, increase_confidence
from dinerec.recommendations.models import FeedbackRequest, RecommendationRequest
from dinerec.storage.models import FeedbackAction, InteractionType, PreferenceType, Venue


@pytest.fixture
def catalog(store):
    store.upsert_venues([
        Venue(id="v1", city="Bangalore", cuisines=frozenset({"italian", "pizza"}), price_tier=2, rating=4.5),
        Venue(id="v2", city="Bangalore", cuisines=frozenset({"sushi"}), price_tier=3, rating=4.0),
    ])
    return store


def _request(**kwargs) -> FeedbackRequest:
    payload = {"user_id": "u1", "venue_id": "v1", "feedback_type": "positive", "action": "clicked"}
    payload.update(kwargs)
    return FeedbackRequest(**payload)


def test_confidence_updates_have_diminishing_returns():
    assert increase_confidence(0.0, 0.2) == pytest.approx(0.2)
    assert increase_confidence(0.5, 0.2) == pytest.approx(0.6)
    assert decrease_confidence(0.5, 0.2) == pytest.approx(0.4)
    assert increase_confidence(1.0, 0.2) == 1.0
    assert decrease_confidence(0.0, 0.2) == 0.0


@pytest.mark.parametrize("action, weight", [
    ("booked", 5.0),
    ("reviewed", 3.0),
    ("clicked", 1.0),
    ("dismissed", -2.0),
])
def test_interaction_weight_per_action(service, catalog, action, weight):
    response = service.record_feedback(_request(action=action))

    assert response.status == "recorded"
    assert response.interaction_weight == weight
    (stored,) = catalog.list_interactions(user_id="u1")
    assert stored.type == InteractionType(action)
    assert stored.weight == weight


def test_feedback_booking_is_not_a_completed_booking(service, catalog):
    service.record_feedback(_request(action="booked"))

    assert "v1" not in catalog.completed_bookers_by_venue()


def test_positive_feedback_creates_preferences(service, catalog):
    response = service.record_feedback(_request())

    assert response.updated_preferences == 4
    prefs = {(p.preference_type, p.value): p.confidence for p in catalog.list_preferences("u1")}
    assert prefs == {
        (PreferenceType.cuisine, "italian"): pytest.approx(0.2),
        (PreferenceType.cuisine, "pizza"): pytest.approx(0.2),
        (PreferenceType.price_range, "2"): pytest.approx(0.2),
        (PreferenceType.location, "bangalore"): pytest.approx(0.2),
    }


def test_repeated_positive_feedback_approaches_one(service, catalog):
    for _ in range(30):
        service.record_feedback(_request())

    confidence = catalog.get_preference("u1", PreferenceType.cuisine, "italian").confidence
    assert 0.99 < confidence <= 1.0


def test_dismissal_lowers_existing_preferences_only(service, catalog):
    service.record_feedback(_request())

    response = service.record_feedback(_request(venue_id="v2", feedback_type="negative", action="dismissed"))

    # Only the shared city preference existed for v2.
    assert response.updated_preferences == 1
    assert catalog.get_preference("u1", PreferenceType.location, "bangalore").confidence == pytest.approx(0.16)
    assert catalog.get_preference("u1", PreferenceType.cuisine, "sushi") is None


def test_dismissal_with_positive_type_still_lowers(service, catalog):
    service.record_feedback(_request())

    service.record_feedback(_request(feedback_type="positive", action="dismissed"))

    assert catalog.get_preference("u1", PreferenceType.cuisine, "italian").confidence == pytest.approx(0.16)


def test_neutral_feedback_leaves_preferences_alone(service, catalog):
    response = service.record_feedback(_request(feedback_type="neutral"))

    assert response.updated_preferences == 0
    assert catalog.list_preferences("u1") == []
    assert len(catalog.list_interactions(user_id="u1")) == 1


def test_feedback_for_unknown_venue_is_still_recorded(service, catalog):
    response = service.record_feedback(_request(venue_id="missing"))

    assert response.status == "recorded"
    assert response.updated_preferences == 0
    assert len(catalog.list_interactions(venue_id="missing")) == 1


def test_preference_write_failure_does_not_fail_feedback(service, catalog):
    with patch.object(catalog, "save_preference", side_effect=RuntimeError("down")):
        response = service.record_feedback(_request())

    assert response.status == "recorded"
    assert response.updated_preferences == 0
    assert len(catalog.list_interactions(user_id="u1")) == 1


def test_interaction_write_failure_propagates(service, catalog):
    with patch.object(catalog, "append_interaction", side_effect=RuntimeError("down")):
        with pytest.raises(RuntimeError):
            service.record_feedback(_request())


# ── Exposure log and attribution ────────────────────────────────────────


def test_served_recommendations_are_logged_and_attributed(service, catalog, now):
    served = service.get_personalized_recommendations(RecommendationRequest(user_id="u1"), now=now)
    assert served.exposure_id is not None

    (entry,) = service.exposure_history("u1")
    assert entry.id == served.exposure_id
    assert entry.venue_ids == [r.venue.id for r in served.recommendations]
    assert entry.algorithm == served.algorithm
    assert entry.interaction is None

    response = service.record_feedback(_request(recommendation_id=served.exposure_id))

    assert response.attributed is True
    entry = catalog.get_exposure(served.exposure_id)
    assert entry.interaction == FeedbackAction.clicked
    assert entry.interaction_venue_id == "v1"
    assert entry.interaction_at is not None


def test_unknown_exposure_id_is_unattributed(service, catalog):
    response = service.record_feedback(_request(recommendation_id="does-not-exist"))

    assert response.status == "recorded"
    assert response.attributed is False


def test_exposure_write_failure_still_serves(service, catalog, now):
    with patch.object(catalog, "insert_exposure", side_effect=RuntimeError("down")):
        served = service.get_personalized_recommendations(RecommendationRequest(), now=now)

    assert served.recommendations
    assert served.exposure_id is None


def test_feedback_summary(service, catalog, now):
    served = service.get_personalized_recommendations(RecommendationRequest(user_id="u1"), now=now)
    service.record_feedback(_request(recommendation_id=served.exposure_id))
    service.record_feedback(_request(action="booked"))
    service.record_feedback(_request(venue_id="v2", feedback_type="negative", action="dismissed"))

    summary = service.feedback_summary("u1")

    assert summary.total == 3
    assert summary.by_feedback_type == {"positive": 2, "negative": 1, "neutral": 0}
    assert summary.by_action == {"clicked": 1, "booked": 1, "reviewed": 0, "dismissed": 1}
    assert summary.exposures == 1
    assert summary.attributed_exposures == 1
