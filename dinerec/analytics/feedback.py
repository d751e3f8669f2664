from __future__ import annotations

import logging

from ..recommendations.config import DEFAULT_PERSONALIZATION_CONFIG, PersonalizationConfig
from ..recommendations.models import FeedbackRequest, FeedbackResponse
from ..storage.models import (
    FeedbackAction,
    FeedbackType,
    Interaction,
    InteractionType,
    PreferenceType,
    PreferenceWeight,
    Venue,
    utcnow,
)

logger = logging.getLogger(__name__)


def increase_confidence(old: float, step: float) -> float:
    """Move *old* toward 1 with diminishing returns."""
    return min(1.0, max(0.0, old + (1.0 - old) * step))


def decrease_confidence(old: float, step: float) -> float:
    """Move *old* toward 0 with diminishing returns."""
    return min(1.0, max(0.0, old - old * step))


def venue_preferences(venue: Venue) -> list[tuple[PreferenceType, str]]:
    prefs = [(PreferenceType.cuisine, c.lower()) for c in sorted(venue.cuisines)]
    prefs.append((PreferenceType.price_range, str(venue.price_tier)))
    if venue.city:
        prefs.append((PreferenceType.location, venue.city.strip().lower()))
    return prefs


class FeedbackRecorder:
    """
    Ingests post-exposure feedback.

    The interaction append is the primary write and propagates failures.
    Preference updates and exposure annotation are auxiliary: failures are
    logged and do not fail the call.
    """

    def __init__(self, store, config: PersonalizationConfig = DEFAULT_PERSONALIZATION_CONFIG) -> None:
        self._store = store
        self._config = config

    def record(self, request: FeedbackRequest) -> FeedbackResponse:
        weight = self._config.interaction_weights[request.action]
        self._store.append_interaction(Interaction(
            user_id=request.user_id,
            venue_id=request.venue_id,
            type=InteractionType(request.action.value),
            weight=weight,
            rating=request.rating,
            # Confirmed completion comes from the booking system, not from feedback.
            completed=request.action != FeedbackAction.booked,
            feedback_type=request.feedback_type,
        ))

        updated = 0
        try:
            updated = self._update_preferences(request)
        except Exception:
            logger.warning("Preference update failed for user %s", request.user_id, exc_info=True)

        attributed = False
        if request.recommendation_id:
            try:
                attributed = self._annotate_exposure(request)
            except Exception:
                logger.warning("Could not annotate exposure %s", request.recommendation_id, exc_info=True)

        return FeedbackResponse(
            status="recorded",
            interaction_weight=weight,
            updated_preferences=updated,
            attributed=attributed,
        )

    def _direction(self, request: FeedbackRequest) -> int:
        if request.action == FeedbackAction.dismissed or request.feedback_type == FeedbackType.negative:
            return -1
        if request.feedback_type == FeedbackType.positive:
            return 1
        return 0

    def _update_preferences(self, request: FeedbackRequest) -> int:
        direction = self._direction(request)
        if direction == 0:
            return 0

        venue = self._store.get_venue(request.venue_id)
        if venue is None:
            logger.info("Feedback for unknown venue %s; preferences unchanged", request.venue_id)
            return 0

        step = self._config.preference_step
        updated = 0
        for pref_type, value in venue_preferences(venue):
            current = self._store.get_preference(request.user_id, pref_type, value)
            if direction < 0:
                if current is None:
                    continue
                confidence = decrease_confidence(current.confidence, step)
            else:
                confidence = increase_confidence(current.confidence if current else 0.0, step)
            self._store.save_preference(PreferenceWeight(
                user_id=request.user_id,
                preference_type=pref_type,
                value=value,
                confidence=confidence,
                source=f"feedback:{request.action.value}",
                updated_at=utcnow(),
            ))
            updated += 1
        return updated

    def _annotate_exposure(self, request: FeedbackRequest) -> bool:
        entry = self._store.get_exposure(request.recommendation_id)
        if entry is None:
            logger.info("Unattributed feedback: exposure %s not found", request.recommendation_id)
            return False
        self._store.update_exposure(entry.model_copy(update={
            "interaction": request.action,
            "interaction_venue_id": request.venue_id,
            "interaction_at": utcnow(),
        }))
        return True
