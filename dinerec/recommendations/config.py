from __future__ import annotations

from dataclasses import dataclass, field

from ..storage.models import FeedbackAction, TimeWindow


@dataclass(frozen=True)
class PersonalizationConfig:
    # Trending fallback for anonymous users and users without history
    fallback_window: TimeWindow = TimeWindow.weekly
    trending_confidence: float = 0.5

    # Share of the score decided by the latest trend snapshot (at most 10%)
    trending_boost: float = 0.10

    # Additive boost per matching preference type, scaled by its confidence
    preference_boost: float = 0.10

    # Diminishing-return step for preference confidence updates
    preference_step: float = 0.2

    default_radius_km: float = 25.0

    similar_confidence: float = 0.90
    similar_fallback_confidence: float = 0.70

    expansion_cache_ttl_s: int = 300

    interaction_weights: dict[FeedbackAction, float] = field(default_factory=lambda: {
        FeedbackAction.booked: 5.0,
        FeedbackAction.reviewed: 3.0,
        FeedbackAction.clicked: 1.0,
        FeedbackAction.dismissed: -2.0,
    })


DEFAULT_PERSONALIZATION_CONFIG = PersonalizationConfig()
