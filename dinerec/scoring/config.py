from __future__ import annotations

from dataclasses import dataclass, field

from ..storage.models import SimilarityKind, TimeWindow


@dataclass(frozen=True)
class ContentWeights:
    """Weights of the content similarity terms. They sum to 1.0."""

    cuisine: float = 0.40
    price: float = 0.25
    rating: float = 0.15
    location: float = 0.10
    features: float = 0.10


@dataclass(frozen=True)
class ScoringConfig:
    content_weights: ContentWeights = field(default_factory=ContentWeights)

    # Content similarity
    max_rating: float = 5.0
    distance_cutoff_km: float = 20.0
    nearby_km: float = 5.0
    cuisine_reason_overlap: float = 0.5
    quality_reason_similarity: float = 0.8
    amenities_reason_overlap: float = 0.5

    # Hybrid blend: collaborative_weight * collaborative + content_weight * content
    collaborative_weight: float = 0.6
    content_weight: float = 0.4

    # Minimum score for an edge of each kind to be persisted
    min_hybrid_score: float = 0.3
    min_collaborative_score: float = 0.4
    min_content_score: float = 0.5

    insert_batch_size: int = 1000

    # Trend score: bookings * booking_weight + reviews * review_weight + rating * rating_weight
    trend_booking_weight: float = 10.0
    trend_review_weight: float = 5.0
    trend_rating_weight: float = 15.0
    highly_rated: float = 4.5
    booking_reason_min: int = 10
    review_reason_min: int = 5
    window_days: dict[TimeWindow, int] = field(default_factory=lambda: {
        TimeWindow.daily: 1,
        TimeWindow.weekly: 7,
        TimeWindow.monthly: 30,
    })

    def min_score(self, kind: SimilarityKind) -> float:
        return {
            SimilarityKind.hybrid: self.min_hybrid_score,
            SimilarityKind.collaborative: self.min_collaborative_score,
            SimilarityKind.content: self.min_content_score,
        }[kind]


DEFAULT_SCORING_CONFIG = ScoringConfig()
