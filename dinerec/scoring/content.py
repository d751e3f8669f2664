from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet

from ..storage.models import SimilarityEvidence, Venue
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .geo import distance_km


def jaccard(a: AbstractSet, b: AbstractSet) -> float:
    """``|a ∩ b| / |a ∪ b|``, defined as 0 when both sets are empty."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


@dataclass(frozen=True)
class ContentSimilarity:
    score: float
    evidence: SimilarityEvidence


def content_similarity(
    a: Venue,
    b: Venue,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ContentSimilarity:
    """
    Weighted similarity of two venues from their static attributes.

    Terms: cuisine Jaccard, exact price-tier match, rating proximity,
    geographic proximity (only when both venues have coordinates) and
    feature-tag Jaccard. The result is symmetric in ``a`` and ``b``.
    """
    w = config.content_weights
    score = 0.0
    reasons: list[str] = []

    cuisine_overlap = jaccard(a.cuisines, b.cuisines)
    score += cuisine_overlap * w.cuisine
    if cuisine_overlap > config.cuisine_reason_overlap:
        reasons.append("Similar cuisine")

    price_match = a.price_tier == b.price_tier
    if price_match:
        score += w.price
        reasons.append("Same price range")

    rating_sim = max(0.0, 1.0 - abs(a.rating - b.rating) / config.max_rating)
    score += rating_sim * w.rating
    if rating_sim > config.quality_reason_similarity:
        reasons.append("Similar quality")

    distance: float | None = None
    if a.has_coordinates and b.has_coordinates:
        distance = distance_km(a.latitude, a.longitude, b.latitude, b.longitude)
        location_sim = max(0.0, 1.0 - distance / config.distance_cutoff_km)
        score += location_sim * w.location
        if distance < config.nearby_km:
            reasons.append("Nearby location")

    feature_overlap = jaccard(a.features, b.features)
    score += feature_overlap * w.features
    if feature_overlap > config.amenities_reason_overlap:
        reasons.append("Similar amenities")

    evidence = SimilarityEvidence(
        matched_cuisines=sorted(a.cuisines & b.cuisines),
        matched_features=sorted(a.features & b.features),
        cuisine_overlap=cuisine_overlap,
        price_match=price_match,
        distance_km=round(distance, 3) if distance is not None else None,
        reasons=reasons,
    )
    return ContentSimilarity(score=min(1.0, max(0.0, score)), evidence=evidence)
