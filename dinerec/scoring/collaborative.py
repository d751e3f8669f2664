from __future__ import annotations

from typing import AbstractSet

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .content import jaccard


def collaborative_similarity(bookers_a: AbstractSet[str], bookers_b: AbstractSet[str]) -> float:
    """Jaccard overlap of the users who completed a booking at each venue."""
    return jaccard(bookers_a, bookers_b)


def hybrid_similarity(
    collaborative: float,
    content: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> float:
    blended = config.collaborative_weight * collaborative + config.content_weight * content
    return min(1.0, max(0.0, blended))
