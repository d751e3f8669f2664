from __future__ import annotations

from ..storage.models import TimeWindow
from .config import DEFAULT_SCORING_CONFIG, ScoringConfig


def trend_score(
    bookings: int,
    reviews: int,
    rating: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> float:
    return (
        bookings * config.trend_booking_weight
        + reviews * config.trend_review_weight
        + rating * config.trend_rating_weight
    )


def trend_reasons(
    bookings: int,
    reviews: int,
    rating: float,
    window: TimeWindow,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> list[str]:
    reasons: list[str] = []
    if bookings > config.booking_reason_min:
        reasons.append(f"{bookings} bookings in {window.value}")
    if reviews > config.review_reason_min:
        reasons.append(f"{reviews} new reviews")
    if rating >= config.highly_rated:
        reasons.append("Highly rated")
    return reasons
