from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InteractionType(str, Enum):
    viewed = "viewed"
    clicked = "clicked"
    booked = "booked"
    reviewed = "reviewed"
    dismissed = "dismissed"


class FeedbackType(str, Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class FeedbackAction(str, Enum):
    clicked = "clicked"
    booked = "booked"
    reviewed = "reviewed"
    dismissed = "dismissed"


class SimilarityKind(str, Enum):
    content = "content"
    collaborative = "collaborative"
    hybrid = "hybrid"


class TimeWindow(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class TimeOfDay(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    late_night = "late_night"


class PreferenceType(str, Enum):
    cuisine = "cuisine"
    price_range = "price_range"
    location = "location"


class Venue(BaseModel):
    """Read-only snapshot of a restaurant as seen by the scoring core."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    city: str = ""
    cuisines: frozenset[str] = frozenset()
    price_tier: int = Field(default=2, ge=1, le=4)
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    features: frozenset[str] = frozenset()
    service_periods: frozenset[TimeOfDay] = frozenset()
    is_active: bool = True
    is_verified: bool = True

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Interaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    venue_id: str = Field(..., min_length=1)
    type: InteractionType
    weight: float = 1.0
    timestamp: datetime = Field(default_factory=utcnow)
    rating: float | None = Field(default=None, ge=1.0, le=5.0)
    # Bookings only count towards collaborative similarity once the
    # booking system confirms them as completed.
    completed: bool = True
    feedback_type: FeedbackType | None = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SimilarityEvidence(BaseModel):
    matched_cuisines: list[str] = Field(default_factory=list)
    matched_features: list[str] = Field(default_factory=list)
    cuisine_overlap: float = 0.0
    price_match: bool = False
    distance_km: float | None = None
    reasons: list[str] = Field(default_factory=list)


class SimilarityEdge(BaseModel):
    venue_id: str
    similar_venue_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    kind: SimilarityKind
    evidence: SimilarityEvidence = Field(default_factory=SimilarityEvidence)

    @property
    def key(self) -> tuple[str, str, SimilarityKind]:
        return (self.venue_id, self.similar_venue_id, self.kind)


class TrendSnapshot(BaseModel):
    venue_id: str
    scope: str
    window: TimeWindow
    bucket_date: date
    score: float = Field(..., ge=0.0)
    booking_count: int = Field(default=0, ge=0)
    review_count: int = Field(default=0, ge=0)
    rating: float = 0.0
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str, TimeWindow, date]:
        return (self.venue_id, self.scope, self.window, self.bucket_date)


class PreferenceWeight(BaseModel):
    user_id: str
    preference_type: PreferenceType
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: str = "feedback"
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, PreferenceType, str]:
        return (self.user_id, self.preference_type, self.value)


class ExposureLogEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str | None = None
    venue_ids: list[str]
    scores: list[float] = Field(default_factory=list)
    algorithm: str
    created_at: datetime = Field(default_factory=utcnow)
    interaction: FeedbackAction | None = None
    interaction_venue_id: str | None = None
    interaction_at: datetime | None = None
