from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from ..storage.models import FeedbackAction, FeedbackType, TimeOfDay, TimeWindow, Venue


class RecommendationRequest(BaseModel):
    user_id: str | None = Field(default=None, min_length=1)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    radius_km: float | None = Field(default=None, gt=0.0, le=500.0)
    location: str | None = Field(
        default=None, min_length=1, description="City scope, also used for the trending fallback"
    )
    cuisine: list[str] = Field(default_factory=list)
    price_range: int | None = Field(default=None, ge=1, le=4, description="Price tier 1-4")
    rating: float | None = Field(default=None, ge=0.0, le=5.0, description="Minimum venue rating")
    time_of_day: TimeOfDay | None = None
    limit: int = Field(default=10, ge=1, le=50)

    @model_validator(mode="after")
    def _coordinates_together(self) -> RecommendationRequest:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        if self.radius_km is not None and self.latitude is None:
            raise ValueError("radius_km requires latitude and longitude")
        if any(not c.strip() for c in self.cuisine):
            raise ValueError("cuisine entries must be non-empty")
        return self


class TrendingRequest(BaseModel):
    location: str = Field(default="all", min_length=1)
    time_window: TimeWindow = TimeWindow.weekly
    limit: int = Field(default=10, ge=1, le=50)


class SimilarRequest(BaseModel):
    venue_id: str = Field(..., min_length=1)
    limit: int = Field(default=10, ge=1, le=50)


class VenueOut(BaseModel):
    id: str
    name: str
    city: str
    cuisines: list[str]
    price_tier: int
    rating: float

    @classmethod
    def from_venue(cls, venue: Venue) -> VenueOut:
        return cls(
            id=venue.id,
            name=venue.name,
            city=venue.city,
            cuisines=sorted(venue.cuisines),
            price_tier=venue.price_tier,
            rating=venue.rating,
        )


class RecommendationItem(BaseModel):
    venue: VenueOut
    score: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)
    algorithm: str


class RecommendationResponse(BaseModel):
    recommendations: list[RecommendationItem]
    algorithm: str
    total_candidates: int
    exposure_id: str | None = None


class FeedbackRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    venue_id: str = Field(..., min_length=1)
    feedback_type: FeedbackType
    action: FeedbackAction
    rating: float | None = Field(default=None, ge=1.0, le=5.0)
    recommendation_id: str | None = Field(default=None, min_length=1)


class FeedbackResponse(BaseModel):
    status: str
    interaction_weight: float
    updated_preferences: int
    attributed: bool


class FeedbackSummary(BaseModel):
    user_id: str
    total: int
    by_feedback_type: dict[str, int]
    by_action: dict[str, int]
    exposures: int
    attributed_exposures: int
