from __future__ import annotations

import logging
import time
from datetime import datetime

from ..analytics.aggregator import summarize_feedback
from ..analytics.exposure import ExposureLogger
from ..analytics.feedback import FeedbackRecorder
from ..batch.similarity import SimilarityAggregator, SimilarityRunReport
from ..batch.trending import ALL_LOCATIONS, TrendingScorer, TrendRunReport
from ..scoring.config import DEFAULT_SCORING_CONFIG, ScoringConfig
from ..scoring.content import content_similarity
from ..storage.models import ExposureLogEntry, TimeWindow
from .cache import ExpansionCache
from .config import DEFAULT_PERSONALIZATION_CONFIG, PersonalizationConfig
from .models import (
    FeedbackRequest,
    FeedbackResponse,
    FeedbackSummary,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResponse,
    SimilarRequest,
    TrendingRequest,
    VenueOut,
)
from .personalization import TRENDING, PersonalizationScorer

logger = logging.getLogger(__name__)

SIMILAR_REASON = "Similar to selected restaurant"
CONTENT_FALLBACK = "content_based_fallback"


class RecommendationService:
    """
    Entry point used by the surrounding booking application.

    All components share the injected *store*; nothing is held at module
    level, so independent instances never see each other's state.
    """

    def __init__(
        self,
        store,
        scoring_config: ScoringConfig = DEFAULT_SCORING_CONFIG,
        config: PersonalizationConfig = DEFAULT_PERSONALIZATION_CONFIG,
    ) -> None:
        self.store = store
        self._scoring_config = scoring_config
        self._config = config
        self.cache = ExpansionCache(config.expansion_cache_ttl_s)
        self.trending = TrendingScorer(store, scoring_config)
        self.aggregator = SimilarityAggregator(store, scoring_config)
        self.personalization = PersonalizationScorer(store, self.trending, config, self.cache)
        self.feedback = FeedbackRecorder(store, config)
        self.exposures = ExposureLogger(store)

    # ── Queries ─────────────────────────────────────────────────────────

    def get_personalized_recommendations(
        self, request: RecommendationRequest, now: datetime | None = None,
    ) -> RecommendationResponse:
        start_time = time.time()
        result = self.personalization.recommend(request, now=now)

        exposure_id = self.exposures.log(request.user_id, result.items, result.algorithm)

        logger.info(
            "Served %d %s recommendations for user %s in %.1fms",
            len(result.items),
            result.algorithm,
            request.user_id or "anonymous",
            (time.time() - start_time) * 1000,
        )
        return RecommendationResponse(
            recommendations=result.items,
            algorithm=result.algorithm,
            total_candidates=result.total_candidates,
            exposure_id=exposure_id,
        )

    def get_trending(
        self,
        location: str = ALL_LOCATIONS,
        time_window: TimeWindow | str = TimeWindow.weekly,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[RecommendationItem]:
        request = TrendingRequest(location=location, time_window=time_window, limit=limit)
        trending = self.trending.score(
            scope=request.location, window=request.time_window, limit=request.limit, now=now,
        )
        return [
            RecommendationItem(
                venue=VenueOut.from_venue(t.venue),
                score=round(t.score, 4),
                confidence=self._config.trending_confidence,
                reasons=t.reasons,
                algorithm=TRENDING,
            )
            for t in trending
        ]

    def get_similar(self, venue_id: str, limit: int = 10) -> list[RecommendationItem]:
        """
        Venues most similar to *venue_id* from the precomputed table.

        Unknown or inactive venues yield an empty list. Active venues with
        no stored edges fall back to live content similarity against
        venues sharing a cuisine or price tier.
        """
        request = SimilarRequest(venue_id=venue_id, limit=limit)
        venue = self.store.get_venue(request.venue_id)
        if venue is None or not venue.is_active:
            return []

        items: list[RecommendationItem] = []
        for edge in self.store.list_similar(
            venue.id,
            kind=None,
            min_score=self._scoring_config.min_hybrid_score,
        ):
            if any(i.venue.id == edge.similar_venue_id for i in items):
                continue
            similar = self.store.get_venue(edge.similar_venue_id)
            if similar is None or not similar.is_active:
                continue
            items.append(RecommendationItem(
                venue=VenueOut.from_venue(similar),
                score=round(edge.score, 4),
                confidence=self._config.similar_confidence,
                reasons=[SIMILAR_REASON, *edge.evidence.reasons],
                algorithm=edge.kind.value,
            ))
            if len(items) >= request.limit:
                return items

        if items:
            return items
        return self._content_fallback(venue, request.limit)

    def _content_fallback(self, venue, limit: int) -> list[RecommendationItem]:
        scored = []
        for other in self.store.list_venues(active_only=True, verified_only=True):
            if other.id == venue.id:
                continue
            if not (other.cuisines & venue.cuisines) and other.price_tier != venue.price_tier:
                continue
            sim = content_similarity(venue, other, self._scoring_config)
            scored.append((sim.score, other, sim.evidence.reasons))
        scored.sort(key=lambda s: (-s[0], s[1].id))
        return [
            RecommendationItem(
                venue=VenueOut.from_venue(other),
                score=round(score, 4),
                confidence=self._config.similar_fallback_confidence,
                reasons=["Similar cuisine or price range", *reasons],
                algorithm=CONTENT_FALLBACK,
            )
            for score, other, reasons in scored[:limit]
        ]

    # ── Commands ────────────────────────────────────────────────────────

    def record_feedback(self, request: FeedbackRequest) -> FeedbackResponse:
        return self.feedback.record(request)

    def feedback_summary(self, user_id: str) -> FeedbackSummary:
        return summarize_feedback(
            user_id,
            self.store.list_interactions(user_id=user_id),
            self.store.list_exposures(user_id=user_id),
        )

    def exposure_history(self, user_id: str) -> list[ExposureLogEntry]:
        return self.exposures.history(user_id)

    # ── Batch entry points ──────────────────────────────────────────────

    def run_similarity_computation(self) -> SimilarityRunReport:
        report = self.aggregator.run()
        self.cache.clear()
        return report

    def run_trend_computation(
        self,
        scope: str = ALL_LOCATIONS,
        window: TimeWindow | str = TimeWindow.weekly,
        now: datetime | None = None,
    ) -> TrendRunReport:
        request = TrendingRequest(location=scope, time_window=window)
        return self.trending.run(scope=request.location, window=request.time_window, now=now)
