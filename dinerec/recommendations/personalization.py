from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np
import pandas as pd

from ..batch.trending import ALL_LOCATIONS, TrendingScorer
from ..errors import DependencyFailure
from ..scoring.geo import distances_km
from ..storage.models import (
    InteractionType,
    PreferenceType,
    SimilarityEdge,
    SimilarityKind,
    Venue,
)
from .cache import ExpansionCache
from .config import DEFAULT_PERSONALIZATION_CONFIG, PersonalizationConfig
from .models import RecommendationItem, RecommendationRequest, VenueOut

logger = logging.getLogger(__name__)

PERSONALIZED = "hybrid_personalized"
TRENDING = "trending"

_POSITIVE_TYPES = {InteractionType.booked, InteractionType.reviewed, InteractionType.clicked}


def _venue_frame(venues: list[Venue]) -> pd.DataFrame:
    return pd.DataFrame({
        "city_lower": [v.city.strip().lower() for v in venues],
        "cuisines_list": [[c.lower() for c in v.cuisines] for v in venues],
        "price_tier": [v.price_tier for v in venues],
        "rating": [v.rating for v in venues],
        "latitude": [v.latitude if v.latitude is not None else np.nan for v in venues],
        "longitude": [v.longitude if v.longitude is not None else np.nan for v in venues],
        "periods": [v.service_periods for v in venues],
    })


def filter_candidates(
    venues: list[Venue],
    request: RecommendationRequest,
    config: PersonalizationConfig = DEFAULT_PERSONALIZATION_CONFIG,
) -> list[Venue]:
    """Apply the request's hard filters to the catalog."""
    if not venues:
        return []
    df = _venue_frame(venues)
    mask = pd.Series(True, index=df.index)

    if request.location:
        mask &= df["city_lower"] == request.location.strip().lower()

    if request.cuisine:
        wanted = {c.strip().lower() for c in request.cuisine}
        mask &= df["cuisines_list"].apply(lambda cl: bool(wanted & set(cl)))

    if request.price_range is not None:
        mask &= df["price_tier"] == request.price_range

    if request.rating is not None:
        mask &= df["rating"] >= request.rating

    if request.time_of_day is not None:
        period = request.time_of_day
        # Venues that declare no service periods are open all day.
        mask &= df["periods"].apply(lambda p: not p or period in p)

    if request.latitude is not None and request.longitude is not None:
        radius = request.radius_km or config.default_radius_km
        has_coords = df["latitude"].notna() & df["longitude"].notna()
        distance = pd.Series(np.inf, index=df.index)
        if has_coords.any():
            distance[has_coords] = distances_km(
                request.latitude,
                request.longitude,
                df.loc[has_coords, "latitude"].to_numpy(),
                df.loc[has_coords, "longitude"].to_numpy(),
            )
        mask &= distance <= radius

    return [venues[i] for i in df.index[mask]]


@dataclass
class _Candidate:
    venue: Venue
    edge_count: int = 0
    strongest: SimilarityEdge | None = None

    @property
    def edge_score(self) -> float:
        return self.strongest.score if self.strongest is not None else 0.0


@dataclass(frozen=True)
class PersonalizedResult:
    algorithm: str
    items: list[RecommendationItem] = field(default_factory=list)
    total_candidates: int = 0


class PersonalizationScorer:
    """
    Per-user ranking over the filtered candidate set.

    Users with positive history are served from hybrid similarity edges of
    the venues they booked, reviewed or clicked, boosted by learned
    preference weights and the latest trend snapshot. Everyone else gets
    the trending ranking for the requested scope.
    """

    def __init__(
        self,
        store,
        trending: TrendingScorer,
        config: PersonalizationConfig = DEFAULT_PERSONALIZATION_CONFIG,
        cache: ExpansionCache | None = None,
    ) -> None:
        self._store = store
        self._trending = trending
        self._config = config
        self._cache = cache if cache is not None else ExpansionCache(config.expansion_cache_ttl_s)

    @property
    def cache(self) -> ExpansionCache:
        return self._cache

    def user_history(self, user_id: str) -> tuple[set[str], set[str]]:
        """Return (seed venue ids, every venue id the user interacted with)."""
        interactions = self._store.list_interactions(user_id=user_id)
        seeds = {i.venue_id for i in interactions if i.type in _POSITIVE_TYPES and i.weight > 0}
        seen = {i.venue_id for i in interactions}
        return seeds, seen

    def neighbours(self, seed_id: str) -> list[SimilarityEdge]:
        cached = self._cache.get(seed_id)
        if cached is not None:
            return cached
        edges = self._store.list_similar(seed_id, kind=SimilarityKind.hybrid)
        self._cache.set(seed_id, edges)
        return edges

    def recommend(self, request: RecommendationRequest, now: datetime | None = None) -> PersonalizedResult:
        try:
            venues = self._store.list_venues(active_only=True, verified_only=True)
        except Exception as exc:
            raise DependencyFailure("Could not fetch the venue catalog") from exc

        candidates = filter_candidates(venues, request, self._config)
        if not candidates:
            return PersonalizedResult(algorithm=TRENDING, items=[], total_candidates=0)

        seen: set[str] = set()
        if request.user_id is not None:
            try:
                seeds, seen = self.user_history(request.user_id)
                if seeds:
                    items = self._personalized(request, candidates, seeds, seen)
                    if items:
                        return PersonalizedResult(PERSONALIZED, items, len(candidates))
            except Exception:
                logger.warning(
                    "Personalization failed for user %s, serving trending", request.user_id, exc_info=True,
                )

        items = self.trending_fallback(request, candidates, seen, now)
        return PersonalizedResult(TRENDING, items, len(candidates))

    def trending_fallback(
        self,
        request: RecommendationRequest,
        candidates: list[Venue],
        seen: set[str],
        now: datetime | None = None,
    ) -> list[RecommendationItem]:
        trending = self._trending.score(
            scope=request.location or ALL_LOCATIONS,
            window=self._config.fallback_window,
            limit=request.limit,
            now=now,
            venue_ids=[v.id for v in candidates if v.id not in seen],
        )
        return [
            RecommendationItem(
                venue=VenueOut.from_venue(t.venue),
                score=round(t.score, 4),
                confidence=self._config.trending_confidence,
                reasons=t.reasons or ["Popular right now"],
                algorithm=TRENDING,
            )
            for t in trending
        ]

    def _preference_index(self, user_id: str) -> dict[tuple[PreferenceType, str], float]:
        return {
            (w.preference_type, w.value): w.confidence
            for w in self._store.list_preferences(user_id)
        }

    def _preference_boost(
        self, venue: Venue, prefs: dict[tuple[PreferenceType, str], float],
    ) -> tuple[float, list[str]]:
        matches = {
            "cuisine": max(
                (prefs.get((PreferenceType.cuisine, c.lower()), 0.0) for c in venue.cuisines),
                default=0.0,
            ),
            "price": prefs.get((PreferenceType.price_range, str(venue.price_tier)), 0.0),
            "location": prefs.get((PreferenceType.location, venue.city.strip().lower()), 0.0)
            if venue.city else 0.0,
        }
        boost = sum(conf * self._config.preference_boost for conf in matches.values())
        reasons = [f"Matches your {label} preference" for label, conf in matches.items() if conf >= 0.5]
        return boost, reasons

    def _personalized(
        self,
        request: RecommendationRequest,
        candidates: list[Venue],
        seeds: set[str],
        seen: set[str],
    ) -> list[RecommendationItem]:
        by_id = {v.id: v for v in candidates}
        pool: dict[str, _Candidate] = {}
        for seed in sorted(seeds):
            for edge in self.neighbours(seed):
                venue_id = edge.similar_venue_id
                if venue_id in seen or venue_id not in by_id:
                    continue
                cand = pool.setdefault(venue_id, _Candidate(venue=by_id[venue_id]))
                cand.edge_count += 1
                if cand.strongest is None or edge.score > cand.strongest.score:
                    cand.strongest = edge

        if not pool:
            return []

        prefs = self._preference_index(request.user_id)
        latest = self._store.latest_trend_snapshots(
            scope=request.location or ALL_LOCATIONS, window=self._config.fallback_window,
        )
        max_trend = max((latest[v].score for v in pool if v in latest), default=0.0)
        boost_share = self._config.trending_boost

        scored: list[tuple[float, int, str, RecommendationItem]] = []
        for cand in pool.values():
            pref_boost, pref_reasons = self._preference_boost(cand.venue, prefs)
            blended = min(1.0, cand.edge_score + pref_boost)

            snapshot = latest.get(cand.venue.id)
            trend_norm = snapshot.score / max_trend if snapshot is not None and max_trend > 0 else 0.0
            final = blended * (1.0 - boost_share) + blended * boost_share * trend_norm

            reasons = ["Similar to places you've enjoyed", *cand.strongest.evidence.reasons, *pref_reasons]
            if trend_norm >= 0.5:
                reasons.append("Trending now")

            scored.append((final, cand.edge_count, cand.venue.id, RecommendationItem(
                venue=VenueOut.from_venue(cand.venue),
                score=round(final, 4),
                confidence=round(blended, 4),
                reasons=list(dict.fromkeys(reasons)),
                algorithm=PERSONALIZED,
            )))

        scored.sort(key=lambda s: (-s[0], -s[1], s[2]))
        return [item for *_, item in scored[:request.limit]]
