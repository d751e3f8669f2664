"""
Time-windowed popularity scoring.

Usage:
    python -m dinerec.batch.trending --scope all --window weekly

Counts completed bookings and new reviews per venue inside the window and
upserts one trend snapshot per (venue, scope, window, day).
"""
from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

import pandas as pd

from ..errors import DependencyFailure
from ..scoring.config import DEFAULT_SCORING_CONFIG, ScoringConfig
from ..scoring.trending import trend_reasons, trend_score
from ..storage.models import InteractionType, TimeWindow, TrendSnapshot, Venue, utcnow

logger = logging.getLogger(__name__)

ALL_LOCATIONS = "all"


@dataclass(frozen=True)
class TrendingVenue:
    venue: Venue
    score: float
    booking_count: int
    review_count: int
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TrendRunReport:
    scope: str
    window: TimeWindow
    bucket_date: str
    snapshots: int
    duration_s: float


def _as_utc(now: datetime | None) -> datetime:
    if now is None:
        return utcnow()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def in_scope(venue: Venue, scope: str) -> bool:
    return scope == ALL_LOCATIONS or venue.city.strip().lower() == scope.strip().lower()


class TrendingScorer:
    def __init__(self, store, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> None:
        self._store = store
        self._config = config

    def window_start(self, window: TimeWindow, now: datetime) -> datetime:
        return now - timedelta(days=self._config.window_days[window])

    def _activity_counts(self, start: datetime, now: datetime) -> tuple[pd.Series, pd.Series]:
        recent = [i for i in self._store.list_interactions(since=start) if i.timestamp <= now]
        frame = pd.DataFrame(
            [(i.venue_id, i.type.value, i.completed) for i in recent],
            columns=["venue_id", "type", "completed"],
        )
        is_booking = (frame["type"] == InteractionType.booked.value) & frame["completed"].astype(bool)
        bookings = frame.loc[is_booking, "venue_id"].value_counts()
        reviews = frame.loc[frame["type"] == InteractionType.reviewed.value, "venue_id"].value_counts()
        return bookings, reviews

    def score(
        self,
        scope: str = ALL_LOCATIONS,
        window: TimeWindow = TimeWindow.weekly,
        limit: int | None = None,
        now: datetime | None = None,
        venue_ids: Iterable[str] | None = None,
    ) -> list[TrendingVenue]:
        """
        Rank venues in *scope* by recent activity inside *window*.

        Only venues with a positive trend score are returned, highest first.
        *venue_ids* restricts the ranking to a pre-filtered candidate set.
        """
        now = _as_utc(now)
        start = self.window_start(window, now)

        venues = [
            v for v in self._store.list_venues(active_only=True, verified_only=True)
            if in_scope(v, scope)
        ]
        if venue_ids is not None:
            allowed = set(venue_ids)
            venues = [v for v in venues if v.id in allowed]

        bookings, reviews = self._activity_counts(start, now)

        results: list[TrendingVenue] = []
        for venue in venues:
            n_bookings = int(bookings.get(venue.id, 0))
            n_reviews = int(reviews.get(venue.id, 0))
            score = trend_score(n_bookings, n_reviews, venue.rating, self._config)
            if score <= 0:
                continue
            results.append(TrendingVenue(
                venue=venue,
                score=score,
                booking_count=n_bookings,
                review_count=n_reviews,
                reasons=trend_reasons(n_bookings, n_reviews, venue.rating, window, self._config),
            ))

        results.sort(key=lambda t: (-t.score, t.venue.id))
        return results[:limit] if limit is not None else results

    def run(
        self,
        scope: str = ALL_LOCATIONS,
        window: TimeWindow = TimeWindow.weekly,
        now: datetime | None = None,
    ) -> TrendRunReport:
        """Score every venue in scope and upsert today's snapshots."""
        started = time.time()
        now = _as_utc(now)
        try:
            trending = self.score(scope=scope, window=window, now=now)
        except Exception as exc:
            logger.error("Trend computation for %s/%s aborted", scope, window.value, exc_info=True)
            raise DependencyFailure("Could not read activity for trend computation") from exc

        bucket = now.date()
        for item in trending:
            self._store.upsert_trend_snapshot(TrendSnapshot(
                venue_id=item.venue.id,
                scope=scope,
                window=window,
                bucket_date=bucket,
                score=item.score,
                booking_count=item.booking_count,
                review_count=item.review_count,
                rating=item.venue.rating,
                updated_at=now,
            ))

        duration = round(time.time() - started, 3)
        logger.info(
            "Trend computation %s/%s for %s: %d snapshots in %.2fs",
            scope, window.value, bucket, len(trending), duration,
        )
        return TrendRunReport(
            scope=scope,
            window=window,
            bucket_date=bucket.isoformat(),
            snapshots=len(trending),
            duration_s=duration,
        )


def run_trend_job(scope: str, window: TimeWindow) -> TrendRunReport:
    from ..storage.config import DEFAULT_SNAPSHOT_CONFIG
    from ..storage.snapshot import load_store, write_trend_snapshots

    store = load_store(DEFAULT_SNAPSHOT_CONFIG)
    report = TrendingScorer(store).run(scope=scope, window=window)
    write_trend_snapshots(store.list_trend_snapshots(), DEFAULT_SNAPSHOT_CONFIG.trends_path)
    return report


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Compute trending venue snapshots")
    parser.add_argument("--scope", default=ALL_LOCATIONS)
    parser.add_argument("--window", choices=[w.value for w in TimeWindow], default=TimeWindow.weekly.value)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    result = run_trend_job(args.scope, TimeWindow(args.window))
    print(f"Trend computation complete: {result.snapshots} snapshots for {result.scope}/{result.window.value}")
