from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime
from typing import Iterable

from .models import (
    ExposureLogEntry,
    Interaction,
    InteractionType,
    PreferenceType,
    PreferenceWeight,
    SimilarityEdge,
    SimilarityKind,
    TimeWindow,
    TrendSnapshot,
    Venue,
)


class InMemoryStore:
    """
    Thread-safe in-memory implementation of the storage contract.

    Venues are replaced wholesale by the surrounding booking system,
    interactions and exposure entries are append-only, and the derived
    tables (similarities, trend snapshots, preference weights) are owned
    by the recommendation core. Every public method runs under one
    re-entrant lock so concurrent requests never observe a half-applied
    write.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._venues: dict[str, Venue] = {}
        self._interactions: list[Interaction] = []
        self._similarities: dict[tuple[str, str, SimilarityKind], SimilarityEdge] = {}
        self._neighbours: dict[str, list[SimilarityEdge]] = defaultdict(list)
        self._trends: dict[tuple, TrendSnapshot] = {}
        self._preferences: dict[tuple[str, PreferenceType, str], PreferenceWeight] = {}
        self._exposures: dict[str, ExposureLogEntry] = {}

    # ── Venues ──────────────────────────────────────────────────────────

    def upsert_venues(self, venues: Iterable[Venue]) -> None:
        with self._lock:
            for venue in venues:
                self._venues[venue.id] = venue

    def get_venue(self, venue_id: str) -> Venue | None:
        with self._lock:
            return self._venues.get(venue_id)

    def list_venues(self, active_only: bool = False, verified_only: bool = False) -> list[Venue]:
        with self._lock:
            venues = list(self._venues.values())
        if active_only:
            venues = [v for v in venues if v.is_active]
        if verified_only:
            venues = [v for v in venues if v.is_verified]
        return venues

    # ── Interactions ────────────────────────────────────────────────────

    def append_interaction(self, interaction: Interaction) -> None:
        with self._lock:
            self._interactions.append(interaction)

    def list_interactions(
        self,
        user_id: str | None = None,
        venue_id: str | None = None,
        since: datetime | None = None,
    ) -> list[Interaction]:
        with self._lock:
            rows = list(self._interactions)
        if user_id is not None:
            rows = [i for i in rows if i.user_id == user_id]
        if venue_id is not None:
            rows = [i for i in rows if i.venue_id == venue_id]
        if since is not None:
            rows = [i for i in rows if i.timestamp > since]
        return rows

    def completed_bookers_by_venue(self) -> dict[str, set[str]]:
        """Distinct users with a completed booking, per venue id."""
        bookers: dict[str, set[str]] = defaultdict(set)
        for i in self.list_interactions():
            if i.type == InteractionType.booked and i.completed:
                bookers[i.venue_id].add(i.user_id)
        return dict(bookers)

    # ── Similarity table ────────────────────────────────────────────────

    def clear_similarities(self) -> None:
        with self._lock:
            self._similarities.clear()
            self._neighbours.clear()

    def insert_similarities(self, edges: Iterable[SimilarityEdge]) -> int:
        inserted = 0
        with self._lock:
            for edge in edges:
                previous = self._similarities.get(edge.key)
                if previous is not None:
                    self._neighbours[edge.venue_id].remove(previous)
                self._similarities[edge.key] = edge
                self._neighbours[edge.venue_id].append(edge)
                inserted += 1
        return inserted

    def list_similar(
        self,
        venue_id: str,
        kind: SimilarityKind | None = None,
        min_score: float = 0.0,
        limit: int | None = None,
    ) -> list[SimilarityEdge]:
        with self._lock:
            edges = list(self._neighbours.get(venue_id, ()))
        edges = [
            e for e in edges
            if (kind is None or e.kind == kind) and e.score >= min_score
        ]
        edges.sort(key=lambda e: (-e.score, e.similar_venue_id, e.kind.value))
        return edges[:limit] if limit is not None else edges

    def list_similarities(self) -> list[SimilarityEdge]:
        with self._lock:
            return list(self._similarities.values())

    # ── Trend snapshots ─────────────────────────────────────────────────

    def upsert_trend_snapshot(self, snapshot: TrendSnapshot) -> None:
        with self._lock:
            self._trends[snapshot.key] = snapshot

    def list_trend_snapshots(
        self,
        scope: str | None = None,
        window: TimeWindow | None = None,
        venue_id: str | None = None,
    ) -> list[TrendSnapshot]:
        with self._lock:
            rows = list(self._trends.values())
        return [
            s for s in rows
            if (scope is None or s.scope == scope)
            and (window is None or s.window == window)
            and (venue_id is None or s.venue_id == venue_id)
        ]

    def latest_trend_snapshots(
        self,
        scope: str | None = None,
        window: TimeWindow | None = None,
    ) -> dict[str, TrendSnapshot]:
        """Most recent snapshot per venue, optionally restricted to *scope* (any case) and *window*."""
        wanted = scope.strip().lower() if scope is not None else None
        latest: dict[str, TrendSnapshot] = {}
        for snap in self.list_trend_snapshots(window=window):
            if wanted is not None and snap.scope.strip().lower() != wanted:
                continue
            current = latest.get(snap.venue_id)
            if current is None or (snap.bucket_date, snap.updated_at) > (current.bucket_date, current.updated_at):
                latest[snap.venue_id] = snap
        return latest

    # ── Preference weights ──────────────────────────────────────────────

    def get_preference(
        self, user_id: str, preference_type: PreferenceType, value: str,
    ) -> PreferenceWeight | None:
        with self._lock:
            return self._preferences.get((user_id, preference_type, value))

    def save_preference(self, weight: PreferenceWeight) -> None:
        with self._lock:
            self._preferences[weight.key] = weight

    def list_preferences(self, user_id: str) -> list[PreferenceWeight]:
        with self._lock:
            return [w for w in self._preferences.values() if w.user_id == user_id]

    # ── Exposure log ────────────────────────────────────────────────────

    def insert_exposure(self, entry: ExposureLogEntry) -> None:
        with self._lock:
            self._exposures[entry.id] = entry

    def get_exposure(self, exposure_id: str) -> ExposureLogEntry | None:
        with self._lock:
            return self._exposures.get(exposure_id)

    def update_exposure(self, entry: ExposureLogEntry) -> None:
        with self._lock:
            self._exposures[entry.id] = entry

    def list_exposures(self, user_id: str | None = None) -> list[ExposureLogEntry]:
        with self._lock:
            rows = list(self._exposures.values())
        if user_id is not None:
            rows = [e for e in rows if e.user_id == user_id]
        return sorted(rows, key=lambda e: e.created_at, reverse=True)
