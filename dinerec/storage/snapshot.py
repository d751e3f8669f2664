from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from .config import DEFAULT_SNAPSHOT_CONFIG, SnapshotConfig
from .models import (
    Interaction,
    SimilarityEdge,
    SimilarityEvidence,
    TrendSnapshot,
    Venue,
)
from .store import InMemoryStore

logger = logging.getLogger(__name__)

VENUE_COLUMNS = [
    "id",
    "name",
    "city",
    "cuisines",
    "price_tier",
    "rating",
    "latitude",
    "longitude",
    "features",
    "service_periods",
    "is_active",
    "is_verified",
]

SIMILARITY_COLUMNS = ["venue_id", "similar_venue_id", "score", "kind", "evidence"]


def _split_tags(value: Any) -> frozenset[str]:
    if not isinstance(value, str):
        return frozenset()
    return frozenset(t.strip().lower() for t in value.split(",") if t.strip())


def _optional(value: Any) -> Any:
    return value if pd.notna(value) else None


def _as_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    if pd.isna(value):
        return default
    return bool(value)


def read_venues(path: Path) -> list[Venue]:
    df = pd.read_csv(path, dtype={"id": str})
    for col in VENUE_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    venues: list[Venue] = []
    for row in df.to_dict(orient="records"):
        venues.append(Venue(
            id=str(row["id"]),
            name=str(row["name"]) if pd.notna(row["name"]) else "",
            city=str(row["city"]) if pd.notna(row["city"]) else "",
            cuisines=_split_tags(row["cuisines"]),
            price_tier=int(row["price_tier"]) if pd.notna(row["price_tier"]) else 2,
            rating=float(row["rating"]) if pd.notna(row["rating"]) else 0.0,
            latitude=_optional(row["latitude"]),
            longitude=_optional(row["longitude"]),
            features=_split_tags(row["features"]),
            service_periods=_split_tags(row["service_periods"]),
            is_active=_as_bool(row["is_active"]),
            is_verified=_as_bool(row["is_verified"]),
        ))
    return venues


def read_interactions(path: Path) -> list[Interaction]:
    df = pd.read_csv(path, dtype={"user_id": str, "venue_id": str})
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)

    interactions: list[Interaction] = []
    for row in df.to_dict(orient="records"):
        interactions.append(Interaction(
            user_id=row["user_id"],
            venue_id=row["venue_id"],
            type=row["type"],
            weight=float(row["weight"]) if pd.notna(row.get("weight")) else 1.0,
            timestamp=row["timestamp"].to_pydatetime(),
            rating=_optional(row.get("rating")),
            completed=_as_bool(row.get("completed")),
            feedback_type=_optional(row.get("feedback_type")),
        ))
    return interactions


def read_similarities(path: Path) -> list[SimilarityEdge]:
    df = pd.read_csv(path, dtype={"venue_id": str, "similar_venue_id": str})
    return [
        SimilarityEdge(
            venue_id=row["venue_id"],
            similar_venue_id=row["similar_venue_id"],
            score=float(row["score"]),
            kind=row["kind"],
            evidence=SimilarityEvidence(**json.loads(row["evidence"])),
        )
        for row in df.to_dict(orient="records")
    ]


def read_trend_snapshots(path: Path) -> list[TrendSnapshot]:
    df = pd.read_csv(path, dtype={"venue_id": str, "scope": str})
    return [TrendSnapshot(**row) for row in df.to_dict(orient="records")]


def _replace_csv(df: pd.DataFrame, path: Path) -> None:
    """Write *df* to a sibling temp file and move it onto *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        df.to_csv(tmp_path, index=False)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def write_similarities(edges: Iterable[SimilarityEdge], path: Path) -> Path:
    rows = [
        {
            "venue_id": e.venue_id,
            "similar_venue_id": e.similar_venue_id,
            "score": e.score,
            "kind": e.kind.value,
            "evidence": e.evidence.model_dump_json(),
        }
        for e in edges
    ]
    _replace_csv(pd.DataFrame(rows, columns=SIMILARITY_COLUMNS), path)
    return path


def write_trend_snapshots(snapshots: Iterable[TrendSnapshot], path: Path) -> Path:
    rows = [s.model_dump(mode="json") for s in snapshots]
    _replace_csv(pd.DataFrame(rows, columns=list(TrendSnapshot.model_fields)), path)
    return path


def load_store(config: SnapshotConfig = DEFAULT_SNAPSHOT_CONFIG) -> InMemoryStore:
    """
    Build an :class:`InMemoryStore` from the CSV snapshot in ``config.data_dir``.

    ``venues.csv`` is required; interactions and the derived tables are
    loaded when present.
    """
    store = InMemoryStore()
    store.upsert_venues(read_venues(config.venues_path))

    if config.interactions_path.exists():
        for interaction in read_interactions(config.interactions_path):
            store.append_interaction(interaction)
    if config.similarities_path.exists():
        store.insert_similarities(read_similarities(config.similarities_path))
    if config.trends_path.exists():
        for snapshot in read_trend_snapshots(config.trends_path):
            store.upsert_trend_snapshot(snapshot)

    logger.info(
        "Loaded snapshot from %s: %d venues, %d interactions, %d similarity edges",
        config.data_dir,
        len(store.list_venues()),
        len(store.list_interactions()),
        len(store.list_similarities()),
    )
    return store
