"""
Offline similarity computation.

Usage:
    python -m dinerec.batch.similarity

Computes content, collaborative and hybrid similarity for every pair of
active, verified venues and rewrites the similarity table. Intended to be
run nightly by an external scheduler.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from itertools import combinations

from ..errors import BatchAlreadyRunning, DependencyFailure, SimilarityPersistError
from ..scoring.collaborative import collaborative_similarity, hybrid_similarity
from ..scoring.config import DEFAULT_SCORING_CONFIG, ScoringConfig
from ..scoring.content import content_similarity
from ..storage.models import SimilarityEdge, SimilarityEvidence, SimilarityKind, Venue

logger = logging.getLogger(__name__)

SHARED_GUESTS_REASON = "Popular with the same guests"


@dataclass(frozen=True)
class SimilarityRunReport:
    venues: int
    pairs: int
    edges: int
    edges_by_kind: dict[str, int]
    duration_s: float


def _both_directions(
    a: str, b: str, score: float, kind: SimilarityKind, evidence: SimilarityEvidence,
) -> list[SimilarityEdge]:
    return [
        SimilarityEdge(venue_id=a, similar_venue_id=b, score=score, kind=kind, evidence=evidence),
        SimilarityEdge(venue_id=b, similar_venue_id=a, score=score, kind=kind, evidence=evidence),
    ]


def pair_edges(
    a: Venue,
    b: Venue,
    bookers_a: set[str],
    bookers_b: set[str],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> list[SimilarityEdge]:
    """Edges worth persisting for one unordered venue pair (both directions)."""
    content = content_similarity(a, b, config)
    collaborative = collaborative_similarity(bookers_a, bookers_b)
    hybrid = hybrid_similarity(collaborative, content.score, config)

    shared = content.evidence
    if collaborative >= config.min_collaborative_score:
        shared = shared.model_copy(update={"reasons": [*shared.reasons, SHARED_GUESTS_REASON]})

    edges: list[SimilarityEdge] = []
    if hybrid >= config.min_score(SimilarityKind.hybrid):
        edges += _both_directions(a.id, b.id, hybrid, SimilarityKind.hybrid, shared)
    if collaborative >= config.min_score(SimilarityKind.collaborative):
        edges += _both_directions(a.id, b.id, collaborative, SimilarityKind.collaborative, shared)
    if content.score >= config.min_score(SimilarityKind.content):
        edges += _both_directions(a.id, b.id, content.score, SimilarityKind.content, content.evidence)
    return edges


class SimilarityAggregator:
    """
    Rebuilds the similarity table from scratch on every run.

    Ordering guarantees:
    1. Venues and completed bookings are fully fetched before anything is
       cleared, so a fetch failure leaves the previous table intact.
    2. All edges are computed in memory (pure functions, cannot fail).
    3. The table is cleared once, then rewritten in fixed-size batches.
       A failure during step 3 is a hard failure that requires a re-run.

    Only one run may proceed at a time per aggregator.
    """

    def __init__(self, store, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> None:
        self._store = store
        self._config = config
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def compute_edges(self, venues: list[Venue], bookers: dict[str, set[str]]) -> tuple[int, list[SimilarityEdge]]:
        ordered = sorted(venues, key=lambda v: v.id)
        pairs = 0
        edges: list[SimilarityEdge] = []
        for a, b in combinations(ordered, 2):
            pairs += 1
            edges += pair_edges(a, b, bookers.get(a.id, set()), bookers.get(b.id, set()), self._config)
        return pairs, edges

    def run(self) -> SimilarityRunReport:
        if not self._run_lock.acquire(blocking=False):
            raise BatchAlreadyRunning("A similarity computation is already running")
        try:
            return self._run()
        finally:
            self._run_lock.release()

    def _run(self) -> SimilarityRunReport:
        start = time.time()
        logger.info("Starting similarity computation")

        try:
            venues = self._store.list_venues(active_only=True, verified_only=True)
            bookers = self._store.completed_bookers_by_venue()
        except Exception as exc:
            logger.error("Similarity run aborted before clearing: could not fetch venues", exc_info=True)
            raise DependencyFailure("Could not fetch venues for similarity computation") from exc

        pairs, edges = self.compute_edges(venues, bookers)
        logger.info("Computed %d edges over %d pairs of %d venues", len(edges), pairs, len(venues))

        batch_size = self._config.insert_batch_size
        total_batches = (len(edges) + batch_size - 1) // batch_size
        try:
            self._store.clear_similarities()
            for n, i in enumerate(range(0, len(edges), batch_size), start=1):
                self._store.insert_similarities(edges[i:i + batch_size])
                logger.debug("Inserted batch %d/%d", n, total_batches)
        except Exception as exc:
            logger.error("Similarity table left partially written; re-run required", exc_info=True)
            raise SimilarityPersistError("Failed to rewrite the similarity table") from exc

        by_kind: dict[str, int] = {k.value: 0 for k in SimilarityKind}
        for edge in edges:
            by_kind[edge.kind.value] += 1

        duration = round(time.time() - start, 3)
        logger.info("Similarity computation completed in %.2fs: %d edges stored", duration, len(edges))
        return SimilarityRunReport(
            venues=len(venues),
            pairs=pairs,
            edges=len(edges),
            edges_by_kind=by_kind,
            duration_s=duration,
        )


def run_similarity_job() -> SimilarityRunReport:
    from ..storage.config import DEFAULT_SNAPSHOT_CONFIG
    from ..storage.snapshot import load_store, write_similarities

    store = load_store(DEFAULT_SNAPSHOT_CONFIG)
    report = SimilarityAggregator(store).run()
    write_similarities(store.list_similarities(), DEFAULT_SNAPSHOT_CONFIG.similarities_path)
    return report


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    result = run_similarity_job()
    print(f"Similarity computation complete: {result.edges} edges over {result.pairs} pairs")
