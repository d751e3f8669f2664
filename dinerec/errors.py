from __future__ import annotations


class RecommendationError(Exception):
    """Base class for errors raised by the recommendation core."""


class DependencyFailure(RecommendationError):
    """Storage could not be read or written."""


class SimilarityPersistError(DependencyFailure):
    """The similarity table was cleared but not fully rewritten; re-run required."""


class BatchAlreadyRunning(RecommendationError):
    """Another batch run holds the run lock."""
