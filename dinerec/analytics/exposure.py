from __future__ import annotations

import logging

from ..recommendations.models import RecommendationItem
from ..storage.models import ExposureLogEntry

logger = logging.getLogger(__name__)


class ExposureLogger:
    def __init__(self, store) -> None:
        self._store = store

    def log(
        self,
        user_id: str | None,
        items: list[RecommendationItem],
        algorithm: str,
    ) -> str | None:
        """
        Record which venues were shown to *user_id* and by which algorithm.

        Best effort: returns the entry id, or ``None`` if the write failed.
        """
        try:
            entry = ExposureLogEntry(
                user_id=user_id,
                venue_ids=[item.venue.id for item in items],
                scores=[item.score for item in items],
                algorithm=algorithm,
            )
            self._store.insert_exposure(entry)
            return entry.id
        except Exception:
            logger.warning("Failed to write exposure log entry for user %s", user_id, exc_info=True)
            return None

    def history(self, user_id: str) -> list[ExposureLogEntry]:
        return self._store.list_exposures(user_id=user_id)
