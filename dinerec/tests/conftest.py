from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dinerec.recommendations.service import RecommendationService
from dinerec.storage.store import InMemoryStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def service(store: InMemoryStore) -> RecommendationService:
    return RecommendationService(store)
