from __future__ import annotations

import threading
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from .batch.trending import ALL_LOCATIONS
from .errors import BatchAlreadyRunning, DependencyFailure
from .recommendations.models import (
    FeedbackRequest,
    FeedbackResponse,
    FeedbackSummary,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResponse,
)
from .recommendations.service import RecommendationService
from .storage.models import ExposureLogEntry, TimeWindow
from .storage.snapshot import load_store


def create_app(service: RecommendationService | None = None) -> FastAPI:
    """
    Build the API around *service*.

    Without a service, one is built from the CSV snapshot on first use.
    """
    app = FastAPI(title="Venue Recommendation API", version="1.0.0")
    app.state.service = service
    build_lock = threading.Lock()

    def get_service(request: Request) -> RecommendationService:
        if request.app.state.service is None:
            with build_lock:
                if request.app.state.service is None:
                    request.app.state.service = RecommendationService(load_store())
        return request.app.state.service

    # ── Public endpoints ─────────────────────────────────────────────────

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/recommendations/personalized", response_model=RecommendationResponse)
    def personalized(
        body: RecommendationRequest,
        svc: RecommendationService = Depends(get_service),
    ) -> RecommendationResponse:
        try:
            return svc.get_personalized_recommendations(body)
        except DependencyFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.get("/recommendations/trending", response_model=list[RecommendationItem])
    def trending(
        location: str = Query(ALL_LOCATIONS, min_length=1),
        time_window: TimeWindow = Query(TimeWindow.weekly),
        limit: int = Query(10, ge=1, le=50),
        svc: RecommendationService = Depends(get_service),
    ) -> list[RecommendationItem]:
        return svc.get_trending(location, time_window, limit)

    @app.get("/recommendations/similar/{venue_id}", response_model=list[RecommendationItem])
    def similar(
        venue_id: str,
        limit: int = Query(10, ge=1, le=50),
        svc: RecommendationService = Depends(get_service),
    ) -> list[RecommendationItem]:
        return svc.get_similar(venue_id, limit)

    @app.post("/recommendations/feedback", response_model=FeedbackResponse)
    def feedback(
        body: FeedbackRequest,
        svc: RecommendationService = Depends(get_service),
    ) -> FeedbackResponse:
        return svc.record_feedback(body)

    @app.get("/recommendations/feedback/{user_id}", response_model=FeedbackSummary)
    def feedback_history(
        user_id: str,
        svc: RecommendationService = Depends(get_service),
    ) -> FeedbackSummary:
        return svc.feedback_summary(user_id)

    @app.get("/recommendations/exposures/{user_id}", response_model=list[ExposureLogEntry])
    def exposures(
        user_id: str,
        svc: RecommendationService = Depends(get_service),
    ) -> list[ExposureLogEntry]:
        return svc.exposure_history(user_id)

    # ── Batch endpoints ──────────────────────────────────────────────────

    @app.post("/batch/similarities")
    def run_similarities(svc: RecommendationService = Depends(get_service)) -> dict:
        try:
            return asdict(svc.run_similarity_computation())
        except BatchAlreadyRunning as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except DependencyFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.post("/batch/trending")
    def run_trending(
        scope: str = Query(ALL_LOCATIONS, min_length=1),
        window: TimeWindow = Query(TimeWindow.weekly),
        svc: RecommendationService = Depends(get_service),
    ) -> dict:
        try:
            report = svc.run_trend_computation(scope, window)
        except DependencyFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {**asdict(report), "window": report.window.value}

    @app.get("/cache/stats")
    def cache_stats(svc: RecommendationService = Depends(get_service)) -> dict:
        return svc.cache.stats()

    return app


app = create_app()
