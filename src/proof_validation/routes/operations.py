"""Metrics and threshold tuning endpoints."""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from ..metrics import ValidationMetrics
from ..tuning import TuningResult

router = APIRouter()


@router.get("/metrics/validation", response_model=ValidationMetrics)
async def validation_metrics(request: Request) -> ValidationMetrics:
    """Decisions made in the trailing retention window."""
    return await request.app.state.metrics.snapshot()


@router.get("/metrics")
async def prometheus_metrics(request: Request) -> Response:
    """Prometheus exposition of the recorder's registry."""
    return Response(
        content=generate_latest(request.app.state.metrics.registry),
        media_type=CONTENT_TYPE_LATEST,
    )


class ThresholdsResponse(BaseModel):
    auto_approve: float
    auto_reject: float


@router.get("/thresholds", response_model=ThresholdsResponse)
async def current_thresholds(request: Request) -> ThresholdsResponse:
    thresholds = request.app.state.pipeline.thresholds
    return ThresholdsResponse(
        auto_approve=thresholds.auto_approve, auto_reject=thresholds.auto_reject
    )


@router.post("/thresholds/optimize", response_model=TuningResult)
async def optimize_thresholds(request: Request) -> TuningResult:
    """Run one tuning pass and apply the new thresholds to the pipeline."""
    pipeline = request.app.state.pipeline
    tuner = request.app.state.tuner
    tuner.thresholds = pipeline.thresholds
    result = await tuner.run_once()
    pipeline.thresholds = tuner.thresholds
    return result
