"""Submission validation endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..config import settings
from ..models import Challenge, SubmissionRecord, UserSubmissionHistory, ValidationOutcome

logger = logging.getLogger(__name__)
router = APIRouter()


class SubmissionBundle(BaseModel):
    """A submission together with the data needed to validate it."""

    submission: SubmissionRecord
    challenge: Challenge
    history: UserSubmissionHistory = Field(default_factory=UserSubmissionHistory)


class ValidateSubmissionRequest(SubmissionBundle):
    """Request payload for validating one submission."""

    now: datetime | None = Field(default=None, description="Evaluation time override")


class BatchValidateRequest(BaseModel):
    """Request payload for validating many submissions."""

    items: list[SubmissionBundle] = Field(default_factory=list)


class BatchValidateResponse(BaseModel):
    outcomes: list[ValidationOutcome]


@router.post("/validate", response_model=ValidationOutcome)
async def validate_submission(payload: ValidateSubmissionRequest, request: Request) -> ValidationOutcome:
    """Validate a single proof submission."""
    pipeline = request.app.state.pipeline
    return await pipeline.validate(
        payload.submission, payload.challenge, payload.history, now=payload.now
    )


@router.post("/validate/batch", response_model=BatchValidateResponse)
async def validate_batch(payload: BatchValidateRequest, request: Request) -> BatchValidateResponse:
    """Validate submissions in rate-limited batches."""
    pipeline = request.app.state.pipeline
    logger.info(f"Batch validation requested for {len(payload.items)} submissions")
    outcomes = await pipeline.validate_batch(
        [(item.submission, item.challenge, item.history) for item in payload.items],
        batch_size=settings.batch_size,
        delay_seconds=settings.batch_delay_seconds,
    )
    return BatchValidateResponse(outcomes=outcomes)
