"""Pytest fixtures for proof validation tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from proof_validation.models import (
    Challenge,
    ChallengeLocation,
    GPSFix,
    OracleValidationResult,
    PhotoProof,
    ProofRequirements,
    ProofType,
    SubmissionRecord,
    SuggestedAction,
    UserSubmissionHistory,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# Powell's City of Books, Portland
TARGET_LAT = 45.5231
TARGET_LNG = -122.6812


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return NOW


@pytest.fixture
def target() -> GPSFix:
    """The challenge's registered coordinate."""
    return GPSFix(latitude=TARGET_LAT, longitude=TARGET_LNG)


@pytest.fixture
def challenge(target) -> Challenge:
    """An active challenge accepting every proof type."""
    return Challenge(
        id="ch_1",
        location=ChallengeLocation(
            coordinates=target,
            verification_radius_meters=100,
            business_name="Powell's Books",
        ),
        proof_requirements=ProofRequirements(allowed_types=list(ProofType)),
        start_date=NOW - timedelta(days=7),
        end_date=NOW + timedelta(days=7),
    )


@pytest.fixture
def make_submission():
    """Factory for a clean photo submission ~22m from the target."""

    def _make(**overrides) -> SubmissionRecord:
        fields = {
            "id": "sub_1",
            "challenge_id": "ch_1",
            "user_id": "user_1",
            "proof_type": ProofType.PHOTO,
            "gps_fix": GPSFix(
                latitude=TARGET_LAT + 0.0002,
                longitude=TARGET_LNG,
                accuracy_meters=8,
                captured_at=NOW,
            ),
            "submitted_at": NOW,
            "started_at": NOW - timedelta(minutes=5),
            "proof": PhotoProof(
                image_url="https://img.example.com/proof.jpg",
                has_business_signage=True,
                gps_embedded=True,
            ),
        }
        fields.update(overrides)
        return SubmissionRecord(**fields)

    return _make


@pytest.fixture
def submission(make_submission) -> SubmissionRecord:
    return make_submission()


@pytest.fixture
def empty_history() -> UserSubmissionHistory:
    return UserSubmissionHistory(user_id="user_1")


@pytest.fixture
def make_history(make_submission):
    """
    Factory for a history of past submissions.

    Each past submission targets its own challenge so no duplicate signal
    fires unless a test asks for one.
    """

    def _make(times: list[datetime], **overrides) -> UserSubmissionHistory:
        submissions = [
            make_submission(
                id=f"past_{i}",
                challenge_id=f"ch_past_{i}",
                submitted_at=at,
                started_at=at - timedelta(minutes=5),
                gps_fix=GPSFix(
                    latitude=TARGET_LAT + 0.0002,
                    longitude=TARGET_LNG,
                    accuracy_meters=8,
                    captured_at=at,
                ),
                **overrides,
            )
            for i, at in enumerate(times)
        ]
        return UserSubmissionHistory.from_submissions(submissions, user_id="user_1")

    return _make


@pytest.fixture
def make_oracle():
    """Factory for an oracle mock returning a fixed result."""

    def _make(is_valid: bool = True, confidence: float = 0.9, reason: str = "Signage visible"):
        oracle = AsyncMock()
        oracle.validate_proof.return_value = OracleValidationResult(
            is_valid=is_valid,
            confidence=confidence,
            reason=reason,
            suggested_action=SuggestedAction.APPROVE if is_valid else SuggestedAction.REJECT,
        )
        return oracle

    return _make
