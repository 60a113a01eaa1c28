"""
Submission pre-validator.

Structural and business-rule gate that runs before fraud scoring and the
oracle. Every problem is reported as an itemised ValidationIssue; checks do
not stop at the first error so the user sees everything that is wrong.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from .config import PreValidationConfig
from .geo import format_distance, validate_coordinate, verify_location_within_radius
from .models import (
    Challenge,
    ChallengeStatus,
    GpsCheckinProof,
    PhotoProof,
    PreValidationResult,
    QuestionProof,
    ReceiptProof,
    SubmissionRecord,
    UserSubmissionHistory,
    ValidationIssue,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

DAILY_WINDOW = timedelta(hours=24)
MIN_ANSWER_LENGTH = 2
SYSTEM_ERROR_CODE = "VALIDATION_SYSTEM_ERROR"


def _issue(field: str, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, code=code)


class SubmissionPreValidator:
    """Validates a submission's structure and the challenge's business rules."""

    def __init__(self, config: PreValidationConfig | None = None):
        self.config = config or PreValidationConfig()
        self._proof_validators: dict[type, Callable] = {
            PhotoProof: self._validate_photo,
            ReceiptProof: self._validate_receipt,
            GpsCheckinProof: self._validate_gps_checkin,
            QuestionProof: self._validate_question,
        }

    def validate(
        self,
        submission: SubmissionRecord,
        challenge: Challenge,
        history: UserSubmissionHistory,
        now: datetime | None = None,
    ) -> PreValidationResult:
        """
        Run every pre-validation rule against a submission.

        Args:
            submission: The submission to validate
            challenge: The challenge it is submitted for
            history: The user's previous submissions
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            PreValidationResult with accumulated errors and warnings
        """
        now = now or datetime.now(timezone.utc)
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        try:
            errors.extend(self._check_required_fields(submission))
            errors.extend(self._check_challenge(submission, challenge, now))

            if self.config.duplicate_prevention_enabled:
                errors.extend(self._check_duplicate(submission, history))

            if self.config.rate_limiting_enabled:
                errors.extend(self._check_rate_limit(submission, history, now))

            location_errors, location_warnings = self._check_location(submission, challenge)
            errors.extend(location_errors)
            warnings.extend(location_warnings)

            proof_errors, proof_warnings = self._check_proof(submission, now)
            errors.extend(proof_errors)
            warnings.extend(proof_warnings)

        except Exception as e:
            logger.exception(f"Pre-validation failed for submission {submission.id}: {e}")
            return PreValidationResult(
                is_valid=False,
                errors=[
                    _issue(
                        "system",
                        "Validation system error. Please try again.",
                        SYSTEM_ERROR_CODE,
                    )
                ],
            )

        is_valid = len(errors) == 0
        logger.info(
            f"Pre-validation complete for {submission.id}: "
            f"valid={is_valid}, errors={len(errors)}, warnings={len(warnings)}"
        )
        return PreValidationResult(is_valid=is_valid, errors=errors, warnings=warnings)

    # =========================================================================
    # Basic rules
    # =========================================================================

    def _check_required_fields(self, submission: SubmissionRecord) -> list[ValidationIssue]:
        errors = []
        if not submission.challenge_id:
            errors.append(_issue("challenge_id", "Challenge ID is required", "MISSING_CHALLENGE_ID"))
        if not submission.user_id:
            errors.append(_issue("user_id", "User authentication required", "MISSING_USER"))
        if submission.proof_type is None:
            errors.append(_issue("proof_type", "Proof type is required", "MISSING_PROOF_TYPE"))
        if submission.gps_fix is None:
            errors.append(_issue("gps_fix", "GPS coordinates are required", "MISSING_GPS"))
        return errors

    def _check_challenge(
        self, submission: SubmissionRecord, challenge: Challenge, now: datetime
    ) -> list[ValidationIssue]:
        errors = []

        if challenge.status != ChallengeStatus.ACTIVE:
            errors.append(_issue("challenge_id", "Challenge is not active", "CHALLENGE_INACTIVE"))
        if now > challenge.end_date:
            errors.append(_issue("challenge_id", "Challenge has expired", "CHALLENGE_EXPIRED"))
        if now < challenge.start_date:
            errors.append(
                _issue("challenge_id", "Challenge has not started yet", "CHALLENGE_NOT_STARTED")
            )
        if (
            challenge.max_completions is not None
            and challenge.completion_count >= challenge.max_completions
        ):
            errors.append(
                _issue(
                    "challenge_id",
                    "Challenge has reached its maximum number of completions",
                    "CHALLENGE_FULL",
                )
            )

        proof_type = submission.proof_type
        if proof_type is not None:
            if proof_type not in challenge.proof_requirements.allowed_types:
                errors.append(
                    _issue(
                        "proof_type",
                        f"Proof type '{proof_type.value}' is not allowed for this challenge",
                        "INVALID_PROOF_TYPE",
                    )
                )
            if submission.proof is not None and submission.proof.kind != proof_type.value:
                errors.append(
                    _issue(
                        "proof",
                        f"Proof data of kind '{submission.proof.kind}' does not match "
                        f"proof type '{proof_type.value}'",
                        "PROOF_TYPE_MISMATCH",
                    )
                )

        return errors

    def _check_duplicate(
        self, submission: SubmissionRecord, history: UserSubmissionHistory
    ) -> list[ValidationIssue]:
        """An approved submission for the same (user, challenge) pair blocks a new one."""
        existing = next(
            (
                s for s in history.submissions
                if s.id != submission.id
                and s.challenge_id == submission.challenge_id
                and s.verification_status == VerificationStatus.APPROVED
                and (s.user_id is None or s.user_id == submission.user_id)
            ),
            None,
        )
        if existing is None:
            return []
        return [
            _issue(
                "challenge_id",
                f"You have already completed this challenge on {existing.submitted_at:%Y-%m-%d}",
                "DUPLICATE_SUBMISSION",
            )
        ]

    def _check_rate_limit(
        self, submission: SubmissionRecord, history: UserSubmissionHistory, now: datetime
    ) -> list[ValidationIssue]:
        """Daily cap and minimum interval between submissions."""
        prior = [s for s in history.submissions if s.id != submission.id]
        recent = sorted(
            (s.submitted_at for s in prior if now - DAILY_WINDOW <= s.submitted_at <= now)
        )

        next_allowed = None
        if len(recent) >= self.config.max_daily_submissions:
            next_allowed = recent[0] + DAILY_WINDOW
        else:
            last_at = history.last_submission_before(submission)
            min_interval = timedelta(seconds=self.config.min_submission_interval_seconds)
            if last_at is not None and now - last_at < min_interval:
                next_allowed = last_at + min_interval

        if next_allowed is None:
            return []
        return [
            _issue(
                "submission",
                f"Rate limit exceeded. Next submission allowed at "
                f"{next_allowed:%Y-%m-%d %H:%M:%S} UTC",
                "RATE_LIMIT_EXCEEDED",
            )
        ]

    def _check_location(
        self, submission: SubmissionRecord, challenge: Challenge
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        errors, warnings = [], []
        fix = submission.gps_fix
        if fix is None:
            return errors, warnings

        coordinate = validate_coordinate(fix)
        if not coordinate.is_valid:
            errors.append(
                _issue(
                    "gps_fix",
                    f"Valid GPS coordinates are required: {'; '.join(coordinate.errors)}",
                    "INVALID_GPS_COORDINATES",
                )
            )
            return errors, warnings

        if (
            fix.accuracy_meters is not None
            and fix.accuracy_meters > self.config.gps_accuracy_warning_meters
        ):
            warnings.append(
                _issue(
                    "gps_fix",
                    f"GPS accuracy is low ({fix.accuracy_meters:g}m). "
                    f"Try again with better signal.",
                    "POOR_GPS_ACCURACY",
                )
            )

        location = challenge.location
        verification = verify_location_within_radius(
            coordinate.normalized, location.coordinates, location.verification_radius_meters
        )
        if not verification.is_valid:
            errors.append(
                _issue(
                    "gps_fix",
                    f"You must be within {location.verification_radius_meters:g}m of "
                    f"{location.business_name}. You are {verification.distance_meters}m away "
                    f"({format_distance(verification.distance_meters)}).",
                    "LOCATION_TOO_FAR",
                )
            )

        return errors, warnings

    # =========================================================================
    # Proof payloads
    # =========================================================================

    def _check_proof(
        self, submission: SubmissionRecord, now: datetime
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        if submission.proof is None:
            return [_issue("proof", "Proof data is required", "MISSING_PROOF")], []

        validator = self._proof_validators.get(type(submission.proof))
        if validator is None:
            return [_issue("proof_type", "Invalid proof type", "INVALID_PROOF_TYPE")], []
        return validator(submission.proof, now)

    def _validate_photo(self, proof: PhotoProof, now: datetime):
        errors, warnings = [], []

        if not proof.image_url:
            errors.append(_issue("image_url", "Photo is required", "MISSING_PHOTO"))
            return errors, warnings

        if self.config.photo_validation_enabled:
            if len(proof.image_url) < self.config.min_image_url_length:
                errors.append(_issue("image_url", "Invalid photo data", "INVALID_PHOTO_DATA"))
            if not proof.has_business_signage and not proof.has_interior_view:
                warnings.append(
                    _issue(
                        "image_url",
                        "Photo should show business signage or interior for verification",
                        "NO_BUSINESS_INDICATORS",
                    )
                )
            if not proof.gps_embedded:
                warnings.append(
                    _issue("image_url", "Photo does not contain GPS metadata", "NO_GPS_METADATA")
                )

        return errors, warnings

    def _validate_receipt(self, proof: ReceiptProof, now: datetime):
        errors = []

        if not proof.image_url:
            errors.append(_issue("image_url", "Receipt photo is required", "MISSING_RECEIPT_PHOTO"))
        if not proof.business_name.strip():
            errors.append(
                _issue("business_name", "Business name is required", "MISSING_BUSINESS_NAME")
            )
        if proof.issued_at is None:
            errors.append(
                _issue("issued_at", "Receipt timestamp is required", "MISSING_RECEIPT_TIMESTAMP")
            )
        else:
            age_hours = (now - proof.issued_at).total_seconds() / 3600
            if age_hours > self.config.receipt_max_age_hours:
                errors.append(
                    _issue(
                        "issued_at",
                        f"Receipt must be from within the last "
                        f"{self.config.receipt_max_age_hours:g} hours",
                        "RECEIPT_TOO_OLD",
                    )
                )

        return errors, []

    def _validate_gps_checkin(self, proof: GpsCheckinProof, now: datetime):
        errors = []
        if proof.coordinates is None:
            errors.append(
                _issue(
                    "coordinates",
                    "GPS coordinates are required for check-in",
                    "MISSING_GPS_COORDINATES",
                )
            )
        if proof.checked_in_at is None:
            errors.append(
                _issue("checked_in_at", "Check-in timestamp is required", "MISSING_CHECKIN_TIME")
            )
        return errors, []

    def _validate_question(self, proof: QuestionProof, now: datetime):
        errors = []
        answer = proof.answer.strip()

        if len(answer) < MIN_ANSWER_LENGTH:
            errors.append(
                _issue(
                    "answer",
                    "Answer is required and must be at least 2 characters",
                    "INVALID_ANSWER",
                )
            )
        if not proof.question.strip():
            errors.append(_issue("question", "Question is required", "MISSING_QUESTION"))

        if answer and proof.correct_answer and proof.correct_answer.strip():
            if answer.lower() != proof.correct_answer.strip().lower():
                errors.append(
                    _issue(
                        "answer",
                        "Incorrect answer. Please visit the location to find the correct answer.",
                        "INCORRECT_ANSWER",
                    )
                )

        return errors, []
