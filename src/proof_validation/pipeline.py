"""
Submission validation pipeline.

Pre-validation -> (fraud engine || oracle) -> decision policy -> write-back.
Metrics are recorded as a side effect whose failure never affects the
decision.
"""

import asyncio
import logging
from datetime import datetime
from typing import Protocol

from .fraud import FraudDetectionEngine
from .metrics import MetricsRecorder
from .models import (
    Challenge,
    Decision,
    FinalDecision,
    FraudRisk,
    FraudVerdict,
    OracleValidationResult,
    PreValidationResult,
    SubmissionRecord,
    UserSubmissionHistory,
    ValidationIssue,
    ValidationOutcome,
    VerificationStatus,
)
from .oracle import ProofOracle, assess_proof
from .policy import ValidationThresholds, decide, status_for_decision, system_error_decision
from .prevalidation import SYSTEM_ERROR_CODE, SubmissionPreValidator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 1.0


class SubmissionStore(Protocol):
    """Protocol for the storage collaborator that owns submissions."""

    async def update_verification_status(
        self, submission_id: str, status: VerificationStatus
    ) -> None:
        """Persist a submission's verification status."""
        ...


class SubmissionValidationPipeline:
    """
    Validates proof submissions end to end.

    Collaborators are injected; the pipeline keeps no state between calls
    apart from the current decision thresholds.
    """

    def __init__(
        self,
        oracle: ProofOracle,
        metrics: MetricsRecorder,
        prevalidator: SubmissionPreValidator | None = None,
        fraud_engine: FraudDetectionEngine | None = None,
        thresholds: ValidationThresholds | None = None,
        store: SubmissionStore | None = None,
    ):
        self.oracle = oracle
        self.metrics = metrics
        self.prevalidator = prevalidator or SubmissionPreValidator()
        self.fraud_engine = fraud_engine or FraudDetectionEngine()
        self.thresholds = thresholds or ValidationThresholds()
        self.store = store

    async def validate(
        self,
        submission: SubmissionRecord,
        challenge: Challenge,
        history: UserSubmissionHistory,
        now: datetime | None = None,
    ) -> ValidationOutcome:
        """
        Validate one submission.

        Args:
            submission: The submission to validate
            challenge: The challenge it was submitted for
            history: The user's previous submissions
            now: Evaluation time for time-based rules

        Returns:
            ValidationOutcome carrying the decision and the updated submission
        """
        logger.info(f"Validating submission {submission.id} for challenge {challenge.id}")

        pre_validation = self.prevalidator.validate(submission, challenge, history, now=now)
        if not pre_validation.is_valid:
            if any(e.code == SYSTEM_ERROR_CODE for e in pre_validation.errors):
                decision = system_error_decision("pre-validation could not be completed")
            else:
                decision = FinalDecision(
                    final_decision=Decision.REJECTED,
                    confidence=0.0,
                    review_reason="; ".join(e.message for e in pre_validation.errors),
                )
            return await self._finish(submission, decision, pre_validation)

        fraud_verdict: FraudVerdict | None = None
        oracle_result: OracleValidationResult | None = None
        warnings = list(pre_validation.warnings)

        try:
            fraud_verdict, oracle_result = await asyncio.gather(
                self.fraud_engine.evaluate(submission, history, challenge.location.coordinates),
                assess_proof(self.oracle, submission, challenge),
            )

            if fraud_verdict.is_valid and fraud_verdict.fraud_risk == FraudRisk.MEDIUM:
                warnings.append(
                    ValidationIssue(
                        field="submission",
                        message=f"Submission flagged for review: {', '.join(fraud_verdict.reasons)}",
                        code="FRAUD_WARNING",
                    )
                )

            decision = decide(fraud_verdict, oracle_result, self.thresholds)

        except Exception as e:
            logger.exception(f"Validation failed for submission {submission.id}: {e}")
            decision = system_error_decision(str(e))

        await self._record_metrics(submission, decision, fraud_verdict, oracle_result)

        return await self._finish(
            submission,
            decision,
            pre_validation,
            fraud_verdict=fraud_verdict,
            oracle_result=oracle_result,
            warnings=warnings,
        )

    async def _record_metrics(
        self,
        submission: SubmissionRecord,
        decision: FinalDecision,
        fraud_verdict: FraudVerdict | None,
        oracle_result: OracleValidationResult | None,
    ) -> None:
        fraud_detected = fraud_verdict is not None and not fraud_verdict.is_valid
        confidence = oracle_result.confidence if oracle_result is not None else 0.0
        try:
            await self.metrics.record(decision.final_decision, fraud_detected, confidence)
        except Exception as e:
            logger.warning(f"Failed to record metrics for submission {submission.id}: {e}")

    async def _finish(
        self,
        submission: SubmissionRecord,
        decision: FinalDecision,
        pre_validation: PreValidationResult,
        fraud_verdict: FraudVerdict | None = None,
        oracle_result: OracleValidationResult | None = None,
        warnings: list[ValidationIssue] | None = None,
    ) -> ValidationOutcome:
        """Write the decision back. Always the last step of a validation."""
        status = status_for_decision(decision.final_decision)
        if self.store is not None:
            await self.store.update_verification_status(submission.id, status)

        logger.info(
            f"Submission {submission.id} {decision.final_decision.value} "
            f"(confidence={decision.confidence:.2f}): {decision.review_reason}"
        )

        return ValidationOutcome(
            submission=submission.model_copy(update={"verification_status": status}),
            decision=decision,
            pre_validation=pre_validation,
            fraud_verdict=fraud_verdict,
            oracle_result=oracle_result,
            warnings=warnings if warnings is not None else list(pre_validation.warnings),
        )

    async def validate_batch(
        self,
        items: list[tuple[SubmissionRecord, Challenge, UserSubmissionHistory]],
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        now: datetime | None = None,
    ) -> list[ValidationOutcome]:
        """
        Validate many submissions in small batches.

        Each batch runs concurrently; batches are separated by a delay so the
        oracle's rate limits are respected. Results follow input order.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        outcomes: list[ValidationOutcome] = []
        for start in range(0, len(items), batch_size):
            if start > 0 and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)

            batch = items[start:start + batch_size]
            logger.info(f"Validating batch of {len(batch)} submissions (offset {start})")
            outcomes.extend(
                await asyncio.gather(*(
                    self.validate(submission, challenge, history, now=now)
                    for submission, challenge, history in batch
                ))
            )

        return outcomes
