"""
Decision policy: combine the fraud verdict and the oracle's opinion.

Rules are evaluated in order and the first match wins:
1. Fraud detected -> rejected
2. No oracle data (error or nothing to score) -> manual_review
3. Oracle valid and confident -> approved
4. Oracle invalid or not confident -> rejected
5. Everything in between -> manual_review
"""

from pydantic import BaseModel, Field, model_validator

from .exceptions import ThresholdInvariantError
from .models import (
    Decision,
    FinalDecision,
    FraudVerdict,
    OracleValidationResult,
    VerificationStatus,
)


class ValidationThresholds(BaseModel):
    """Oracle confidence thresholds for automatic decisions."""

    auto_approve: float = Field(default=0.85, ge=0.0, le=1.0)
    auto_reject: float = Field(default=0.30, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_order(self):
        if self.auto_reject >= self.auto_approve:
            raise ThresholdInvariantError(self.auto_approve, self.auto_reject)
        return self


def system_error_decision(reason: str) -> FinalDecision:
    """Decision used when the system could not reach a verdict."""
    return FinalDecision(
        final_decision=Decision.MANUAL_REVIEW,
        confidence=0.0,
        review_reason=f"System error during validation: {reason}",
    )


def decide(
    fraud_verdict: FraudVerdict,
    oracle_result: OracleValidationResult,
    thresholds: ValidationThresholds | None = None,
) -> FinalDecision:
    """
    Make the final decision for a submission.

    Args:
        fraud_verdict: Aggregated fraud verdict
        oracle_result: Oracle opinion on the proof image
        thresholds: Auto approve/reject thresholds (defaults if omitted)

    Returns:
        FinalDecision with outcome, confidence and a human readable reason
    """
    thresholds = thresholds or ValidationThresholds()

    if not fraud_verdict.is_valid:
        return FinalDecision(
            final_decision=Decision.REJECTED,
            confidence=fraud_verdict.confidence,
            review_reason=f"Fraud detected: {', '.join(fraud_verdict.reasons)}",
        )

    if oracle_result.degraded:
        return system_error_decision(oracle_result.reason or "no oracle data")

    confidence = oracle_result.confidence

    if oracle_result.is_valid and confidence >= thresholds.auto_approve:
        return FinalDecision(
            final_decision=Decision.APPROVED,
            confidence=confidence,
            review_reason=f"AI validation passed with {confidence * 100:.1f}% confidence",
        )

    if confidence <= thresholds.auto_reject or not oracle_result.is_valid:
        return FinalDecision(
            final_decision=Decision.REJECTED,
            confidence=confidence,
            review_reason=oracle_result.reason or "AI validation failed",
        )

    return FinalDecision(
        final_decision=Decision.MANUAL_REVIEW,
        confidence=confidence,
        review_reason=f"Medium confidence ({confidence * 100:.1f}%) requires human review",
    )


_STATUS_FOR_DECISION = {
    Decision.APPROVED: VerificationStatus.APPROVED,
    Decision.REJECTED: VerificationStatus.REJECTED,
    Decision.MANUAL_REVIEW: VerificationStatus.PENDING,
}


def status_for_decision(decision: Decision) -> VerificationStatus:
    """Stored verification status for a decision (manual review stays pending)."""
    return _STATUS_FOR_DECISION[decision]
