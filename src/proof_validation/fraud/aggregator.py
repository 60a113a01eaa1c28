"""Combine fraud signal results into a single verdict."""

from ..models import EvaluationResult, FraudRisk, FraudVerdict, RecommendedAction

# Risk classification thresholds
REVIEW_CONFIDENCE_THRESHOLD = 0.5
LOW_RISK_CONFIDENCE_THRESHOLD = 0.7
MAX_SOFT_REASONS = 2


def classify_risk(
    failed: bool, confidence: float, reason_count: int
) -> tuple[FraudRisk, RecommendedAction]:
    """
    Determine risk level and recommended action.

    A failed check always wins. Soft signals (reasons on passing checks)
    escalate to review but never to reject on their own.
    """
    if failed:
        return FraudRisk.HIGH, RecommendedAction.REJECT
    if confidence < REVIEW_CONFIDENCE_THRESHOLD or reason_count > MAX_SOFT_REASONS:
        return FraudRisk.MEDIUM, RecommendedAction.REVIEW
    if confidence < LOW_RISK_CONFIDENCE_THRESHOLD or reason_count > 0:
        return FraudRisk.MEDIUM, RecommendedAction.REVIEW
    return FraudRisk.LOW, RecommendedAction.APPROVE


def aggregate_results(results: list[EvaluationResult]) -> FraudVerdict:
    """
    Aggregate evaluator results into a FraudVerdict.

    Args:
        results: Evaluation results in evaluator order

    Returns:
        FraudVerdict with validity, risk, reasons, mean confidence and action
    """
    if not results:
        return FraudVerdict(
            is_valid=False,
            fraud_risk=FraudRisk.HIGH,
            reasons=["No fraud checks were evaluated"],
            confidence=0.0,
            recommended_action=RecommendedAction.REJECT,
        )

    failed = any(not r.passed for r in results)
    reasons = [r.reason for r in results if r.reason]
    confidence = sum(r.confidence for r in results) / len(results)

    fraud_risk, action = classify_risk(failed, confidence, len(reasons))

    return FraudVerdict(
        is_valid=not failed,
        fraud_risk=fraud_risk,
        reasons=reasons,
        confidence=confidence,
        recommended_action=action,
    )
