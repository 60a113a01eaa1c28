"""
Threshold auto-tuning.

Nudges the decision thresholds from the trailing window's manual-review and
fraud rates. Operational only: the policy stays safe with any thresholds
this module can produce.
"""

import logging

from pydantic import BaseModel

from .metrics import MetricsRecorder, ValidationMetrics
from .policy import ValidationThresholds

logger = logging.getLogger(__name__)

MAX_STEP = 0.05

APPROVE_BOUNDS = (0.5, 0.95)
REJECT_BOUNDS = (0.3, 0.5)

MANUAL_REVIEW_RATE_LIMIT = 0.4
FRAUD_RATE_LIMIT = 0.1


class TuningResult(BaseModel):
    """Outcome of one tuning run."""

    approve: float
    reject: float
    reasoning: str
    manual_review_rate: float
    fraud_rate: float

    def thresholds(self) -> ValidationThresholds:
        return ValidationThresholds(auto_approve=self.approve, auto_reject=self.reject)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return min(high, max(low, value))


def _step_towards(current: float, proposed: float, bounds: tuple[float, float]) -> float:
    """Move from current towards the bounded proposal by at most MAX_STEP."""
    delta = _clamp(proposed, bounds) - current
    return round(current + _clamp(delta, (-MAX_STEP, MAX_STEP)), 4)


def optimize_thresholds(
    metrics: ValidationMetrics,
    current: ValidationThresholds,
) -> TuningResult:
    """
    Compute new thresholds from a metrics snapshot.

    - Manual review rate > 40%: loosen both thresholds towards automation
    - Fraud rate > 10%: raise the approve threshold

    Each threshold moves at most MAX_STEP per run, towards its bounds when
    it starts outside them, and auto_reject always stays strictly below
    auto_approve. With neither condition met the thresholds are unchanged.
    """
    approve = current.auto_approve
    reject = current.auto_reject
    reasons = []

    if metrics.manual_review_rate > MANUAL_REVIEW_RATE_LIMIT:
        approve -= MAX_STEP
        reject += MAX_STEP
        reasons.append("Reduced thresholds to decrease manual review load")

    if metrics.fraud_rate > FRAUD_RATE_LIMIT:
        approve += MAX_STEP
        reasons.append("Increased approve threshold due to high fraud rate")

    if reasons:
        approve = _step_towards(current.auto_approve, approve, APPROVE_BOUNDS)
        reject = _step_towards(current.auto_reject, reject, REJECT_BOUNDS)
        if reject >= approve:
            reject = round(min(reject, approve - MAX_STEP), 4)

    return TuningResult(
        approve=approve,
        reject=reject,
        reasoning="; ".join(reasons) if reasons else "No changes needed",
        manual_review_rate=metrics.manual_review_rate,
        fraud_rate=metrics.fraud_rate,
    )


class ThresholdTuner:
    """Holds the live thresholds and updates them from a metrics recorder."""

    def __init__(self, recorder: MetricsRecorder, thresholds: ValidationThresholds | None = None):
        self.recorder = recorder
        self.thresholds = thresholds or ValidationThresholds()

    async def run_once(self) -> TuningResult:
        """Run one tuning pass and apply the result."""
        metrics = await self.recorder.snapshot()
        result = optimize_thresholds(metrics, self.thresholds)
        self.thresholds = result.thresholds()

        logger.info(
            f"Thresholds tuned: approve={result.approve:.2f}, reject={result.reject:.2f} "
            f"({result.reasoning})"
        )
        return result
