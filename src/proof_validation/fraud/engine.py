"""Fraud detection engine: fan out the signal checks, then aggregate."""

import asyncio
import logging

from ..config import FraudRules
from ..models import EvaluationResult, FraudVerdict, GPSFix, SubmissionRecord, UserSubmissionHistory
from .aggregator import aggregate_results
from .evaluators import FRAUD_CHECKS, FraudCheck

logger = logging.getLogger(__name__)

# Confidence given to a check that crashed
FALLBACK_CONFIDENCE = 0.3


class FraudDetectionEngine:
    """
    Runs the fraud signal checks concurrently for one submission.

    A check that raises (e.g. on a malformed history record) is turned into
    a low-confidence pass so one bad record cannot block every submission.
    The low confidence still pulls the verdict towards review.
    """

    def __init__(
        self,
        rules: FraudRules | None = None,
        checks: list[tuple[str, FraudCheck]] | None = None,
    ):
        self.rules = rules or FraudRules()
        self.checks = checks if checks is not None else list(FRAUD_CHECKS)

    async def _run_check(
        self,
        name: str,
        check: FraudCheck,
        submission: SubmissionRecord,
        history: UserSubmissionHistory,
        challenge_location: GPSFix,
    ) -> EvaluationResult:
        try:
            return check(submission, history, challenge_location, self.rules)
        except Exception as e:
            logger.exception(f"Fraud check '{name}' failed for submission {submission.id}: {e}")
            return EvaluationResult(
                passed=True,
                confidence=FALLBACK_CONFIDENCE,
                details={"error": str(e), "check": name},
                reason=f"{name} check could not be completed",
            )

    async def evaluate(
        self,
        submission: SubmissionRecord,
        history: UserSubmissionHistory,
        challenge_location: GPSFix,
    ) -> FraudVerdict:
        """
        Evaluate a submission for fraud.

        Args:
            submission: The submission to check
            history: The user's submission history
            challenge_location: The challenge's registered coordinate

        Returns:
            Aggregated FraudVerdict
        """
        results = await asyncio.gather(*(
            self._run_check(name, check, submission, history, challenge_location)
            for name, check in self.checks
        ))

        verdict = aggregate_results(list(results))
        logger.info(
            f"Fraud verdict for {submission.id}: valid={verdict.is_valid}, "
            f"risk={verdict.fraud_risk.value}, confidence={verdict.confidence:.2f}"
        )
        return verdict
