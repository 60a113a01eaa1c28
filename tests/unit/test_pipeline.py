"""Unit tests for the submission validation pipeline."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from proof_validation.config import PreValidationConfig
from proof_validation.exceptions import OracleError
from proof_validation.metrics import InMemoryMetricsRecorder
from proof_validation.models import Decision, GPSFix, UserSubmissionHistory, VerificationStatus
from proof_validation.pipeline import SubmissionValidationPipeline
from proof_validation.prevalidation import SubmissionPreValidator


@pytest.fixture
def recorder() -> InMemoryMetricsRecorder:
    return InMemoryMetricsRecorder()


class TestValidate:
    """Tests for single submission validation."""

    @pytest.mark.asyncio
    async def test_confident_oracle_and_clean_fraud_approves(
        self, submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(confidence=0.9), recorder)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.APPROVED
        assert outcome.is_valid
        assert outcome.submission.verification_status == VerificationStatus.APPROVED
        assert submission.verification_status == VerificationStatus.PENDING

    @pytest.mark.asyncio
    async def test_medium_confidence_goes_to_review(
        self, submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(confidence=0.5), recorder)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.MANUAL_REVIEW
        assert "50.0%" in outcome.decision.review_reason
        assert outcome.submission.verification_status == VerificationStatus.PENDING

    @pytest.mark.asyncio
    async def test_fraud_failure_rejects_despite_confident_oracle(
        self, submission, challenge, make_history, now, make_oracle, recorder
    ) -> None:
        """Hard fraud evidence wins over a 0.99 oracle score."""
        times = [now - timedelta(hours=23) + timedelta(minutes=20 * i) for i in range(50)]
        history = make_history(times)
        # Without the blocking rate limit the fraud layer is reached
        prevalidator = SubmissionPreValidator(PreValidationConfig(rate_limiting_enabled=False))
        pipeline = SubmissionValidationPipeline(
            make_oracle(confidence=0.99), recorder, prevalidator=prevalidator
        )

        outcome = await pipeline.validate(submission, challenge, history, now=now)

        assert outcome.decision.final_decision == Decision.REJECTED
        assert outcome.decision.review_reason.startswith("Fraud detected:")
        assert "Exceeded maximum daily submissions" in outcome.decision.review_reason

    @pytest.mark.asyncio
    async def test_duplicate_rejected_before_oracle(
        self, make_submission, challenge, now, make_oracle, recorder
    ) -> None:
        approved = make_submission(
            id="sub_old",
            submitted_at=now - timedelta(days=2),
            verification_status=VerificationStatus.APPROVED,
        )
        history = UserSubmissionHistory.from_submissions([approved], user_id="user_1")
        oracle = make_oracle(confidence=0.99)
        pipeline = SubmissionValidationPipeline(oracle, recorder)

        outcome = await pipeline.validate(make_submission(), challenge, history, now=now)

        assert outcome.decision.final_decision == Decision.REJECTED
        assert "DUPLICATE_SUBMISSION" in [e.code for e in outcome.pre_validation.errors]
        assert outcome.fraud_verdict is None
        oracle.validate_proof.assert_not_called()

    @pytest.mark.asyncio
    async def test_too_far_reports_distance(
        self, make_submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=45.5331, longitude=-122.6812, accuracy_meters=8, captured_at=now)
        )
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.REJECTED
        assert "1112m" in outcome.decision.review_reason

    @pytest.mark.asyncio
    async def test_oracle_error_goes_to_manual_review(
        self, submission, challenge, empty_history, now, recorder
    ) -> None:
        oracle = AsyncMock()
        oracle.validate_proof.side_effect = OracleError("Oracle returned 500", status_code=500)
        pipeline = SubmissionValidationPipeline(oracle, recorder)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.MANUAL_REVIEW
        assert outcome.decision.confidence == 0.0
        assert outcome.decision.review_reason.startswith("System error during validation")

    @pytest.mark.asyncio
    async def test_internal_failure_goes_to_manual_review(
        self, submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)

        with patch("proof_validation.pipeline.decide", side_effect=RuntimeError("boom")):
            outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.MANUAL_REVIEW
        assert outcome.decision.review_reason == "System error during validation: boom"

    @pytest.mark.asyncio
    async def test_soft_fraud_signal_adds_warning(
        self, make_submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=45.5233, longitude=-122.6812, accuracy_meters=150, captured_at=now)
        )
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        # "Poor GPS accuracy" is a soft signal: medium risk, still valid
        assert outcome.fraud_verdict.is_valid
        assert "FRAUD_WARNING" in [w.code for w in outcome.warnings]

    @pytest.mark.asyncio
    async def test_metrics_are_recorded(
        self, submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(confidence=0.9), recorder)

        await pipeline.validate(submission, challenge, empty_history, now=now)
        snapshot = await recorder.snapshot()

        assert snapshot.total_submissions == 1
        assert snapshot.approved == 1
        assert snapshot.average_confidence == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_metrics_failure_does_not_change_decision(
        self, submission, challenge, empty_history, now, make_oracle
    ) -> None:
        metrics = AsyncMock()
        metrics.record.side_effect = ConnectionError("metrics store down")
        pipeline = SubmissionValidationPipeline(make_oracle(confidence=0.9), metrics)

        outcome = await pipeline.validate(submission, challenge, empty_history, now=now)

        assert outcome.decision.final_decision == Decision.APPROVED

    @pytest.mark.asyncio
    async def test_status_written_back_to_store(
        self, submission, challenge, empty_history, now, make_oracle, recorder
    ) -> None:
        store = AsyncMock()
        pipeline = SubmissionValidationPipeline(make_oracle(confidence=0.2), recorder, store=store)

        await pipeline.validate(submission, challenge, empty_history, now=now)

        store.update_verification_status.assert_awaited_once_with("sub_1", VerificationStatus.REJECTED)


class TestValidateBatch:
    """Tests for batched validation."""

    @pytest.mark.asyncio
    async def test_order_preserved_and_delay_between_batches(
        self, make_submission, challenge, empty_history, make_oracle, recorder, now
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)
        items = [(make_submission(id=f"sub_{i}"), challenge, empty_history) for i in range(7)]

        with patch("proof_validation.pipeline.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcomes = await pipeline.validate_batch(items, batch_size=3, delay_seconds=1.0, now=now)

        assert [o.submission.id for o in outcomes] == [f"sub_{i}" for i in range(7)]
        assert all(o.decision.final_decision == Decision.APPROVED for o in outcomes)
        # 3 batches, 2 gaps
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_single_batch_does_not_sleep(
        self, make_submission, challenge, empty_history, make_oracle, recorder, now
    ) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)
        items = [(make_submission(id=f"sub_{i}"), challenge, empty_history) for i in range(5)]

        with patch("proof_validation.pipeline.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcomes = await pipeline.validate_batch(items, now=now)

        assert len(outcomes) == 5
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, make_oracle, recorder) -> None:
        pipeline = SubmissionValidationPipeline(make_oracle(), recorder)

        with pytest.raises(ValueError):
            await pipeline.validate_batch([], batch_size=0)
