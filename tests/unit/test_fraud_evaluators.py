"""Unit tests for the fraud signal evaluators."""

from datetime import timedelta

import pytest

from proof_validation.config import FraudRules
from proof_validation.fraud.evaluators import (
    check_gps_accuracy,
    check_location_plausibility,
    check_submission_pattern,
    check_submission_timing,
    check_travel_speed,
    classify_travel_mode,
    detect_timing_patterns,
)
from proof_validation.models import GPSFix, ProofType, UserSubmissionHistory


class TestLocationPlausibility:
    """Tests for spoofing signatures in the reported fix."""

    def test_plausible_fix_passes(self, submission, empty_history, target) -> None:
        result = check_location_plausibility(submission, empty_history, target)

        assert result.passed
        assert result.confidence == 0.8
        assert result.reason is None

    def test_exact_target_match_fails(self, make_submission, empty_history, target) -> None:
        """A fix exactly on the target is treated as spoofed."""
        submission = make_submission(
            gps_fix=GPSFix(latitude=target.latitude, longitude=target.longitude, accuracy_meters=5)
        )

        result = check_location_plausibility(submission, empty_history, target)

        assert not result.passed
        assert result.confidence >= 0.9
        assert result.reason == "Exact coordinate match suggests GPS spoofing"

    def test_sub_meter_accuracy_fails(self, make_submission, empty_history, target) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=target.latitude + 0.0002, longitude=target.longitude, accuracy_meters=0.5)
        )

        result = check_location_plausibility(submission, empty_history, target)

        assert not result.passed
        assert result.reason == "Unrealistically high GPS accuracy"

    def test_zero_accuracy_is_suspicious(self, make_submission, empty_history, target) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=target.latitude + 0.0002, longitude=target.longitude, accuracy_meters=0)
        )

        result = check_location_plausibility(submission, empty_history, target)

        assert not result.passed

    @pytest.mark.parametrize(
        "lat,lng",
        [(0.0, 0.0), (37.7749, -122.4194), (40.71285, -74.00605), (51.5074, -0.1278)],
    )
    def test_common_spoofing_coordinates_fail(
        self, lat, lng, make_submission, empty_history, target
    ) -> None:
        submission = make_submission(gps_fix=GPSFix(latitude=lat, longitude=lng, accuracy_meters=10))

        result = check_location_plausibility(submission, empty_history, target)

        assert not result.passed
        assert result.confidence == 0.95
        assert result.reason == "Common GPS spoofing coordinate detected"

    def test_invalid_coordinates_fail(self, make_submission, empty_history, target) -> None:
        submission = make_submission(gps_fix=GPSFix(latitude=120.0, longitude=0.5))

        result = check_location_plausibility(submission, empty_history, target)

        assert not result.passed
        assert result.confidence == 0.0
        assert result.reason == "Invalid GPS coordinates"


class TestTravelSpeed:
    """Tests for impossible travel between submissions."""

    def test_no_history_passes(self, submission, empty_history, target) -> None:
        result = check_travel_speed(submission, empty_history, target)

        assert result.passed
        assert result.confidence == 0.5

    def test_high_speed_is_soft_flag(self, make_submission, make_history, now, target) -> None:
        """~166 m/s is suspicious but below the flight threshold."""
        history = make_history([now - timedelta(minutes=1)])
        previous = history.submissions[0].gps_fix
        submission = make_submission(
            gps_fix=GPSFix(
                latitude=previous.latitude + 0.08993,
                longitude=previous.longitude,
                accuracy_meters=8,
                captured_at=now,
            )
        )

        result = check_travel_speed(submission, history, target)

        assert result.passed
        assert result.confidence == 0.4
        assert result.reason == "High travel speed detected"
        assert result.details["travel_mode"] == "flight"

    def test_impossible_speed_fails(self, make_submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(minutes=1)])
        submission = make_submission(
            gps_fix=GPSFix(latitude=47.6062, longitude=-122.3321, accuracy_meters=8, captured_at=now)
        )

        result = check_travel_speed(submission, history, target)

        assert not result.passed
        assert result.confidence == 0.95
        assert result.reason == "Impossible travel speed detected"

    def test_walking_speed_passes(self, make_submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(hours=1)])

        result = check_travel_speed(make_submission(), history, target)

        assert result.passed
        assert result.confidence == 0.8
        assert result.details["travel_mode"] == "walking"

    def test_uncomputable_speed_passes_low(self, make_submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(hours=1)])
        submission = make_submission(
            gps_fix=GPSFix(latitude=45.53, longitude=-122.68, accuracy_meters=8)
        )

        result = check_travel_speed(submission, history, target)

        assert result.passed
        assert result.confidence == 0.3

    def test_travel_mode_boundaries(self) -> None:
        assert classify_travel_mode(2.5) == "walking"
        assert classify_travel_mode(50) == "driving"
        assert classify_travel_mode(250) == "flight"
        assert classify_travel_mode(250.1) == "impossible"


class TestSubmissionTiming:
    """Tests for volume and cadence signals."""

    def test_fresh_user_passes(self, submission, empty_history, target) -> None:
        result = check_submission_timing(submission, empty_history, target)

        assert result.passed
        assert result.confidence == 0.8

    def test_daily_cap_fails(self, submission, make_history, now, target) -> None:
        """50 submissions in the last 24h is a hard failure."""
        times = [now - timedelta(hours=23) + timedelta(minutes=20 * i) for i in range(50)]
        history = make_history(times)

        result = check_submission_timing(submission, history, target)

        assert not result.passed
        assert result.confidence == 0.9
        assert result.reason == "Exceeded maximum daily submissions"

    def test_too_close_together_fails(self, submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(seconds=30)])

        result = check_submission_timing(submission, history, target)

        assert not result.passed
        assert result.confidence == 0.8
        assert result.reason == "Submissions too close together"

    def test_current_submission_in_history_is_ignored(self, submission, target) -> None:
        """A history projected after storing the pending record still passes."""
        history = UserSubmissionHistory.from_submissions([submission], user_id="user_1")

        result = check_submission_timing(submission, history, target)

        assert result.passed
        assert result.confidence == 0.8

    def test_stored_last_submission_time_still_counts(self, submission, now, target) -> None:
        history = UserSubmissionHistory(
            user_id="user_1", last_submission_at=now - timedelta(seconds=30), total_submissions=1
        )

        result = check_submission_timing(submission, history, target)

        assert not result.passed
        assert result.reason == "Submissions too close together"

    def test_regular_intervals_are_soft_flag(self, submission, make_history, now, target) -> None:
        times = [now - timedelta(hours=5) + timedelta(minutes=10 * i) for i in range(5)]
        history = make_history(times)

        result = check_submission_timing(submission, history, target)

        assert result.passed
        assert result.confidence == 0.4
        assert "Regular interval pattern suggests automation" in result.reason

    def test_configured_rules_are_used(self, submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(minutes=3)])
        rules = FraudRules(min_submission_interval_seconds=300)

        result = check_submission_timing(submission, history, target, rules)

        assert not result.passed


class TestTimingPatterns:
    """Tests for interval pattern detection."""

    def test_too_few_intervals(self) -> None:
        assert detect_timing_patterns([60.0, 60.0]) == []

    def test_regular_and_rapid_are_independent(self) -> None:
        """Both signals are reported when both are present."""
        patterns = detect_timing_patterns([30.0, 31.0, 30.0, 32.0])

        assert patterns == [
            "Regular interval pattern suggests automation",
            "Many rapid submissions detected",
        ]

    def test_rapid_only(self) -> None:
        patterns = detect_timing_patterns([10.0, 45.0, 5.0, 3600.0])

        assert patterns == ["Many rapid submissions detected"]

    def test_irregular_human_cadence(self) -> None:
        assert detect_timing_patterns([600.0, 3600.0, 1200.0, 7200.0]) == []


class TestSubmissionPattern:
    """Tests for duplicate and usage pattern signals."""

    def test_duplicate_challenge_fails(self, make_submission, now, target) -> None:
        earlier = make_submission(id="past_0", submitted_at=now - timedelta(days=1))
        history = UserSubmissionHistory.from_submissions([earlier], user_id="user_1")

        result = check_submission_pattern(make_submission(), history, target)

        assert not result.passed
        assert result.confidence == 0.9
        assert result.reason == "Duplicate challenge submission detected"

    def test_single_proof_type_is_soft_flag(self, submission, make_history, now, target) -> None:
        history = make_history([now - timedelta(days=i + 1) for i in range(10)])

        result = check_submission_pattern(submission, history, target)

        assert result.passed
        assert result.confidence == 0.5
        assert result.reason == "Suspicious proof type pattern"

    def test_mixed_proof_types_pass(self, make_submission, make_history, now, target) -> None:
        history = make_history(
            [now - timedelta(days=i + 1) for i in range(10)], proof_type=ProofType.RECEIPT
        )

        result = check_submission_pattern(make_submission(), history, target)

        assert result.passed
        assert result.confidence == 0.8

    def test_fast_completion_is_soft_flag(self, make_submission, now, target) -> None:
        past = [
            make_submission(
                id=f"past_{i}",
                challenge_id=f"ch_past_{i}",
                submitted_at=now - timedelta(days=i + 1),
                started_at=now - timedelta(days=i + 1, seconds=10),
            )
            for i in range(3)
        ]
        history = UserSubmissionHistory.from_submissions(past, user_id="user_1")

        result = check_submission_pattern(make_submission(), history, target)

        assert result.passed
        assert result.confidence == 0.4
        assert result.reason == "Unusually fast completion times"

    def test_current_submission_in_history_is_ignored(self, submission, target) -> None:
        history = UserSubmissionHistory.from_submissions([submission], user_id="user_1")

        result = check_submission_pattern(submission, history, target)

        assert result.passed


class TestGpsAccuracy:
    """Tests for reported accuracy grading."""

    @pytest.mark.parametrize(
        "accuracy,confidence",
        [(None, 0.3), (5, 0.9), (10, 0.9), (50, 0.7), (100, 0.7), (150, 0.4)],
    )
    def test_accuracy_grades(self, accuracy, confidence, make_submission, empty_history, target) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=45.5233, longitude=-122.6812, accuracy_meters=accuracy)
        )

        result = check_gps_accuracy(submission, empty_history, target)

        assert result.passed
        assert result.confidence == confidence

    def test_poor_accuracy_reason(self, make_submission, empty_history, target) -> None:
        submission = make_submission(
            gps_fix=GPSFix(latitude=45.5233, longitude=-122.6812, accuracy_meters=250)
        )

        result = check_gps_accuracy(submission, empty_history, target)

        assert result.reason == "Poor GPS accuracy"
