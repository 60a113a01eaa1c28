"""
Fraud signal evaluators.

Each check is a pure function of (submission, history, challenge location)
returning an EvaluationResult. Checks share no state and may run
concurrently.
"""

from collections import Counter
from datetime import timedelta
from typing import Callable

from ..config import FraudRules
from ..geo import distance_meters, speed_meters_per_second, validate_coordinate
from ..models import EvaluationResult, GPSFix, SubmissionRecord, UserSubmissionHistory

DEFAULT_RULES = FraudRules()

# Coordinates commonly hard-coded by spoofing apps and emulators
COMMON_SPOOFING_COORDINATES = [
    (0.0, 0.0),  # Null Island
    (37.7749, -122.4194),  # San Francisco
    (40.7128, -74.0060),  # New York
    (51.5074, -0.1278),  # London
]

DAILY_WINDOW = timedelta(hours=24)

FraudCheck = Callable[
    [SubmissionRecord, UserSubmissionHistory, GPSFix, FraudRules], EvaluationResult
]


def _prior_submissions(
    submission: SubmissionRecord, history: UserSubmissionHistory
) -> list[SubmissionRecord]:
    """History without the submission under evaluation."""
    return [s for s in history.submissions if s.id != submission.id]


def is_common_spoofing_coordinate(
    fix: GPSFix, tolerance: float = DEFAULT_RULES.spoof_tolerance_degrees
) -> bool:
    """Check if a fix matches a well-known default/spoofing coordinate."""
    return any(
        abs(fix.latitude - lat) < tolerance and abs(fix.longitude - lon) < tolerance
        for lat, lon in COMMON_SPOOFING_COORDINATES
    )


# =============================================================================
# 1. Location plausibility
# =============================================================================


def check_location_plausibility(
    submission: SubmissionRecord,
    history: UserSubmissionHistory,
    challenge_location: GPSFix,
    rules: FraudRules = DEFAULT_RULES,
) -> EvaluationResult:
    """Validate the reported fix against known spoofing signatures."""
    fix = submission.gps_fix
    validation = validate_coordinate(fix)
    if not validation.is_valid:
        return EvaluationResult(
            passed=False,
            confidence=0.0,
            details={"errors": validation.errors},
            reason="Invalid GPS coordinates",
        )

    distance = distance_meters(fix, challenge_location)

    # Real receivers never land exactly on the target
    if (
        fix.latitude == challenge_location.latitude
        and fix.longitude == challenge_location.longitude
    ):
        return EvaluationResult(
            passed=False,
            confidence=0.9,
            details={"distance": distance, "exact_match": True},
            reason="Exact coordinate match suggests GPS spoofing",
        )

    if fix.accuracy_meters is not None and fix.accuracy_meters < rules.min_plausible_accuracy:
        return EvaluationResult(
            passed=False,
            confidence=0.8,
            details={"accuracy": fix.accuracy_meters},
            reason="Unrealistically high GPS accuracy",
        )

    if is_common_spoofing_coordinate(fix, rules.spoof_tolerance_degrees):
        return EvaluationResult(
            passed=False,
            confidence=0.95,
            details={"latitude": fix.latitude, "longitude": fix.longitude},
            reason="Common GPS spoofing coordinate detected",
        )

    return EvaluationResult(
        passed=True,
        confidence=0.8,
        details={"distance": distance, "accuracy": fix.accuracy_meters},
    )


# =============================================================================
# 2. Travel speed
# =============================================================================


def classify_travel_mode(speed: float, rules: FraudRules = DEFAULT_RULES) -> str:
    """Map a speed in m/s to the fastest plausible way of covering it."""
    if speed <= rules.max_walking_speed:
        return "walking"
    if speed <= rules.max_driving_speed:
        return "driving"
    if speed <= rules.max_flight_speed:
        return "flight"
    return "impossible"


def check_travel_speed(
    submission: SubmissionRecord,
    history: UserSubmissionHistory,
    challenge_location: GPSFix,
    rules: FraudRules = DEFAULT_RULES,
) -> EvaluationResult:
    """Compare the current fix with the user's most recent prior submission."""
    prior = [s for s in _prior_submissions(submission, history) if s.gps_fix is not None]
    if not prior:
        return EvaluationResult(
            passed=True,
            confidence=0.5,
            details={"note": "No previous submissions to compare"},
        )

    last = max(prior, key=lambda s: s.submitted_at)
    current_fix = submission.gps_fix
    if current_fix is None:
        return EvaluationResult(
            passed=True,
            confidence=0.3,
            details={"note": "Current submission has no GPS fix"},
        )

    speed = speed_meters_per_second(last.gps_fix, current_fix)
    if speed is None:
        return EvaluationResult(
            passed=True,
            confidence=0.3,
            details={"note": "Could not calculate speed"},
        )

    distance = distance_meters(last.gps_fix, current_fix)
    elapsed = (current_fix.captured_at - last.gps_fix.captured_at).total_seconds()
    details = {
        "speed": speed,
        "distance": distance,
        "time_diff": elapsed,
        "travel_mode": classify_travel_mode(speed, rules),
    }

    if speed > rules.max_flight_speed:
        return EvaluationResult(
            passed=False,
            confidence=0.95,
            details={**details, "max_speed": rules.max_flight_speed},
            reason="Impossible travel speed detected",
        )

    if speed > rules.max_driving_speed:
        return EvaluationResult(
            passed=True,
            confidence=0.4,
            details={**details, "suspicious": True},
            reason="High travel speed detected",
        )

    return EvaluationResult(passed=True, confidence=0.8, details=details)


# =============================================================================
# 3. Submission timing
# =============================================================================


def submission_intervals(submissions: list[SubmissionRecord]) -> list[float]:
    """Seconds between consecutive submissions, oldest first."""
    ordered = sorted(submissions, key=lambda s: s.submitted_at)
    return [
        (later.submitted_at - earlier.submitted_at).total_seconds()
        for earlier, later in zip(ordered, ordered[1:])
    ]


def detect_timing_patterns(intervals: list[float], rules: FraudRules = DEFAULT_RULES) -> list[str]:
    """
    Find automation signatures in a sequence of submission intervals.

    Regular intervals and rapid submissions are independent signals; both
    are reported when both are present.
    """
    if len(intervals) < 3:
        return []

    patterns = []

    pairs = list(zip(intervals, intervals[1:]))
    near_identical = sum(
        1 for prev, curr in pairs
        if abs(curr - prev) <= rules.regular_interval_tolerance_seconds
    )
    if near_identical >= rules.regular_interval_ratio * len(pairs):
        patterns.append("Regular interval pattern suggests automation")

    short = sum(1 for i in intervals if i < rules.min_submission_interval_seconds)
    if short > rules.rapid_interval_ratio * len(intervals):
        patterns.append("Many rapid submissions detected")

    return patterns


def check_submission_timing(
    submission: SubmissionRecord,
    history: UserSubmissionHistory,
    challenge_location: GPSFix,
    rules: FraudRules = DEFAULT_RULES,
) -> EvaluationResult:
    """Check daily volume, minimum spacing and interval regularity."""
    now = submission.submitted_at
    prior = _prior_submissions(submission, history)

    recent = [s for s in prior if s.submitted_at >= now - DAILY_WINDOW]
    if len(recent) >= rules.max_daily_submissions:
        return EvaluationResult(
            passed=False,
            confidence=0.9,
            details={
                "daily_submissions": len(recent),
                "max_allowed": rules.max_daily_submissions,
            },
            reason="Exceeded maximum daily submissions",
        )

    last_at = history.last_submission_before(submission)
    since_last = (now - last_at).total_seconds() if last_at is not None else None
    if since_last is not None and since_last < rules.min_submission_interval_seconds:
        return EvaluationResult(
            passed=False,
            confidence=0.8,
            details={
                "time_since_last_submission": since_last,
                "min_interval": rules.min_submission_interval_seconds,
            },
            reason="Submissions too close together",
        )

    intervals = submission_intervals(prior)
    patterns = detect_timing_patterns(intervals, rules)
    if patterns:
        return EvaluationResult(
            passed=True,
            confidence=0.4,
            details={"intervals": intervals, "patterns": patterns},
            reason=f"Suspicious timing pattern detected: {'; '.join(patterns)}",
        )

    return EvaluationResult(
        passed=True,
        confidence=0.8,
        details={
            "daily_submissions": len(recent),
            "time_since_last_submission": since_last,
        },
    )


# =============================================================================
# 4. Submission pattern
# =============================================================================


def average_completion_seconds(submissions: list[SubmissionRecord]) -> float | None:
    """Mean time from opening a challenge to submitting, where known."""
    times = [
        s.completion_seconds for s in submissions
        if s.completion_seconds is not None and s.completion_seconds >= 0
    ]
    if not times:
        return None
    return sum(times) / len(times)


def check_submission_pattern(
    submission: SubmissionRecord,
    history: UserSubmissionHistory,
    challenge_location: GPSFix,
    rules: FraudRules = DEFAULT_RULES,
) -> EvaluationResult:
    """Detect duplicate attempts and automation-like usage patterns."""
    prior = _prior_submissions(submission, history)

    duplicates = [s for s in prior if s.challenge_id == submission.challenge_id]
    if duplicates:
        return EvaluationResult(
            passed=False,
            confidence=0.9,
            details={"duplicate_attempts": len(duplicates)},
            reason="Duplicate challenge submission detected",
        )

    total = max(history.total_submissions, len(prior))
    type_counts = Counter(s.proof_type for s in prior)
    same_type = type_counts.get(submission.proof_type, 0)
    proof_type_ratio = same_type / total if total > 0 else 0.0

    if total >= rules.proof_type_min_history and proof_type_ratio > rules.proof_type_ratio:
        return EvaluationResult(
            passed=True,
            confidence=0.5,
            details={
                "proof_type_ratio": proof_type_ratio,
                "same_proof_type_count": same_type,
                "total_submissions": total,
            },
            reason="Suspicious proof type pattern",
        )

    avg_completion = average_completion_seconds(prior)
    if avg_completion is not None and avg_completion < rules.min_avg_completion_seconds:
        return EvaluationResult(
            passed=True,
            confidence=0.4,
            details={"avg_completion_time": avg_completion},
            reason="Unusually fast completion times",
        )

    return EvaluationResult(
        passed=True,
        confidence=0.8,
        details={
            "proof_type_ratio": proof_type_ratio,
            "avg_completion_time": avg_completion,
            "duplicate_attempts": 0,
        },
    )


# =============================================================================
# 5. GPS accuracy
# =============================================================================


def check_gps_accuracy(
    submission: SubmissionRecord,
    history: UserSubmissionHistory,
    challenge_location: GPSFix,
    rules: FraudRules = DEFAULT_RULES,
) -> EvaluationResult:
    """Grade the reported GPS accuracy."""
    accuracy = submission.gps_fix.accuracy_meters if submission.gps_fix else None

    if accuracy is None:
        return EvaluationResult(
            passed=True,
            confidence=0.3,
            details={"note": "No accuracy information provided"},
        )

    if accuracy > rules.poor_gps_accuracy:
        return EvaluationResult(
            passed=True,
            confidence=0.4,
            details={"accuracy": accuracy, "threshold": rules.poor_gps_accuracy},
            reason="Poor GPS accuracy",
        )

    if accuracy <= rules.good_gps_accuracy:
        return EvaluationResult(passed=True, confidence=0.9, details={"accuracy": accuracy})

    return EvaluationResult(passed=True, confidence=0.7, details={"accuracy": accuracy})


# Evaluation order is significant: the aggregator keeps reasons in this order
FRAUD_CHECKS: list[tuple[str, FraudCheck]] = [
    ("location", check_location_plausibility),
    ("travel_speed", check_travel_speed),
    ("timing", check_submission_timing),
    ("pattern", check_submission_pattern),
    ("gps_accuracy", check_gps_accuracy),
]
