"""Fraud signal evaluators, aggregator and engine."""

from .aggregator import aggregate_results, classify_risk
from .engine import FraudDetectionEngine
from .evaluators import (
    FRAUD_CHECKS,
    check_gps_accuracy,
    check_location_plausibility,
    check_submission_pattern,
    check_submission_timing,
    check_travel_speed,
)

__all__ = [
    "aggregate_results",
    "classify_risk",
    "FraudDetectionEngine",
    "FRAUD_CHECKS",
    "check_gps_accuracy",
    "check_location_plausibility",
    "check_submission_pattern",
    "check_submission_timing",
    "check_travel_speed",
]
