"""Proof validation service configuration using Pydantic Settings."""

from dataclasses import dataclass

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class FraudRules:
    """Thresholds used by the fraud signal evaluators."""

    # Travel speeds (m/s)
    max_walking_speed: float = 2.5  # ~9 km/h
    max_driving_speed: float = 50.0  # ~180 km/h
    max_flight_speed: float = 250.0  # ~900 km/h

    # Submission timing
    max_daily_submissions: int = 50
    min_submission_interval_seconds: float = 60.0
    regular_interval_tolerance_seconds: float = 5.0
    regular_interval_ratio: float = 0.7
    rapid_interval_ratio: float = 0.5

    # Submission patterns
    proof_type_min_history: int = 10
    proof_type_ratio: float = 0.9
    min_avg_completion_seconds: float = 30.0

    # GPS accuracy (meters)
    good_gps_accuracy: float = 10.0
    poor_gps_accuracy: float = 100.0
    min_plausible_accuracy: float = 1.0

    # Spoofing deny-list tolerance (degrees)
    spoof_tolerance_degrees: float = 0.0001


@dataclass(frozen=True)
class PreValidationConfig:
    """Rules enforced by the submission pre-validator."""

    max_daily_submissions: int = 50
    min_submission_interval_seconds: float = 60.0
    receipt_max_age_hours: float = 24.0
    gps_accuracy_warning_meters: float = 100.0
    min_image_url_length: int = 10
    duplicate_prevention_enabled: bool = True
    rate_limiting_enabled: bool = True
    photo_validation_enabled: bool = True


class Settings(BaseSettings):
    """Proof validation service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROOF_VALIDATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server settings
    service_name: str = "proof-validation"
    host: str = "0.0.0.0"
    port: int = 8003

    # Oracle (hosted image classifier) settings
    oracle_url: str = "http://localhost:8002"
    oracle_api_key: str = ""
    oracle_timeout_seconds: float = 30.0

    # Decision thresholds
    auto_approve_threshold: float = 0.85
    auto_reject_threshold: float = 0.30

    # Batch processing (backpressure for the oracle's rate limits)
    batch_size: int = 5
    batch_delay_seconds: float = 1.0

    # Metrics
    metrics_retention_seconds: int = 86400

    # Pre-validator rules
    max_daily_submissions: int = 50
    min_submission_interval_seconds: float = 60.0
    receipt_max_age_hours: float = 24.0
    gps_accuracy_warning_meters: float = 100.0
    duplicate_prevention_enabled: bool = True
    rate_limiting_enabled: bool = True
    photo_validation_enabled: bool = True

    # Fraud engine rules (independent of the pre-validator limits)
    fraud_max_daily_submissions: int = 50
    fraud_min_submission_interval_seconds: float = 60.0

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log_level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v):
        if v < 1:
            raise ValueError(f"batch_size must be >= 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_threshold_order(self):
        """Ensure auto_reject_threshold < auto_approve_threshold."""
        if self.auto_reject_threshold >= self.auto_approve_threshold:
            raise ValueError(
                f"auto_reject_threshold ({self.auto_reject_threshold}) must be < "
                f"auto_approve_threshold ({self.auto_approve_threshold})"
            )
        return self

    def fraud_rules(self) -> FraudRules:
        """Build the fraud evaluator rules from settings."""
        return FraudRules(
            max_daily_submissions=self.fraud_max_daily_submissions,
            min_submission_interval_seconds=self.fraud_min_submission_interval_seconds,
        )

    def prevalidation_config(self) -> PreValidationConfig:
        """Build the pre-validator rules from settings."""
        return PreValidationConfig(
            max_daily_submissions=self.max_daily_submissions,
            min_submission_interval_seconds=self.min_submission_interval_seconds,
            receipt_max_age_hours=self.receipt_max_age_hours,
            gps_accuracy_warning_meters=self.gps_accuracy_warning_meters,
            duplicate_prevention_enabled=self.duplicate_prevention_enabled,
            rate_limiting_enabled=self.rate_limiting_enabled,
            photo_validation_enabled=self.photo_validation_enabled,
        )


settings = Settings()
