"""
Result models produced inside a validation call.

These define the contract between:
- Fraud evaluators and the aggregator
- The oracle adapter and the decision policy
- The pre-validator and the caller
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .submission import SubmissionRecord


class EvaluationResult(BaseModel):
    """Outcome of a single fraud signal check."""

    passed: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    details: dict[str, Any] = Field(default_factory=dict)
    reason: str | None = None


class FraudRisk(str, Enum):
    """Fraud risk classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendedAction(str, Enum):
    """Action recommended by the fraud aggregator."""

    APPROVE = "approve"
    REVIEW = "review"
    REJECT = "reject"


class FraudVerdict(BaseModel):
    """Aggregated verdict of the five fraud signal checks."""

    is_valid: bool
    fraud_risk: FraudRisk
    reasons: list[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    recommended_action: RecommendedAction


class ValidationType(str, Enum):
    """What the oracle is asked to look for in the image."""

    BUSINESS_SIGNAGE = "business_signage"
    RECEIPT = "receipt"
    LOCATION_PROOF = "location_proof"


class SuggestedAction(str, Enum):
    """Action suggested by the oracle."""

    APPROVE = "approve"
    REJECT = "reject"
    MANUAL_REVIEW = "manual_review"


class ExpectedLocation(BaseModel):
    lat: float
    lng: float


class OracleRequest(BaseModel):
    """Request payload for the image classification oracle."""

    image_url: str = Field(..., description="URL of the proof image")
    expected_business_name: str = Field(..., description="Business the image should show")
    expected_location: ExpectedLocation
    validation_type: ValidationType


class OracleValidationResult(BaseModel):
    """Response from the image classification oracle."""

    is_valid: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""
    suggested_action: SuggestedAction
    detected_elements: list[str] = Field(default_factory=list)
    degraded: bool = Field(
        default=False,
        description="True when no oracle data is available (error or nothing to score)",
    )


class Decision(str, Enum):
    """Final tri-state outcome."""

    APPROVED = "approved"
    REJECTED = "rejected"
    MANUAL_REVIEW = "manual_review"


class FinalDecision(BaseModel):
    """Decision written back onto the submission."""

    final_decision: Decision
    confidence: float = Field(..., ge=0.0, le=1.0)
    review_reason: str


class ValidationIssue(BaseModel):
    """A single itemised pre-validation error or warning."""

    field: str
    message: str
    code: str


class PreValidationResult(BaseModel):
    """Result of the structural and business-rule gate."""

    is_valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)


class ValidationOutcome(BaseModel):
    """Everything produced by one pipeline call."""

    submission: SubmissionRecord
    decision: FinalDecision
    pre_validation: PreValidationResult
    fraud_verdict: FraudVerdict | None = None
    oracle_result: OracleValidationResult | None = None
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.decision.final_decision == Decision.APPROVED
