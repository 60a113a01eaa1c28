"""
Shared models for the proof validation pipeline.

Re-exports all models for convenient imports:
    from proof_validation.models import SubmissionRecord, FraudVerdict
"""

from .submission import (
    Challenge,
    ChallengeLocation,
    ChallengeStatus,
    GPSFix,
    GpsCheckinProof,
    PhotoProof,
    ProofPayload,
    ProofRequirements,
    ProofType,
    QuestionProof,
    ReceiptProof,
    SubmissionRecord,
    UserSubmissionHistory,
    VerificationStatus,
)
from .results import (
    Decision,
    EvaluationResult,
    ExpectedLocation,
    FinalDecision,
    FraudRisk,
    FraudVerdict,
    OracleRequest,
    OracleValidationResult,
    PreValidationResult,
    RecommendedAction,
    SuggestedAction,
    ValidationIssue,
    ValidationOutcome,
    ValidationType,
)

__all__ = [
    # Submission inputs
    "Challenge",
    "ChallengeLocation",
    "ChallengeStatus",
    "GPSFix",
    "GpsCheckinProof",
    "PhotoProof",
    "ProofPayload",
    "ProofRequirements",
    "ProofType",
    "QuestionProof",
    "ReceiptProof",
    "SubmissionRecord",
    "UserSubmissionHistory",
    "VerificationStatus",
    # Results
    "Decision",
    "EvaluationResult",
    "ExpectedLocation",
    "FinalDecision",
    "FraudRisk",
    "FraudVerdict",
    "OracleRequest",
    "OracleValidationResult",
    "PreValidationResult",
    "RecommendedAction",
    "SuggestedAction",
    "ValidationIssue",
    "ValidationOutcome",
    "ValidationType",
]
