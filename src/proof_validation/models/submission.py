"""Submission, challenge and history models consumed by the pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix naive and aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ProofType(str, Enum):
    """Kinds of proof a user can submit for a challenge."""

    PHOTO = "photo"
    RECEIPT = "receipt"
    GPS_CHECKIN = "gps_checkin"
    LOCATION_QUESTION = "location_question"


class VerificationStatus(str, Enum):
    """Verification status stored on a submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChallengeStatus(str, Enum):
    """Challenge lifecycle states."""

    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"


class GPSFix(BaseModel):
    """A single GPS reading. Ranges are checked by geo.validate_coordinate."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., description="Latitude in decimal degrees")
    longitude: float = Field(..., description="Longitude in decimal degrees")
    accuracy_meters: float | None = Field(default=None, description="Reported accuracy radius")
    captured_at: UtcDatetime | None = Field(default=None, description="When the fix was taken")


# =============================================================================
# Proof payloads (tagged on `kind`)
# =============================================================================


class PhotoProof(BaseModel):
    """Photo of the business (signage or interior)."""

    kind: Literal["photo"] = "photo"
    image_url: str = ""
    has_business_signage: bool = False
    has_interior_view: bool = False
    gps_embedded: bool = False


class ReceiptProof(BaseModel):
    """Photo of a purchase receipt."""

    kind: Literal["receipt"] = "receipt"
    image_url: str = ""
    business_name: str = ""
    issued_at: UtcDatetime | None = None
    amount: float | None = Field(default=None, ge=0)


class GpsCheckinProof(BaseModel):
    """Plain GPS check-in, optionally with a location photo."""

    kind: Literal["gps_checkin"] = "gps_checkin"
    coordinates: GPSFix | None = None
    checked_in_at: UtcDatetime | None = None
    image_url: str | None = None


class QuestionProof(BaseModel):
    """Answer to a question only answerable on site."""

    kind: Literal["location_question"] = "location_question"
    question: str = ""
    answer: str = ""
    correct_answer: str | None = None
    image_url: str | None = None


ProofPayload = Annotated[
    Union[PhotoProof, ReceiptProof, GpsCheckinProof, QuestionProof],
    Field(discriminator="kind"),
]


# =============================================================================
# Submission and challenge
# =============================================================================


class SubmissionRecord(BaseModel):
    """
    A user's proof submission for one challenge.

    Identity fields are optional so the pre-validator can report every
    missing field at once instead of failing on construction.
    """

    id: str = Field(..., description="Submission identifier")
    challenge_id: str | None = Field(default=None, description="Challenge identifier")
    user_id: str | None = Field(default=None, description="Submitting user")
    proof_type: ProofType | None = None
    gps_fix: GPSFix | None = None
    submitted_at: UtcDatetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: UtcDatetime | None = Field(
        default=None, description="When the user opened the challenge"
    )
    proof: ProofPayload | None = None
    verification_status: VerificationStatus = VerificationStatus.PENDING

    @property
    def image_url(self) -> str | None:
        """Proof image, if the payload carries one."""
        if self.proof is None:
            return None
        return self.proof.image_url or None

    @property
    def completion_seconds(self) -> float | None:
        """Seconds between opening the challenge and submitting."""
        if self.started_at is None:
            return None
        return (self.submitted_at - self.started_at).total_seconds()


class ChallengeLocation(BaseModel):
    """Where a challenge must be completed."""

    coordinates: GPSFix
    verification_radius_meters: float = Field(default=100.0, gt=0)
    business_name: str


class ProofRequirements(BaseModel):
    """Which proof types a challenge accepts."""

    allowed_types: list[ProofType] = Field(default_factory=lambda: [ProofType.PHOTO])


class Challenge(BaseModel):
    """A challenge at a partner business. Read-only input to the pipeline."""

    model_config = ConfigDict(frozen=True)

    id: str
    location: ChallengeLocation
    proof_requirements: ProofRequirements = Field(default_factory=ProofRequirements)
    start_date: UtcDatetime
    end_date: UtcDatetime
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    max_completions: int | None = Field(default=None, ge=0)
    completion_count: int = Field(default=0, ge=0)


class UserSubmissionHistory(BaseModel):
    """Read-only projection over one user's past submissions."""

    user_id: str | None = None
    submissions: list[SubmissionRecord] = Field(default_factory=list)
    last_submission_at: UtcDatetime | None = None
    total_submissions: int = Field(default=0, ge=0)
    suspicious_activity_count: int = Field(default=0, ge=0)

    @classmethod
    def from_submissions(
        cls,
        submissions: list[SubmissionRecord],
        user_id: str | None = None,
        suspicious_activity_count: int = 0,
    ) -> "UserSubmissionHistory":
        """Derive the projection from a list of stored submissions."""
        last = max((s.submitted_at for s in submissions), default=None)
        return cls(
            user_id=user_id,
            submissions=list(submissions),
            last_submission_at=last,
            total_submissions=len(submissions),
            suspicious_activity_count=suspicious_activity_count,
        )

    def last_submission_before(self, submission: SubmissionRecord) -> datetime | None:
        """
        Time of the latest submission other than ``submission``.

        A stored ``last_submission_at`` at or after the submission's own time
        is the submission itself and is ignored.
        """
        candidates = [s.submitted_at for s in self.submissions if s.id != submission.id]
        if self.last_submission_at is not None and self.last_submission_at < submission.submitted_at:
            candidates.append(self.last_submission_at)
        return max(candidates, default=None)

    def chronological(self) -> list[SubmissionRecord]:
        """Submissions ordered oldest first (a copy; the history is not mutated)."""
        return sorted(self.submissions, key=lambda s: s.submitted_at)
