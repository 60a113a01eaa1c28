"""
Adapter for the hosted image classification oracle.

The oracle scores a proof image against the expected business and location.
It is a black box: only its request/response contract is relied on.
"""

import json
import logging
from typing import Any, Protocol

import httpx

from .exceptions import OracleError
from .models import (
    Challenge,
    ExpectedLocation,
    OracleRequest,
    OracleValidationResult,
    ProofType,
    SubmissionRecord,
    SuggestedAction,
    ValidationType,
)

logger = logging.getLogger(__name__)

# Proof types that cannot be judged without an image
IMAGE_REQUIRED_PROOF_TYPES = {ProofType.PHOTO, ProofType.RECEIPT}

# Used to derive a suggested action when the oracle omits one
APPROVE_SUGGESTION_CONFIDENCE = 0.8
REJECT_SUGGESTION_CONFIDENCE = 0.3


class ProofOracle(Protocol):
    """Protocol for oracle dependency injection."""

    async def validate_proof(self, request: OracleRequest) -> OracleValidationResult:
        """Score a proof image against the expected business and location."""
        ...


def no_image_result() -> OracleValidationResult:
    """Short-circuit result for an image-based proof without an image."""
    return OracleValidationResult(
        is_valid=False,
        confidence=0.0,
        reason="No image provided",
        suggested_action=SuggestedAction.REJECT,
    )


def degraded_result(reason: str) -> OracleValidationResult:
    """Result used when no oracle data is available."""
    return OracleValidationResult(
        is_valid=False,
        confidence=0.0,
        reason=reason,
        suggested_action=SuggestedAction.MANUAL_REVIEW,
        degraded=True,
    )


def map_proof_type_to_validation_type(proof_type: ProofType | str | None) -> ValidationType:
    """receipt -> receipt, photo -> business_signage, anything else -> location_proof."""
    value = proof_type.value if isinstance(proof_type, ProofType) else proof_type
    if value == ProofType.RECEIPT.value:
        return ValidationType.RECEIPT
    if value == ProofType.PHOTO.value:
        return ValidationType.BUSINESS_SIGNAGE
    return ValidationType.LOCATION_PROOF


def _proof_type_of(submission: SubmissionRecord) -> ProofType | None:
    if submission.proof_type is not None:
        return submission.proof_type
    if submission.proof is not None:
        return ProofType(submission.proof.kind)
    return None


def build_oracle_request(submission: SubmissionRecord, challenge: Challenge) -> OracleRequest:
    """Build the oracle request for a submission's proof image."""
    target = challenge.location.coordinates
    return OracleRequest(
        image_url=submission.image_url or "",
        expected_business_name=challenge.location.business_name,
        expected_location=ExpectedLocation(lat=target.latitude, lng=target.longitude),
        validation_type=map_proof_type_to_validation_type(_proof_type_of(submission)),
    )


def derive_suggested_action(is_valid: bool, confidence: float) -> SuggestedAction:
    if is_valid and confidence > APPROVE_SUGGESTION_CONFIDENCE:
        return SuggestedAction.APPROVE
    if confidence < REJECT_SUGGESTION_CONFIDENCE:
        return SuggestedAction.REJECT
    return SuggestedAction.MANUAL_REVIEW


def parse_oracle_response(body: Any) -> OracleValidationResult:
    """
    Parse an oracle response body.

    Accepts the structured form ``{"is_valid", "confidence", "reason", ...}``
    and the model-text form ``{"result": {"response": "<json>"}}`` where the
    classifier's answer is a JSON document embedded in a string.

    Raises:
        OracleError: If the body cannot be interpreted
    """
    if isinstance(body, dict) and isinstance(body.get("result"), dict) and "response" in body["result"]:
        body = body["result"]["response"]
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise OracleError(f"Oracle returned unparseable text: {e}", retryable=False)
    if not isinstance(body, dict):
        raise OracleError(f"Oracle returned unexpected payload type {type(body).__name__}", retryable=False)

    is_valid = bool(body.get("is_valid", body.get("valid", False)))
    try:
        confidence = float(body.get("confidence", 0.0))
    except (TypeError, ValueError):
        raise OracleError(f"Oracle returned invalid confidence: {body.get('confidence')!r}", retryable=False)
    confidence = max(0.0, min(1.0, confidence))

    try:
        suggested_action = SuggestedAction(body["suggested_action"])
    except (KeyError, ValueError):
        suggested_action = derive_suggested_action(is_valid, confidence)

    return OracleValidationResult(
        is_valid=is_valid,
        confidence=confidence,
        reason=body.get("reason") or "AI analysis completed",
        suggested_action=suggested_action,
        detected_elements=list(body.get("elements", body.get("detected_elements", [])) or []),
    )


class HttpProofOracle:
    """
    Oracle client over HTTP.

    Owns its httpx client unless one is injected (e.g. with a mock transport
    in tests); call close() when the process shuts down.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def validate_proof(self, request: OracleRequest) -> OracleValidationResult:
        """
        Send a proof image to the oracle.

        Raises:
            OracleError: If the oracle is unavailable or returns an error
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/validate",
                json=request.model_dump(mode="json"),
                headers=self._headers(),
            )
            response.raise_for_status()
            body = response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Oracle timeout for {request.image_url}: {e}")
            raise OracleError(f"Oracle timeout after {self.timeout_seconds}s")

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"Oracle error for {request.image_url}: {status_code}")
            # 4xx are client errors, except 429 (rate limited)
            retryable = status_code >= 500 or status_code == 429
            raise OracleError(
                f"Oracle returned {status_code}",
                status_code=status_code,
                retryable=retryable,
            )

        except httpx.RequestError as e:
            logger.error(f"Oracle connection error for {request.image_url}: {e}")
            raise OracleError(f"Failed to connect to oracle: {e}")

        except ValueError as e:
            raise OracleError(f"Oracle returned invalid JSON: {e}", retryable=False)

        result = parse_oracle_response(body)
        logger.info(
            f"Oracle result for {request.image_url}: valid={result.is_valid}, "
            f"confidence={result.confidence:.2f}"
        )
        return result

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()


async def assess_proof(
    oracle: ProofOracle,
    submission: SubmissionRecord,
    challenge: Challenge,
) -> OracleValidationResult:
    """
    Get the oracle's opinion on a submission's proof.

    Never raises: any oracle failure becomes the degraded "no oracle data"
    result so it can never approve a submission.
    """
    if not submission.image_url:
        if _proof_type_of(submission) in IMAGE_REQUIRED_PROOF_TYPES or submission.proof is None:
            return no_image_result()
        return degraded_result("No proof image available for automated review")

    request = build_oracle_request(submission, challenge)
    try:
        return await oracle.validate_proof(request)
    except Exception as e:
        logger.warning(f"Oracle validation failed for submission {submission.id}: {e}")
        return degraded_result(f"AI validation service unavailable: {e}")
