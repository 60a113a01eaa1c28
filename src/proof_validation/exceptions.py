"""Custom exceptions for the proof validation pipeline."""


class ProofValidationError(Exception):
    """Base exception for proof validation errors."""

    pass


class OracleError(ProofValidationError):
    """Raised when the image classification oracle fails or returns garbage."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
    ):
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(self.message)


class ThresholdInvariantError(ProofValidationError):
    """Raised when decision thresholds break their ordering or bounds."""

    def __init__(self, approve: float, reject: float, message: str | None = None):
        self.approve = approve
        self.reject = reject
        self.message = message or (
            f"auto_reject ({reject}) must be lower than auto_approve ({approve})"
        )
        super().__init__(self.message)
