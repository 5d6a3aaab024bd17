"""
Custom exception hierarchy for the math grading pipeline.

Provides a consistent error handling approach across all modules.
"""


class MathGradeError(Exception):
    """
    Base exception for all grading pipeline errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== Configuration Errors ====================

class ConfigurationError(MathGradeError):
    """
    Error in system configuration.

    Raised when required configuration is missing or invalid.
    """
    pass


# ==================== Provider Errors ====================

class ProviderError(MathGradeError):
    """
    Base error for vision/OCR/solver provider issues.

    The retryable flag tells the provider manager whether another
    attempt against the same provider is worthwhile.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        retryable: bool | None = None,
        provider: str | None = None,
    ):
        super().__init__(message, details)
        if retryable is not None:
            self.retryable = retryable
        self.provider = provider


class APIConnectionError(ProviderError):
    """Raised when connection to a provider fails."""
    retryable = True


class APITimeoutError(ProviderError):
    """Raised when a provider call times out."""
    retryable = True


class APIRateLimitError(ProviderError):
    """Raised when provider rate limit is exceeded."""
    retryable = True


class APIResponseError(ProviderError):
    """Raised when a provider returns an unexpected or invalid response."""
    pass


class AuthenticationError(ProviderError):
    """Raised when a provider rejects the credentials."""
    pass


# ==================== Parsing / Verification Errors ====================

class ParseError(MathGradeError):
    """Raised when model output cannot be decoded into the expected shape."""
    pass


class VerificationError(MathGradeError):
    """Raised when a verification strategy cannot produce a verdict."""
    pass


# ==================== Queue Errors ====================

class QueueError(MathGradeError):
    """
    Base error for processing queue issues.
    """
    pass


class QueueRaceLoss(QueueError):
    """Raised when another worker claimed the selected job first."""
    pass


class QueueExhausted(QueueError):
    """Raised when a job has used up all of its attempts."""
    pass


class JobNotFoundError(QueueError):
    """Raised when a queue item does not exist."""
    pass
