"""
Core module for the math grading pipeline.

Exports key models and exceptions for easy access.
"""

from mathgrade.core.models import (
    AnswerKeyEntry,
    BatchReport,
    ComparisonResult,
    Difficulty,
    GradingOptions,
    GradingRequest,
    GradingResult,
    ImageInput,
    ImageMode,
    InterpretationOption,
    OCRResult,
    ProviderResponse,
    QuestionResult,
    QueueItem,
    QueueStats,
    QueueStatus,
    ReadingConflict,
    SolverResult,
    VerificationMethod,
    VerificationResult,
)

from mathgrade.core.exceptions import (
    MathGradeError,
    ConfigurationError,
    ProviderError,
    APIConnectionError,
    APITimeoutError,
    APIRateLimitError,
    APIResponseError,
    AuthenticationError,
    ParseError,
    VerificationError,
    QueueError,
    QueueRaceLoss,
    QueueExhausted,
    JobNotFoundError,
)

__all__ = [
    # Models
    'AnswerKeyEntry',
    'BatchReport',
    'ComparisonResult',
    'Difficulty',
    'GradingOptions',
    'GradingRequest',
    'GradingResult',
    'ImageInput',
    'ImageMode',
    'InterpretationOption',
    'OCRResult',
    'ProviderResponse',
    'QuestionResult',
    'QueueItem',
    'QueueStats',
    'QueueStatus',
    'ReadingConflict',
    'SolverResult',
    'VerificationMethod',
    'VerificationResult',
    # Exceptions
    'MathGradeError',
    'ConfigurationError',
    'ProviderError',
    'APIConnectionError',
    'APITimeoutError',
    'APIRateLimitError',
    'APIResponseError',
    'AuthenticationError',
    'ParseError',
    'VerificationError',
    'QueueError',
    'QueueRaceLoss',
    'QueueExhausted',
    'JobNotFoundError',
]
