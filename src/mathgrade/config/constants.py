"""
Constants and configuration values for the math grading pipeline.

Defines thresholds, defaults, and system-wide constants.
"""

from typing import Dict, Final, Tuple

# AI Model Configuration
MAX_TOKENS: Final[int] = 4096
TEMPERATURE: Final[float] = 0.1  # Low temperature for deterministic arithmetic

DEFAULT_OPENAI_MODEL: Final[str] = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL: Final[str] = "claude-3-5-sonnet-20241022"
DEFAULT_GROQ_MODEL: Final[str] = "llama-3.2-90b-vision-preview"
DEFAULT_GEMINI_MODEL: Final[str] = "gemini-2.5-flash"

# Provider fallback order (GPT-4o first, best for math)
DEFAULT_FALLBACK_ORDER: Final[Tuple[str, ...]] = ("openai", "anthropic", "groq")
SUPPORTED_VISION_PROVIDERS: Final[Tuple[str, ...]] = (
    "openai", "anthropic", "groq", "openrouter", "gemini"
)

# Retry Configuration
MAX_RETRIES: Final[int] = 3
RETRY_BASE_DELAY: Final[float] = 1.0  # Base delay for exponential backoff (seconds)
RETRY_MAX_DELAY: Final[float] = 30.0

# API Timeouts (in seconds)
PROVIDER_TIMEOUT: Final[float] = 60.0  # Vision / reasoning calls
OCR_TIMEOUT: Final[float] = 10.0
SOLVER_TIMEOUT: Final[float] = 10.0
BLOB_FETCH_TIMEOUT: Final[float] = 30.0

# HTTP status codes treated as transient
RETRYABLE_STATUS_CODES: Final[Tuple[int, ...]] = (408, 429, 500, 502, 503, 504)

# Error message fragments that mark a transient failure
RETRYABLE_ERROR_PATTERNS: Final[Tuple[str, ...]] = (
    "timeout",
    "timed out",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "network",
    "connection reset",
    "econnreset",
    "etimedout",
)

# Processing Queue
MAX_ATTEMPTS: Final[int] = 3
LOCK_TIMEOUT_MINUTES: Final[int] = 5
CLEANUP_DAYS_DEFAULT: Final[int] = 30
WORKER_BATCH_SIZE: Final[int] = 5
WORKER_POLL_INTERVAL: Final[float] = 5.0
MAX_ERROR_MESSAGE_LENGTH: Final[int] = 1000

# Comparison
DEFAULT_TOLERANCE: Final[float] = 1e-4
RELATIVE_TOLERANCE: Final[float] = 1e-4  # 0.01%

# Verification confidences
CONFIDENCE_SIMPLE: Final[float] = 0.85
CONFIDENCE_SKIPPED: Final[float] = 0.7
CONFIDENCE_SOLVER_MATCH: Final[float] = 0.98
CONFIDENCE_SOLVER_CONFLICT: Final[float] = 0.6
CONFIDENCE_UNVERIFIED: Final[float] = 0.7
CONFIDENCE_UNPARSEABLE_VERDICT: Final[float] = 0.75
CONFIDENCE_VERDICT_DEFAULT: Final[float] = 0.8

# Grading
READABILITY_REVIEW_THRESHOLD: Final[float] = 0.7
MIN_POINTS_POSSIBLE: Final[float] = 1.0
DEFAULT_OCR_CONFIDENCE: Final[float] = 0.8

# Images
DEFAULT_MIME_TYPE: Final[str] = "image/jpeg"
SUPPORTED_MIME_TYPES: Final[Tuple[str, ...]] = (
    "image/jpeg", "image/png", "image/webp", "image/gif"
)

# External endpoints
WOLFRAM_API_URL: Final[str] = "https://api.wolframalpha.com/v1/result"
MATHPIX_API_URL: Final[str] = "https://api.mathpix.com/v3/text"

# Solver status: Short Answers API answers 501 when it cannot interpret the input
WOLFRAM_UNINTERPRETABLE_STATUS: Final[int] = 501

# Rough per-call costs in USD, used for cost logging only
CALL_COSTS: Final[Dict[str, float]] = {
    "mathpix": 0.004,
    "vision": 0.015,
    "wolfram": 0.02,
}

# API
API_HOST: Final[str] = "127.0.0.1"
API_PORT: Final[int] = 8000
