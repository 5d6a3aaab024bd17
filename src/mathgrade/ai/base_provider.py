"""
Base provider class for vision and reasoning calls.

Provides the shared call envelope (timeout by cancellation, latency,
error classification, sanitized logging). Subclasses only implement the
SDK-specific request in _complete().
"""

import asyncio
import re
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import httpx
from loguru import logger

from mathgrade.config.constants import (
    PROVIDER_TIMEOUT,
    RETRYABLE_ERROR_PATTERNS,
    RETRYABLE_STATUS_CODES,
)
from mathgrade.core.exceptions import (
    APIConnectionError,
    APIRateLimitError,
    APIResponseError,
    APITimeoutError,
    AuthenticationError,
    ProviderError,
)
from mathgrade.core.models import ImageInput, ProviderResponse


def _sanitize_for_logging(text: str) -> str:
    """
    Sanitize text for logging by removing potential API keys and secrets.

    Args:
        text: Text to sanitize

    Returns:
        Sanitized text with sensitive values masked
    """
    if not text:
        return text

    patterns = [
        # OpenAI / Anthropic / Groq style keys
        (r'(sk-[a-zA-Z0-9_-]{20,})', 'sk-[REDACTED]'),
        (r'(gsk_[a-zA-Z0-9]{20,})', 'gsk_[REDACTED]'),
        (r'(api[_-]?key\s*[=:]\s*["\']?)([a-zA-Z0-9_-]{20,})', r'\1[REDACTED]'),
        (r'(app_?(?:id|key)\s*[=:]\s*["\']?)([a-zA-Z0-9_-]{6,})', r'\1[REDACTED]'),
        # Bearer tokens
        (r'(Bearer\s+)([a-zA-Z0-9_.-]{20,})', r'\1[REDACTED]'),
        # Google API keys (AIza...)
        (r'(AIza[a-zA-Z0-9_-]{35})', 'AIza[REDACTED]'),
    ]

    sanitized = text
    for pattern, replacement in patterns:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    return sanitized


def _status_code(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an SDK or httpx exception, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    # openai / anthropic expose status_code, google-genai exposes code
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_exception(exc: BaseException, provider: Optional[str] = None) -> ProviderError:
    """
    Translate an SDK, httpx or timeout exception into the ProviderError family.

    Timeouts, 429, 5xx and connection failures are retryable; auth errors and
    other 4xx are not.
    """
    if isinstance(exc, ProviderError):
        return exc

    exc_name = type(exc).__name__
    message = str(exc) or exc_name

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)) or any(
        name in exc_name for name in ("Timeout", "TimedOut")
    ):
        return APITimeoutError(f"Request timed out: {message}", provider=provider)

    status = _status_code(exc)

    if status == 429 or "RateLimit" in exc_name:
        return APIRateLimitError(f"Rate limited: {message}", {"status": status}, provider=provider)

    if status in (401, 403) or any(name in exc_name for name in ("Authentication", "PermissionDenied")):
        return AuthenticationError(f"Authentication failed: {message}", {"status": status}, provider=provider)

    if status is not None:
        retryable = status in RETRYABLE_STATUS_CODES or status >= 500
        return APIResponseError(
            f"HTTP {status}: {message}", {"status": status}, retryable=retryable, provider=provider
        )

    if isinstance(exc, httpx.TransportError) or any(
        name in exc_name for name in ("Connection", "Connect", "Network")
    ):
        return APIConnectionError(f"Connection failed: {message}", provider=provider)

    lowered = message.lower()
    retryable = any(pattern in lowered for pattern in RETRYABLE_ERROR_PATTERNS)
    return ProviderError(message, retryable=retryable, provider=provider)


class VisionProvider(ABC):
    """
    Abstract base class for vision/reasoning providers.

    analyze() never raises: every outcome is a ProviderResponse, so the
    provider manager only has to look at success and retryable.

    Subclasses must implement:
    - _complete()
    """

    def __init__(self, name: str, model: Optional[str] = None, timeout: float = PROVIDER_TIMEOUT):
        self.name = name
        self.model = model
        self.timeout = timeout

    async def analyze(
        self,
        prompt: str,
        image: Optional[ImageInput] = None,
        system_prompt: Optional[str] = None,
    ) -> ProviderResponse:
        """
        Send a prompt (and optionally an image) to the model.

        Args:
            prompt: User prompt
            image: Homework image; None for text-only reasoning calls
            system_prompt: Optional system instructions

        Returns:
            ProviderResponse tagged with this provider's name
        """
        start = time.perf_counter()
        try:
            content, tokens = await asyncio.wait_for(
                self._complete(prompt, image, system_prompt),
                timeout=self.timeout,
            )
        except Exception as exc:
            error = classify_exception(exc, self.name)
            latency = (time.perf_counter() - start) * 1000
            logger.warning(
                f"{self.name} call failed after {latency:.0f}ms "
                f"(retryable={error.retryable}): {_sanitize_for_logging(error.message)}"
            )
            return ProviderResponse(
                success=False,
                provider=self.name,
                model=self.model,
                error=error.message,
                retryable=error.retryable,
                latency_ms=latency,
            )

        latency = (time.perf_counter() - start) * 1000

        if not content or not content.strip():
            logger.warning(f"{self.name} returned an empty response")
            return ProviderResponse(
                success=False,
                provider=self.name,
                model=self.model,
                error="Empty response from provider",
                latency_ms=latency,
            )

        logger.debug(f"{self.name} call succeeded in {latency:.0f}ms, tokens={tokens}")
        return ProviderResponse(
            success=True,
            content=content,
            provider=self.name,
            model=self.model,
            tokens_used=tokens,
            latency_ms=latency,
        )

    @abstractmethod
    async def _complete(
        self,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> Tuple[str, Optional[int]]:
        """Perform the SDK call. Returns (text, total tokens)."""
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"
