"""
Tests for provider error classification and fallback across providers.
"""

import asyncio

import httpx

from conftest import FakeVisionProvider
from mathgrade.ai.base_provider import _sanitize_for_logging, classify_exception
from mathgrade.ai.provider_manager import ProviderManager
from mathgrade.core.exceptions import (
    APIConnectionError,
    APIRateLimitError,
    APIResponseError,
    APITimeoutError,
    AuthenticationError,
)


class StatusError(Exception):
    """Mimics an SDK error exposing status_code."""

    def __init__(self, status_code: int, message: str = "boom"):
        super().__init__(message)
        self.status_code = status_code


class SlowProvider(FakeVisionProvider):
    async def _complete(self, prompt, image, system_prompt):
        self.calls.append({"prompt": prompt})
        await asyncio.sleep(1)
        return "late", 1


def _http_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/v1")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


# ==================== classify_exception ====================

def test_timeout_is_retryable():
    error = classify_exception(asyncio.TimeoutError(), "openai")
    assert isinstance(error, APITimeoutError)
    assert error.retryable
    assert error.provider == "openai"


def test_rate_limit_is_retryable():
    error = classify_exception(StatusError(429))
    assert isinstance(error, APIRateLimitError)
    assert error.retryable


def test_server_errors_are_retryable():
    error = classify_exception(_http_error(503))
    assert isinstance(error, APIResponseError)
    assert error.retryable


def test_auth_errors_are_not_retryable():
    error = classify_exception(StatusError(401))
    assert isinstance(error, AuthenticationError)
    assert not error.retryable


def test_other_client_errors_are_not_retryable():
    error = classify_exception(_http_error(400))
    assert isinstance(error, APIResponseError)
    assert not error.retryable


def test_connection_errors_are_retryable():
    request = httpx.Request("GET", "https://api.example.com")
    error = classify_exception(httpx.ConnectError("connection reset", request=request))
    assert isinstance(error, APIConnectionError)
    assert error.retryable


def test_sanitize_for_logging():
    text = "key sk-abcdefghijklmnopqrstuvwxyz123456 failed"
    assert "abcdefghijklmnop" not in _sanitize_for_logging(text)


# ==================== VisionProvider envelope ====================

def test_analyze_never_raises():
    provider = FakeVisionProvider("openai", [StatusError(500)])
    response = asyncio.run(provider.analyze("hi"))
    assert not response.success
    assert response.retryable
    assert response.provider == "openai"


def test_analyze_enforces_timeout():
    provider = SlowProvider("openai", [], timeout=0.05)
    response = asyncio.run(provider.analyze("hi"))
    assert not response.success
    assert response.retryable
    assert "timed out" in response.error


def test_empty_response_is_failure():
    provider = FakeVisionProvider("openai", ["   "])
    response = asyncio.run(provider.analyze("hi"))
    assert not response.success
    assert not response.retryable


# ==================== ProviderManager ====================

def test_first_success_wins_and_is_tagged():
    primary = FakeVisionProvider("openai", ['{"ok": 1}'])
    backup = FakeVisionProvider("anthropic", ['{"ok": 2}'])
    manager = ProviderManager([primary, backup], retry_delay=0)

    response = asyncio.run(manager.analyze("grade"))

    assert response.success
    assert response.provider == "openai"
    assert response.content == '{"ok": 1}'
    assert backup.calls == []


def test_retryable_errors_are_retried_on_same_provider():
    primary = FakeVisionProvider("openai", [StatusError(503), StatusError(429), "done"])
    manager = ProviderManager([primary], max_retries=3, retry_delay=0)

    response = asyncio.run(manager.analyze("grade"))

    assert response.success
    assert len(primary.calls) == 3


def test_non_retryable_error_moves_to_next_provider():
    primary = FakeVisionProvider("openai", [StatusError(401, "bad key"), "unused"])
    backup = FakeVisionProvider("gemini", ["from gemini"])
    manager = ProviderManager([primary, backup], max_retries=3, retry_delay=0)

    response = asyncio.run(manager.analyze("grade"))

    assert response.success
    assert response.provider == "gemini"
    assert len(primary.calls) == 1


def test_exhausted_retries_fall_back():
    primary = FakeVisionProvider("openai", [StatusError(500)] * 3)
    backup = FakeVisionProvider("groq", ["ok"])
    manager = ProviderManager([primary, backup], max_retries=3, retry_delay=0)

    response = asyncio.run(manager.analyze("grade"))

    assert response.provider == "groq"
    assert len(primary.calls) == 3


def test_all_providers_failing_aggregates_last_error():
    primary = FakeVisionProvider("openai", [StatusError(401, "bad key")])
    backup = FakeVisionProvider("anthropic", [StatusError(400, "malformed image")])
    manager = ProviderManager([primary, backup], retry_delay=0)

    response = asyncio.run(manager.analyze("grade"))

    assert not response.success
    assert response.error.startswith("All providers failed. Last error:")
    assert "malformed image" in response.error


def test_preferred_provider_goes_first():
    primary = FakeVisionProvider("openai", ["a"])
    backup = FakeVisionProvider("anthropic", ["b"])
    manager = ProviderManager([primary, backup], retry_delay=0)

    assert [p.name for p in manager.ordered_providers("anthropic")] == ["anthropic", "openai"]
    assert [p.name for p in manager.ordered_providers("unknown")] == ["openai", "anthropic"]

    response = asyncio.run(manager.analyze("grade", preferred_provider="anthropic"))
    assert response.provider == "anthropic"


def test_no_providers():
    response = asyncio.run(ProviderManager([]).analyze("grade"))
    assert not response.success
    assert response.error == "No vision providers configured"


def test_reason_is_text_only():
    provider = FakeVisionProvider("openai", ["{}"])
    manager = ProviderManager([provider], retry_delay=0)

    asyncio.run(manager.reason("check", system_prompt="verify"))

    assert provider.calls[0]["image"] is None
    assert provider.calls[0]["system_prompt"] == "verify"
