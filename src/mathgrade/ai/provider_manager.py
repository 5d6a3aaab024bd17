"""
Provider manager: ordered fallback with retry across vision providers.

For each provider in priority order, retryable failures (timeouts, 429,
5xx, connection resets) are retried with exponential backoff. A
non-retryable failure (bad key, malformed request) moves on to the next
provider at once. The first success wins.
"""

from typing import Dict, List, Optional, Sequence

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from mathgrade.ai.base_provider import VisionProvider
from mathgrade.config.constants import MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY
from mathgrade.core.exceptions import ProviderError
from mathgrade.core.models import ImageInput, ProviderResponse


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    provider = getattr(exc, "provider", None) or "provider"
    logger.warning(
        f"{provider} attempt {retry_state.attempt_number} failed, retrying: {exc}"
    )


class ProviderManager:
    """
    Calls vision providers in priority order until one succeeds.

    Only depends on the VisionProvider interface; concrete providers are
    built by provider_factory.
    """

    def __init__(
        self,
        providers: Sequence[VisionProvider],
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
        max_delay: float = RETRY_MAX_DELAY,
    ):
        self._providers: Dict[str, VisionProvider] = {p.name: p for p in providers}
        self._order: List[str] = [p.name for p in providers]
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.max_delay = max_delay

    @property
    def provider_names(self) -> List[str]:
        return list(self._order)

    def get_provider(self, name: str) -> Optional[VisionProvider]:
        return self._providers.get(name)

    def ordered_providers(self, preferred: Optional[str] = None) -> List[VisionProvider]:
        """Providers in priority order; a known preferred provider goes first."""
        order = list(self._order)
        if preferred and preferred in self._providers:
            order.remove(preferred)
            order.insert(0, preferred)
        return [self._providers[name] for name in order]

    async def _call_with_retry(
        self,
        provider: VisionProvider,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> ProviderResponse:
        """One provider, up to max_retries attempts. Raises ProviderError when exhausted."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, max=self.max_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                response = await provider.analyze(prompt, image=image, system_prompt=system_prompt)
                if not response.success:
                    raise ProviderError(
                        response.error or "Unknown provider error",
                        retryable=response.retryable,
                        provider=provider.name,
                    )
        return response

    async def analyze(
        self,
        prompt: str,
        image: Optional[ImageInput] = None,
        system_prompt: Optional[str] = None,
        preferred_provider: Optional[str] = None,
    ) -> ProviderResponse:
        """
        Run a call with fallback across providers.

        Args:
            prompt: User prompt
            image: Homework image, or None for a text-only call
            system_prompt: Optional system instructions
            preferred_provider: Provider to try first

        Returns:
            The first successful ProviderResponse (tagged with its provider),
            or one aggregated failure carrying the last error
        """
        providers = self.ordered_providers(preferred_provider)
        if not providers:
            return ProviderResponse(success=False, error="No vision providers configured")

        last_error: Optional[str] = None
        for provider in providers:
            try:
                response = await self._call_with_retry(provider, prompt, image, system_prompt)
            except ProviderError as e:
                last_error = e.message
                logger.warning(
                    f"Provider {provider.name} failed (retryable={e.retryable}), trying next: {e.message}"
                )
                continue

            logger.info(f"Provider {provider.name} succeeded in {response.latency_ms:.0f}ms")
            return response.model_copy(update={"provider": provider.name})

        logger.error(f"All providers failed. Last error: {last_error}")
        return ProviderResponse(
            success=False,
            error=f"All providers failed. Last error: {last_error}",
        )

    async def reason(self, prompt: str, system_prompt: Optional[str] = None) -> ProviderResponse:
        """Text-only call, used for self-check verification."""
        return await self.analyze(prompt, image=None, system_prompt=system_prompt)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
