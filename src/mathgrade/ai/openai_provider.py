"""
OpenAI-compatible API provider.

Works with any OpenAI-compatible API (OpenAI, Groq, OpenRouter).
"""

from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from mathgrade.ai.base_provider import VisionProvider
from mathgrade.config.constants import MAX_TOKENS, TEMPERATURE
from mathgrade.config.providers import ProviderConfig
from mathgrade.core.models import ImageInput


class OpenAICompatibleProvider(VisionProvider):
    """
    Provider for OpenAI-compatible chat completion APIs.

    Configuration is handled by the factory using config/providers.py registry.
    """

    def __init__(self, config: ProviderConfig, client: Optional[AsyncOpenAI] = None):
        super().__init__(name=config.name, model=config.model, timeout=config.timeout)
        self.base_url = config.base_url
        self.client = client or self._create_client(config)

    def _create_client(self, config: ProviderConfig) -> AsyncOpenAI:
        """Create the async client. Retries belong to the provider manager."""
        client_kwargs: Dict[str, Any] = {
            "api_key": config.api_key,
            "timeout": config.timeout,
            "max_retries": 0,
        }

        if config.base_url:
            client_kwargs["base_url"] = config.base_url

        if config.extra_headers:
            client_kwargs["default_headers"] = config.extra_headers

        return AsyncOpenAI(**client_kwargs)

    def _build_messages(
        self,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        if image is None:
            messages.append({"role": "user", "content": prompt})
            return messages

        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image.as_data_url(), "detail": "high"}},
        ]
        messages.append({"role": "user", "content": content})
        return messages

    async def _complete(
        self,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> Tuple[str, Optional[int]]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self._build_messages(prompt, image, system_prompt),
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        tokens = response.usage.total_tokens if response.usage else None
        return text, tokens

    async def aclose(self) -> None:
        await self.client.close()
