"""
Anthropic Messages API provider.
"""

from typing import Any, Dict, List, Optional, Tuple

from anthropic import AsyncAnthropic

from mathgrade.ai.base_provider import VisionProvider
from mathgrade.config.constants import MAX_TOKENS, TEMPERATURE
from mathgrade.config.providers import ProviderConfig
from mathgrade.core.models import ImageInput, ImageMode


class AnthropicProvider(VisionProvider):
    """Provider for Claude models via the Messages API."""

    def __init__(self, config: ProviderConfig, client: Optional[AsyncAnthropic] = None):
        super().__init__(name=config.name, model=config.model, timeout=config.timeout)
        self.client = client or AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=0,
        )

    @staticmethod
    def _image_block(image: ImageInput) -> Dict[str, Any]:
        if image.mode == ImageMode.URL:
            return {"type": "image", "source": {"type": "url", "url": image.data}}
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": image.mime_type, "data": image.data},
        }

    async def _complete(
        self,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> Tuple[str, Optional[int]]:
        content: List[Dict[str, Any]] = []
        if image is not None:
            content.append(self._image_block(image))
        content.append({"type": "text", "text": prompt})

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": content}],
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        response = await self.client.messages.create(**kwargs)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        tokens = None
        if response.usage:
            tokens = response.usage.input_tokens + response.usage.output_tokens
        return text, tokens

    async def aclose(self) -> None:
        await self.client.close()
