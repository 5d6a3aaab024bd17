"""
Google Gemini provider (google-genai SDK).
"""

import base64
from typing import Optional, Tuple

import google.genai as genai
from google.genai import types

from mathgrade.ai.base_provider import VisionProvider
from mathgrade.config.constants import MAX_TOKENS, TEMPERATURE
from mathgrade.config.providers import ProviderConfig
from mathgrade.core.models import ImageInput, ImageMode


class GeminiProvider(VisionProvider):
    """
    Provider for Google Gemini API interactions.

    Uses the async surface of the SDK (client.aio).
    """

    def __init__(self, config: ProviderConfig, client: Optional[genai.Client] = None):
        super().__init__(name=config.name, model=config.model, timeout=config.timeout)
        self.client = client or genai.Client(api_key=config.api_key)

    @staticmethod
    def _image_part(image: ImageInput) -> types.Part:
        if image.mode == ImageMode.URL:
            return types.Part(file_data=types.FileData(file_uri=image.data, mime_type=image.mime_type))
        return types.Part(
            inline_data=types.Blob(
                mime_type=image.mime_type,
                data=base64.b64decode(image.data),
            )
        )

    async def _complete(
        self,
        prompt: str,
        image: Optional[ImageInput],
        system_prompt: Optional[str],
    ) -> Tuple[str, Optional[int]]:
        parts = [types.Part(text=prompt)]
        if image is not None:
            parts.append(self._image_part(image))

        config = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            max_output_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )

        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[types.Content(role="user", parts=parts)],
            config=config,
        )

        text = response.text or ""

        tokens = None
        usage = getattr(response, "usage_metadata", None)
        if usage:
            tokens = getattr(usage, "total_token_count", None)
        return text, tokens
