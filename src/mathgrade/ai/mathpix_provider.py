"""
Mathpix OCR provider.

Transcribes handwritten math into plain text and LaTeX. The transcription
is only a hint for the vision model and the other side of the reading
conflict check; it never grades anything.
"""

import time
from typing import Optional

import httpx
from loguru import logger

from mathgrade.ai.base_provider import _sanitize_for_logging, classify_exception
from mathgrade.config.constants import DEFAULT_OCR_CONFIDENCE, MATHPIX_API_URL, OCR_TIMEOUT
from mathgrade.core.models import ImageInput, ImageMode, OCRResult


class MathpixProvider:
    """Client for the Mathpix v3/text endpoint."""

    name = "mathpix"

    def __init__(
        self,
        app_id: str,
        app_key: str,
        timeout: float = OCR_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.app_id = app_id
        self.app_key = app_key
        self.timeout = timeout
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.app_id and self.app_key)

    def _source(self, image: ImageInput) -> str:
        if image.mode == ImageMode.URL:
            return image.data
        # Strip whitespace or a pasted data-URL prefix from the payload
        data = "".join(image.data.split())
        if "," in data:
            data = data.split(",", 1)[1]
        return f"data:{image.mime_type};base64,{data}"

    async def extract(self, image: ImageInput) -> OCRResult:
        """
        Transcribe an image.

        Args:
            image: Homework image

        Returns:
            OCRResult; success is False on any failure (never raises)
        """
        if not self.is_available:
            return OCRResult(success=False, error="Mathpix API not configured (missing app id or key)")

        start = time.perf_counter()
        payload = {
            "src": self._source(image),
            "formats": ["latex_styled", "text"],
            "data_options": {
                "include_detected_alphabets": True,
                "include_word_data": True,
            },
        }
        headers = {"app_id": self.app_id, "app_key": self.app_key}

        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(MATHPIX_API_URL, json=payload, headers=headers, timeout=self.timeout)
            if response.status_code >= 400:
                error = f"Mathpix API error: {response.status_code} - {response.text[:200]}"
                logger.warning(_sanitize_for_logging(error))
                return OCRResult(success=False, error=error)
            data = response.json()
        except Exception as exc:
            error = classify_exception(exc, self.name)
            logger.warning(f"Mathpix OCR failed: {_sanitize_for_logging(error.message)}")
            return OCRResult(success=False, error=error.message)
        finally:
            if self._client is None:
                await client.aclose()

        confidence = data.get("confidence")
        if confidence is None:
            confidence = data.get("confidence_rate", DEFAULT_OCR_CONFIDENCE)

        latency = (time.perf_counter() - start) * 1000
        logger.debug(f"Mathpix OCR finished in {latency:.0f}ms, confidence={confidence}")

        return OCRResult(
            success=True,
            text=data.get("text") or "",
            latex=data.get("latex_styled") or data.get("latex"),
            confidence=float(confidence),
        )
