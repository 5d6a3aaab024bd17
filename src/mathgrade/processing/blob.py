"""
Blob fetchers: HTTP(S) URLs and local files.
"""

import mimetypes
from pathlib import Path
from typing import Optional, Tuple

import httpx
from loguru import logger

from mathgrade.ai.base_provider import classify_exception
from mathgrade.config.constants import BLOB_FETCH_TIMEOUT, DEFAULT_MIME_TYPE


def _content_type(header: Optional[str], ref: str) -> str:
    if header:
        return header.split(";", 1)[0].strip().lower()
    guessed, _ = mimetypes.guess_type(ref)
    return guessed or DEFAULT_MIME_TYPE


class HttpBlobFetcher:
    """
    Fetches images over HTTP(S).

    Args:
        timeout: Per-request timeout in seconds
        client: Optional shared client; closed by the caller if given
    """

    def __init__(self, timeout: float = BLOB_FETCH_TIMEOUT, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def fetch(self, ref: str) -> Tuple[bytes, str]:
        """
        Download a blob.

        Raises:
            ProviderError: Network failure or non-2xx status, classified as
                retryable or not
        """
        client = self._client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        try:
            response = await client.get(ref, timeout=self.timeout)
            response.raise_for_status()
        except Exception as exc:
            error = classify_exception(exc, "blob")
            logger.warning(f"Blob fetch failed for {ref}: {error.message}")
            raise error from exc
        finally:
            if self._client is None:
                await client.aclose()

        return response.content, _content_type(response.headers.get("content-type"), ref)


class FileBlobFetcher:
    """Reads images from the local filesystem, relative to an optional base directory."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir) if base_dir else None

    async def fetch(self, ref: str) -> Tuple[bytes, str]:
        path = Path(ref[len("file://"):] if ref.startswith("file://") else ref)
        if self.base_dir and not path.is_absolute():
            path = self.base_dir / path
        with open(path, 'rb') as f:
            data = f.read()
        return data, _content_type(None, str(path))


class RoutingBlobFetcher:
    """HTTP(S) references go to HttpBlobFetcher, everything else to FileBlobFetcher."""

    def __init__(self, http: Optional[HttpBlobFetcher] = None, files: Optional[FileBlobFetcher] = None):
        self.http = http or HttpBlobFetcher()
        self.files = files or FileBlobFetcher()

    async def fetch(self, ref: str) -> Tuple[bytes, str]:
        if ref.startswith(("http://", "https://")):
            return await self.http.fetch(ref)
        return await self.files.fetch(ref)
