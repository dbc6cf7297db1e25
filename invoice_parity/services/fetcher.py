"""
Document Fetch Service

Resolves a document reference to raw bytes. References can be:
- an ``http://`` or ``https://`` URL
- a bare identifier, joined onto ``document_base_url`` when configured
- a local file path

Every download is bounded by a wall-clock timeout and a maximum payload size.
"""

import asyncio
from pathlib import Path
from typing import Optional

import httpx

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import get_logger

logger = get_logger(__name__)


class DownloadError(Exception):
    """Raised when a document cannot be fetched."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to download document from {source}: {reason}")


def is_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


class DocumentFetcher:
    """
    Fetches document bytes for comparison.

    Attributes:
        settings: Application settings
        transport: Optional httpx transport, used to route requests in tests
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    def resolve(self, ref: str) -> str:
        """
        Turn a reference into a URL or a local path string.

        Args:
            ref: Document reference

        Returns:
            URL or filesystem path to read from
        """
        ref = ref.strip()
        if is_url(ref):
            return ref
        if self.settings.document_base_url and not Path(ref).exists():
            return f"{self.settings.document_base_url}/{ref.lstrip('/')}"
        return ref

    async def fetch(self, ref: str) -> bytes:
        """
        Fetch the bytes of a document.

        Args:
            ref: Document reference

        Returns:
            Raw document bytes

        Raises:
            DownloadError: On timeout, oversize payload, HTTP or transport
                errors, or an unreadable local file
        """
        source = self.resolve(ref)
        if is_url(source):
            timeout = self.settings.download_timeout_seconds
            try:
                data = await asyncio.wait_for(self._download(source), timeout=timeout)
            except asyncio.TimeoutError:
                raise DownloadError(source, f"timed out after {timeout:g}s")
        else:
            data = await asyncio.to_thread(self._read_local, source)

        logger.debug("document_fetched", source=source, size_bytes=len(data))
        return data

    async def _download(self, url: str) -> bytes:
        limit = self.settings.max_download_size_bytes
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.settings.download_timeout_seconds,
                follow_redirects=True
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > limit:
                        raise DownloadError(url, f"payload of {declared} bytes exceeds limit of {limit} bytes")

                    buffer = bytearray()
                    async for chunk in response.aiter_bytes():
                        buffer.extend(chunk)
                        if len(buffer) > limit:
                            raise DownloadError(url, f"payload exceeds limit of {limit} bytes")
                    return bytes(buffer)
        except httpx.HTTPStatusError as e:
            raise DownloadError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DownloadError(url, str(e) or type(e).__name__) from e

    def _read_local(self, path_str: str) -> bytes:
        path = Path(path_str)
        limit = self.settings.max_download_size_bytes
        try:
            size = path.stat().st_size
            if size > limit:
                raise DownloadError(path_str, f"payload of {size} bytes exceeds limit of {limit} bytes")
            return path.read_bytes()
        except OSError as e:
            raise DownloadError(path_str, e.strerror or str(e)) from e
