"""
Attachment loader

Resolves attachment references (HTTP(S) URLs and data URLs) into captured
Attachment values. Every fetch is bounded by a timeout; a batch load isolates
failures so one bad reference never aborts its siblings.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

import httpx

from ..errors import AttachmentFetchError, ProtocolError
from .mime import MediaKind, default_mime_for_kind, normalize_header_mime
from .transcoder import Attachment, decode, infer_name_from_url

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 15.0

_DATA_URL_RE = re.compile(r"^data:([^;,]+)?;base64,(.*)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class AttachmentSource:
    """
    Reference to an attachment that has not been fetched yet.

    Attributes:
        url: HTTP(S) or data URL
        name: Known file name, if any
        mime_type: Known content type, if any (wins over the response header)
        kind: Coarse kind, used for fallback naming and MIME
    """
    url: str
    name: str | None = None
    mime_type: str | None = None
    kind: MediaKind = MediaKind.UNKNOWN

    @property
    def name_prefix(self) -> str:
        return "image" if self.kind == MediaKind.IMAGE else "file"


class AttachmentLoader:
    """
    Fetch attachments into memory.

    Usage:
        async with AttachmentLoader(timeout=10) as loader:
            attachments = await loader.load_all(sources)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_bytes: int | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            timeout: Upper bound in seconds for one fetch
            max_bytes: Reject payloads larger than this
            client: Shared HTTP client; one is created lazily when omitted
        """
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "AttachmentLoader":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.timeout)
        return self._client

    async def load(self, source: AttachmentSource) -> Attachment:
        """
        Fetch one attachment.

        Raises:
            AttachmentFetchError: On network failure, HTTP error, timeout,
                bad data URL or size limit violation
        """
        url = source.url.strip()
        if url.startswith("data:"):
            payload, header_mime = self._load_data_url(url)
        elif url.startswith(("http://", "https://")):
            try:
                payload, header_mime = await asyncio.wait_for(self._load_http_url(url), self.timeout)
            except asyncio.TimeoutError:
                raise AttachmentFetchError(f"Timed out after {self.timeout}s: {url}", details={"url": url})
            except httpx.HTTPError as e:
                raise AttachmentFetchError(f"Failed to fetch {url}: {e}", details={"url": url})
        else:
            raise AttachmentFetchError(f"Unsupported attachment URL: {url[:80]}", details={"url": url})

        if self.max_bytes is not None and len(payload) > self.max_bytes:
            raise AttachmentFetchError(
                f"Attachment exceeds size limit: {len(payload)} > {self.max_bytes}",
                details={"url": url, "size": len(payload)},
            )

        mime_type = (
            normalize_header_mime(source.mime_type)
            or header_mime
            or default_mime_for_kind(source.kind)
        )
        name = source.name or infer_name_from_url(url, source.name_prefix)
        return Attachment(name=name, mime_type=mime_type, payload=payload)

    async def load_all(self, sources: list[AttachmentSource]) -> list[Attachment]:
        """
        Fetch attachments concurrently, keeping source order.

        Failed fetches are logged and omitted; they are not retried.
        """
        if not sources:
            return []
        results = await asyncio.gather(
            *(self.load(source) for source in sources),
            return_exceptions=True,
        )
        attachments: list[Attachment] = []
        for source, result in zip(sources, results):
            if isinstance(result, AttachmentFetchError):
                logger.warning(f"Dropping attachment: {result}")
            elif isinstance(result, BaseException):
                logger.error(f"Unexpected error fetching {source.url}: {result}", exc_info=result)
            else:
                attachments.append(result)
        return attachments

    async def _load_http_url(self, url: str) -> tuple[bytes, str | None]:
        response = await self._get_client().get(url)
        response.raise_for_status()
        return response.content, normalize_header_mime(response.headers.get("content-type"))

    def _load_data_url(self, data_url: str) -> tuple[bytes, str | None]:
        match = _DATA_URL_RE.match(data_url)
        if not match:
            raise AttachmentFetchError("Invalid data URL format")
        try:
            payload = decode(match.group(2))
        except ProtocolError as e:
            raise AttachmentFetchError(f"Invalid data URL payload: {e}")
        return payload, normalize_header_mime(match.group(1))


__all__ = [
    "AttachmentLoader",
    "AttachmentSource",
    "DEFAULT_FETCH_TIMEOUT",
]
