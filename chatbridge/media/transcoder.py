"""
Attachment transcoding

Binary attachments cross the link as base64 text. The mapping is lossless for
every byte sequence (including the empty one) and never inspects content.
"""
from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlparse

from ..errors import ProtocolError
from .mime import DEFAULT_MIME


@dataclass(frozen=True)
class Attachment:
    """
    A captured attachment.

    Attributes:
        name: File name shown on the receiving platform
        mime_type: MIME type
        payload: Raw bytes, immutable once captured
    """
    name: str
    mime_type: str
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)


def encode(payload: bytes) -> str:
    """Encode bytes into transport text."""
    return base64.b64encode(payload).decode("ascii")


def decode(text: str) -> bytes:
    """
    Decode transport text back into bytes.

    Raises:
        ProtocolError: If text is not valid base64
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ProtocolError(f"Invalid base64 payload: {e}")


def infer_name_from_url(url: str, prefix: str = "file") -> str:
    """
    Derive a file name from the last path segment of a URL.

    Falls back to "{prefix}-{epoch_ms}" when the URL has no usable segment.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        parsed = None
    # data: and other opaque URLs have no file name to offer
    path = parsed.path if parsed is not None and parsed.scheme in ("http", "https") else ""
    name = PurePosixPath(path).name if path else ""
    if name:
        return name
    return f"{prefix}-{int(time.time() * 1000)}"


__all__ = [
    "Attachment",
    "DEFAULT_MIME",
    "encode",
    "decode",
    "infer_name_from_url",
]
