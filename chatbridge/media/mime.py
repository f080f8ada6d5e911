"""
MIME type utilities for relayed attachments
"""
from __future__ import annotations

from enum import Enum

DEFAULT_MIME = "application/octet-stream"
DEFAULT_IMAGE_MIME = "image/jpeg"


class MediaKind(str, Enum):
    """Coarse attachment classification."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


def normalize_header_mime(mime: str | None) -> str | None:
    """
    Normalize a Content-Type header value.

    "image/PNG; charset=binary" -> "image/png"
    """
    if not mime:
        return None
    cleaned = mime.split(";")[0].strip().lower()
    return cleaned if cleaned else None


def default_mime_for_kind(kind: MediaKind | str) -> str:
    """Fallback MIME when the source reports none."""
    if MediaKind(kind) == MediaKind.IMAGE:
        return DEFAULT_IMAGE_MIME
    return DEFAULT_MIME


__all__ = [
    "MediaKind",
    "DEFAULT_MIME",
    "DEFAULT_IMAGE_MIME",
    "normalize_header_mime",
    "default_mime_for_kind",
]
