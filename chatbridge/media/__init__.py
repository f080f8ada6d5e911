"""Attachment capture, transcoding and MIME helpers."""
from __future__ import annotations

from .loader import AttachmentLoader, AttachmentSource
from .mime import MediaKind, normalize_header_mime
from .transcoder import Attachment, decode, encode, infer_name_from_url

__all__ = [
    "Attachment",
    "AttachmentLoader",
    "AttachmentSource",
    "MediaKind",
    "decode",
    "encode",
    "infer_name_from_url",
    "normalize_header_mime",
]
