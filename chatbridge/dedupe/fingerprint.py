"""
Source event fingerprints

A fingerprint identifies one logical message on the source surface, however
many times the surface re-renders it. A stable message id wins; without one
the fingerprint is derived from timestamp, text and attachment references.
"""
from __future__ import annotations

import hashlib
from typing import Iterable


def compute_fingerprint(
    message_id: str | None,
    timestamp: str | None,
    text: str | None,
    attachment_refs: Iterable[str] = (),
) -> str | None:
    """
    Compute the dedup key for a source event.

    Args:
        message_id: Stable id exposed by the source, if any
        timestamp: Rendered timestamp / tooltip label, if any
        text: Message text
        attachment_refs: URLs (or other stable references) of attachments

    Returns:
        Fingerprint string, or None for an event with nothing to identify it
    """
    if message_id:
        return f"id:{message_id}"

    refs = "|".join(ref for ref in attachment_refs if ref)
    body = (text or "").strip()
    if not body and not refs:
        return None

    composite = f"{timestamp or ''}::{body}::{refs}"
    digest = hashlib.sha256(composite.encode("utf-8")).hexdigest()[:32]
    return f"h:{digest}"


__all__ = ["compute_fingerprint"]
