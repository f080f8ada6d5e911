"""
Conversation key canonicalization

The same function runs on both sides of the link, so a reply can find its way
back to the conversation it came from without any shared lookup table. The
canonical key doubles as the target container's display name.
"""
from __future__ import annotations

import re
import unicodedata

MAX_KEY_LENGTH = 90
UNKNOWN_KEY = "unknown"

_STRIP_RE = re.compile(r"[^A-Za-z0-9_\s-]")
_WHITESPACE_RE = re.compile(r"\s+")


def canonicalize(label: str | None) -> str:
    """
    Turn a conversation label into a routing key.

    "Jane Doe" -> "jane-doe", "Zoë  & Co." -> "zoe-co"

    Lower-cases, applies NFKD, drops everything but ASCII letters, digits,
    "_", "-" and whitespace, joins whitespace runs (Unicode separators
    included) with "-" and truncates. Idempotent and never empty.
    Two labels that reduce to the same key share one conversation.
    """
    if not label:
        return UNKNOWN_KEY

    # lower() again after NFKD: compatibility forms can decompose to upper case
    text = unicodedata.normalize("NFKD", label.lower()).lower()
    text = _STRIP_RE.sub("", text).strip()
    text = _WHITESPACE_RE.sub("-", text)
    return text[:MAX_KEY_LENGTH] or UNKNOWN_KEY


def same_conversation(label: str | None, conversation_key: str | None) -> bool:
    """True when a live conversation label routes to the given key."""
    if conversation_key is None:
        return False
    return canonicalize(label) == canonicalize(conversation_key)


__all__ = ["canonicalize", "same_conversation", "MAX_KEY_LENGTH", "UNKNOWN_KEY"]
