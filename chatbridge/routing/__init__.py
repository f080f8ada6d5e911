"""Conversation key canonicalization and target container routing."""
from __future__ import annotations

from .canonical import MAX_KEY_LENGTH, UNKNOWN_KEY, canonicalize, same_conversation
from .router import ConversationRouter

__all__ = [
    "ConversationRouter",
    "MAX_KEY_LENGTH",
    "UNKNOWN_KEY",
    "canonicalize",
    "same_conversation",
]
