"""
Echo detection for injected replies.

A reply typed into the source view by the actuator shows up again as a new
message in that view. Tracking what we injected keeps it from being relayed
back to the target platform.
"""
from __future__ import annotations

import time
from typing import Callable


def attachment_signature(count: int) -> str:
    """Echo key for a reply that carries attachments but no caption."""
    return f"[attachments:{count}]"


class EchoTracker:
    """
    Tracks injected texts per conversation.

    Caption-less attachment replies are tracked under attachment_signature().

    Usage:
        tracker = EchoTracker(window_seconds=30)

        # After injecting a reply
        tracker.mark_outbound("jane-doe", "on my way")

        # When the observer reports a message
        if tracker.is_echo("jane-doe", event.text):
            return
    """

    def __init__(self, window_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            window_seconds: How long an injected text counts as an echo
            clock: Time source (monotonic seconds)
        """
        self._outbound: dict[str, float] = {}  # "key::text" -> timestamp
        self._window = window_seconds
        self._clock = clock

    @staticmethod
    def _entry(conversation_key: str, text: str) -> str:
        return f"{conversation_key}::{text.strip()}"

    def mark_outbound(self, conversation_key: str, text: str) -> None:
        if not text or not text.strip():
            return
        self._outbound[self._entry(conversation_key, text)] = self._clock()
        self._cleanup()

    def is_echo(self, conversation_key: str, text: str) -> bool:
        """True once for each marked text seen again within the window."""
        if not text or not text.strip():
            return False

        self._cleanup()
        entry = self._entry(conversation_key, text)
        if entry in self._outbound:
            # One injection, one echo
            del self._outbound[entry]
            return True
        return False

    def _cleanup(self) -> None:
        now = self._clock()
        expired = [entry for entry, ts in self._outbound.items() if now - ts > self._window]
        for entry in expired:
            del self._outbound[entry]

    def clear(self) -> None:
        self._outbound.clear()

    def count(self) -> int:
        return len(self._outbound)


__all__ = ["EchoTracker", "attachment_signature"]
