"""
Relay-side link session

One LinkSession per accepted websocket. The server keeps a reference to the
current session only; when a newer Agent connects the previous session is
retired and every send through it becomes a silent no-op.
"""
from __future__ import annotations

import logging
import time

from aiohttp import web

from ..protocol.envelope import Envelope

logger = logging.getLogger(__name__)


class LinkSession:
    """A single Agent connection accepted by the Relay."""

    def __init__(self, websocket: web.WebSocketResponse, session_id: int, remote_addr: str = ""):
        self.websocket = websocket
        self.session_id = session_id
        self.remote_addr = remote_addr
        self.connected_at = time.time()
        self._retired = False

    @property
    def retired(self) -> bool:
        return self._retired

    @property
    def active(self) -> bool:
        return not self._retired and not self.websocket.closed

    def retire(self) -> None:
        """Mark superseded. The socket stays open; outbound traffic stops."""
        self._retired = True

    async def send(self, envelope: Envelope) -> bool:
        """
        Send an envelope to this Agent.

        Returns:
            True if the frame was written, False if the session is retired,
            closed, or the write failed
        """
        if not self.active:
            logger.debug(f"Session {self.session_id} inactive; not sending {envelope.kind.value}")
            return False
        try:
            await self.websocket.send_str(envelope.to_json())
            return True
        except (ConnectionError, RuntimeError) as e:
            logger.warning(f"Send to session {self.session_id} failed: {e}")
            return False

    def __repr__(self) -> str:
        state = "retired" if self._retired else "current"
        return f"LinkSession(id={self.session_id}, remote={self.remote_addr!r}, {state})"


__all__ = ["LinkSession"]
