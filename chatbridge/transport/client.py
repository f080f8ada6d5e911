"""
Agent link client

Keeps one websocket to the Relay open for as long as the Agent runs:

1. Connect, send {"kind": "ping"}
2. Wait for the pong; only then is the link live
3. Flush envelopes queued while offline, in order
4. On close, wait a fixed delay and start over

Inbound chat envelopes are not trusted until the link is live.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import ProtocolError
from ..protocol.envelope import Direction, Envelope, Kind, parse_frame

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 2.0
HEARTBEAT_INTERVAL = 30.0
PONG_TIMEOUT = 10.0
PENDING_LIMIT = 100

InboundHandler = Callable[[Envelope], Awaitable[None]]


class AgentLink:
    """
    Reconnecting websocket client used by the Agent.

    Usage:
        link = AgentLink("ws://localhost:8080", on_envelope=bridge.handle_envelope)
        link.ensure_connected()
        await link.send(envelope)
    """

    def __init__(
        self,
        url: str,
        on_envelope: Optional[InboundHandler] = None,
        reconnect_delay: float = RECONNECT_DELAY,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        pong_timeout: float = PONG_TIMEOUT,
        pending_limit: int = PENDING_LIMIT,
    ):
        """
        Args:
            url: Relay websocket URL
            on_envelope: Called for every trusted target_to_source envelope
            reconnect_delay: Seconds between a close and the next attempt
            heartbeat_interval: Seconds between application pings (0 disables)
            pong_timeout: Seconds to wait for the first pong before reconnecting
            pending_limit: Max envelopes held while the link is down
        """
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.heartbeat_interval = heartbeat_interval
        self.pong_timeout = pong_timeout
        self.pending_limit = pending_limit
        self._on_envelope = on_envelope
        self._ws = None
        self._pending: deque[str] = deque()
        self._live = asyncio.Event()
        self._runner: asyncio.Task | None = None
        self._running = False
        self.connect_count = 0

    def set_handler(self, handler: InboundHandler) -> None:
        self._on_envelope = handler

    @property
    def is_live(self) -> bool:
        return self._live.is_set() and self._ws is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def ensure_connected(self) -> None:
        """
        Start the connection loop unless it is already running.

        Safe to call from any trigger (startup, focus, visibility change);
        there is never more than one connection attempt in flight.
        """
        self._running = True
        if self._runner is not None and not self._runner.done():
            return
        self._runner = asyncio.create_task(self._run())

    async def start(self) -> None:
        self.ensure_connected()

    async def stop(self) -> None:
        self._running = False
        self._live.clear()
        if self._ws is not None:
            await self._ws.close()
        if self._runner:
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
            self._runner = None

    async def wait_live(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._live.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    # ------------------------------------------------------------------
    # sending
    # ------------------------------------------------------------------

    async def send(self, envelope: Envelope) -> bool:
        """
        Send an envelope, or queue it until the link is live.

        Returns:
            True if written to the socket now, False if queued
        """
        payload = envelope.to_json()
        ws = self._ws
        # Queued envelopes go first, so anything sent behind them queues too
        if not self.is_live or ws is None or self._pending:
            self._enqueue(payload)
            self.ensure_connected()
            return False
        try:
            await ws.send(payload)
            return True
        except ConnectionClosed as e:
            logger.warning(f"Send failed, keeping payload for retry: {e}")
            self._requeue(payload)
            self.ensure_connected()
            return False

    def _enqueue(self, payload: str) -> None:
        if len(self._pending) >= self.pending_limit:
            self._pending.popleft()
            logger.warning(f"Pending queue full ({self.pending_limit}); dropped oldest envelope")
        self._pending.append(payload)
        logger.debug(f"Queued envelope while offline (pending={len(self._pending)})")

    def _requeue(self, payload: str) -> None:
        """Put an unsent payload back at the head of the queue."""
        # It is the oldest entry, so a full queue drops it
        if len(self._pending) >= self.pending_limit:
            logger.warning(f"Pending queue full ({self.pending_limit}); dropped oldest envelope")
            return
        self._pending.appendleft(payload)

    async def _flush_pending(self, ws) -> None:
        while self._pending:
            payload = self._pending.popleft()
            try:
                await ws.send(payload)
            except ConnectionClosed as e:
                logger.warning(f"Failed to flush payload: {e}")
                self._requeue(payload)
                break

    # ------------------------------------------------------------------
    # connection loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while self._running:
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self.connect_count += 1
                    logger.info(f"Connected to relay at {self.url}")
                    await self._serve(ws)
            except asyncio.CancelledError:
                raise
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                logger.warning(f"Link error: {e}")
            finally:
                self._ws = None
                self._live.clear()

            if not self._running:
                break
            logger.info(f"Link closed; reconnecting in {self.reconnect_delay}s")
            await asyncio.sleep(self.reconnect_delay)

    async def _serve(self, ws) -> None:
        await ws.send(Envelope.ping().to_json())
        keepalive = asyncio.create_task(self._keepalive(ws))
        try:
            async for raw in ws:
                await self._handle_frame(ws, raw)
        finally:
            keepalive.cancel()
            try:
                await keepalive
            except asyncio.CancelledError:
                pass

    async def _keepalive(self, ws) -> None:
        """Drop the connection if the first pong never comes, then ping periodically."""
        try:
            await asyncio.wait_for(self._live.wait(), self.pong_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No pong within {self.pong_timeout}s; reconnecting")
            await ws.close()
            return

        if self.heartbeat_interval <= 0:
            return
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await ws.send(Envelope.ping().to_json())
            except ConnectionClosed:
                return

    async def _handle_frame(self, ws, raw: str | bytes) -> None:
        try:
            envelope = parse_frame(raw)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return

        if envelope.kind == Kind.PONG:
            if not self._live.is_set():
                self._live.set()
                logger.info("Link live")
                await self._flush_pending(ws)
            return
        if envelope.kind == Kind.PING:
            await ws.send(Envelope.pong().to_json())
            return

        if not self._live.is_set():
            logger.warning("Dropping chat envelope received before the link was confirmed")
            return
        if envelope.direction != Direction.TARGET_TO_SOURCE:
            logger.warning(f"Dropping {envelope.direction.value} envelope received by the agent")
            return
        if self._on_envelope is None:
            return
        try:
            await self._on_envelope(envelope)
        except Exception as e:
            logger.error(f"Inbound handler failed: {e}", exc_info=True)


__all__ = ["AgentLink", "InboundHandler"]
