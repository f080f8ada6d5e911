"""Relay link server

Accepts the Agent's websocket (aiohttp) and speaks the envelope protocol:

    Agent                         Relay
      │ ── {"kind": "ping"} ──────▶ │
      │ ◀────── {"kind": "pong"} ── │   (exactly one, nothing else happens)
      │ ── source_to_target ──────▶ │   → on_envelope callback
      │ ◀────── target_to_source ── │   ← send_to_agent()

Only the most recent connection is current. Outbound envelopes while no Agent
is connected are dropped, never queued.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Optional

from aiohttp import WSMsgType, web

from ..errors import LinkUnavailableError, ProtocolError
from ..protocol.envelope import Direction, Envelope, Kind, parse_frame
from .session import LinkSession

logger = logging.getLogger(__name__)

EnvelopeHandler = Callable[[Envelope], Awaitable[None]]


class RelayLinkServer:
    """
    Websocket endpoint for the Agent.

    Usage:
        server = RelayLinkServer(port=8080, on_envelope=pump.handle_envelope)
        await server.start()
        ...
        await server.send_to_agent(envelope)
        await server.stop()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        on_envelope: Optional[EnvelopeHandler] = None,
        heartbeat: float | None = 30.0,
    ):
        """
        Args:
            host: Bind address
            port: Bind port (0 picks a free one, see .port after start)
            on_envelope: Called for every valid source_to_target envelope
            heartbeat: aiohttp protocol-level ping interval in seconds
        """
        self.host = host
        self.port = port
        self.heartbeat = heartbeat
        self._on_envelope = on_envelope
        self._current: LinkSession | None = None
        self._sessions: set[LinkSession] = set()
        self._ids = itertools.count(1)
        self._runner: web.AppRunner | None = None

    def set_handler(self, handler: EnvelopeHandler) -> None:
        self._on_envelope = handler

    @property
    def current_session(self) -> LinkSession | None:
        return self._current

    @property
    def has_peer(self) -> bool:
        return self._current is not None and self._current.active

    def require_session(self) -> LinkSession:
        """
        Raises:
            LinkUnavailableError: If no Agent is connected
        """
        if not self.has_peer:
            raise LinkUnavailableError("No agent connected")
        return self._current

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_websocket)
        app.router.add_get("/ws", self.handle_websocket)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        # Resolve the real port when bound to 0
        addresses = self._runner.addresses
        if addresses:
            self.port = addresses[0][1]
        logger.info(f"Link server listening on ws://{self.host}:{self.port}")

    async def stop(self) -> None:
        logger.info("Stopping link server...")
        if self._sessions:
            close_tasks = [session.websocket.close() for session in list(self._sessions)]
            try:
                await asyncio.wait_for(asyncio.gather(*close_tasks, return_exceptions=True), timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("Closing agent sockets timed out")
            self._sessions.clear()
        self._current = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ------------------------------------------------------------------
    # connections
    # ------------------------------------------------------------------

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self.heartbeat)
        await ws.prepare(request)

        session = LinkSession(ws, next(self._ids), request.remote or "unknown")
        previous = self._current
        self._current = session
        self._sessions.add(session)
        if previous is not None:
            previous.retire()
            logger.info(f"Agent {session.remote_addr} supersedes session {previous.session_id}")
        logger.info(f"Agent connected: {session!r}")

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_frame(session, msg.data)
                elif msg.type == WSMsgType.BINARY:
                    logger.warning(f"Dropping binary frame from session {session.session_id}")
                elif msg.type == WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
                    break
        finally:
            self._sessions.discard(session)
            if self._current is session:
                self._current = None
            logger.info(f"Agent disconnected: {session!r}")

        return ws

    async def _handle_frame(self, session: LinkSession, raw: str) -> None:
        try:
            envelope = parse_frame(raw)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed frame from session {session.session_id}: {e}")
            return

        if envelope.kind == Kind.PING:
            await session.send(Envelope.pong())
            return
        if envelope.kind == Kind.PONG:
            logger.debug(f"Pong from session {session.session_id}")
            return
        if envelope.direction != Direction.SOURCE_TO_TARGET:
            logger.warning(f"Dropping {envelope.direction.value} envelope received by the relay")
            return

        if self._on_envelope is None:
            logger.debug("No envelope handler registered; dropping")
            return
        try:
            await self._on_envelope(envelope)
        except Exception as e:
            logger.error(f"Envelope handler failed: {e}", exc_info=True)

    async def send_to_agent(self, envelope: Envelope) -> bool:
        """
        Send an envelope to the current Agent.

        Returns:
            False when no Agent is connected (the envelope is dropped)
        """
        try:
            session = self.require_session()
        except LinkUnavailableError as e:
            logger.info(f"{e}; dropping {envelope.kind.value} for {envelope.conversation_key}")
            return False
        return await session.send(envelope)


__all__ = ["RelayLinkServer", "EnvelopeHandler"]
