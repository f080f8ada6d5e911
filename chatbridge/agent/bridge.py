"""
Agent bridge

Source view ──SourceEvent──▶ DedupTracker ──new──▶ Envelope ──▶ AgentLink
Source view ◀──inject────── active conversation check ◀── target_to_source
"""
from __future__ import annotations

import logging

from ..config.config import AgentConfig
from ..dedupe.tracker import DedupTracker
from ..media.loader import AttachmentLoader
from ..protocol.envelope import Direction, Envelope, Kind
from ..routing.canonical import canonicalize, same_conversation
from ..transport.client import AgentLink
from .echo_tracker import EchoTracker, attachment_signature
from .types import SourceActuator, SourceEvent, SourceObserver

logger = logging.getLogger(__name__)


class AgentBridge:
    """
    Connects a source observer/actuator pair to the Relay.

    Usage:
        bridge = AgentBridge.from_config(observer, actuator, AgentConfig.from_env())
        await bridge.start()
    """

    def __init__(
        self,
        observer: SourceObserver,
        actuator: SourceActuator,
        link: AgentLink,
        tracker: DedupTracker | None = None,
        loader: AttachmentLoader | None = None,
        echo_tracker: EchoTracker | None = None,
    ):
        self.observer = observer
        self.actuator = actuator
        self.link = link
        self.tracker = tracker if tracker is not None else DedupTracker()
        self.loader = loader if loader is not None else AttachmentLoader()
        self.echo_tracker = echo_tracker if echo_tracker is not None else EchoTracker()
        self._started = False

    @classmethod
    def from_config(
        cls,
        observer: SourceObserver,
        actuator: SourceActuator,
        config: AgentConfig,
    ) -> "AgentBridge":
        link = AgentLink(
            config.ws_url,
            reconnect_delay=config.reconnect_delay,
            heartbeat_interval=config.heartbeat_interval,
            pong_timeout=config.pong_timeout,
            pending_limit=config.pending_limit,
        )
        return cls(
            observer,
            actuator,
            link,
            tracker=DedupTracker(max_age_seconds=config.fingerprint_max_age),
            loader=AttachmentLoader(timeout=config.fetch_timeout),
        )

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.link.set_handler(self.handle_envelope)
        self.observer.subscribe(self.handle_event)
        await self.link.start()
        logger.info(f"Agent bridge started ({self.link.url})")

    async def stop(self) -> None:
        await self.link.stop()
        await self.loader.close()
        self._started = False
        logger.info("Agent bridge stopped")

    async def handle_event(self, event: SourceEvent) -> Envelope | None:
        """
        Relay one observed event if it has not been relayed before.

        Returns:
            The envelope handed to the link, or None when the event was
            a duplicate, an echo of an injected reply, or carried nothing.
        """
        result = self.tracker.observe(event)
        if not result.new:
            logger.debug(f"Skipping event ({result.reason})")
            return None

        key = canonicalize(event.sender_label or self.observer.active_conversation())
        echo_text = event.text
        if not echo_text.strip() and event.attachments:
            echo_text = attachment_signature(len(event.attachments))
        if self.echo_tracker.is_echo(key, echo_text):
            logger.debug(f"Skipping echo of injected reply in {key}")
            return None

        attachments = await self.loader.load_all(event.attachments) if event.attachments else []

        if attachments:
            envelope = Envelope.file(Direction.SOURCE_TO_TARGET, key, attachments, caption=event.text)
        elif event.text:
            envelope = Envelope.text(Direction.SOURCE_TO_TARGET, key, event.text)
        elif event.fallback_text:
            envelope = Envelope.text(Direction.SOURCE_TO_TARGET, key, event.fallback_text)
        else:
            logger.warning(f"Nothing to relay for {key}: every attachment failed and no text")
            return None

        await self.link.send(envelope)
        logger.info(
            f"Observed {envelope.kind.value} in {key} "
            f"(text_len={len(envelope.content)}, attachments={len(attachments)})"
        )
        return envelope

    async def handle_envelope(self, envelope: Envelope) -> bool:
        """
        Render a target_to_source envelope into the open conversation.

        Returns:
            True when something was injected
        """
        if envelope.is_control or envelope.direction != Direction.TARGET_TO_SOURCE:
            return False

        active = self.observer.active_conversation()
        if not active:
            logger.info(f"No conversation open; dropping reply for {envelope.conversation_key}")
            return False
        if envelope.conversation_key is not None and not same_conversation(active, envelope.conversation_key):
            logger.info(
                f"Reply for {envelope.conversation_key} does not match open conversation "
                f"{canonicalize(active)}; dropping"
            )
            return False

        try:
            if envelope.kind == Kind.FILE:
                await self.actuator.inject_attachments(list(envelope.attachments), envelope.content)
            else:
                await self.actuator.inject_text(envelope.content)
        except Exception as e:
            logger.error(f"Injecting reply into {canonicalize(active)} failed: {e}", exc_info=True)
            return False

        echo_text = envelope.content
        if not echo_text.strip() and envelope.attachments:
            echo_text = attachment_signature(len(envelope.attachments))
        self.echo_tracker.mark_outbound(canonicalize(active), echo_text)
        return True


__all__ = ["AgentBridge"]
