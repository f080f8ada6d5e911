"""
Delivery pump

The only component that touches the target platform:

- source_to_target envelopes -> router -> platform send, one call per prepared part
- platform messages -> attachment fetch -> target_to_source envelope -> Agent

Both directions run through a KeyedSerializer so deliveries within one
conversation keep arrival order. Failures are logged; nothing is queued for
later (optional bounded retry per part).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..errors import DeliveryError
from ..infra.retry_policy import FIRE_AND_FORGET, RetryConfig, is_retryable_delivery_error, retry_async
from ..media.loader import AttachmentLoader
from ..platforms.base import ContainerNotFoundError, OutboundPart, PlatformMessage, TargetPlatform
from ..protocol.envelope import Direction, Envelope
from ..routing.canonical import canonicalize
from ..routing.router import ConversationRouter
from .serializer import KeyedSerializer

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 30.0


class AgentSink(Protocol):
    """Where target_to_source envelopes go (the link server)."""

    @property
    def has_peer(self) -> bool: ...

    async def send_to_agent(self, envelope: Envelope) -> bool: ...


class DeliveryPump:
    """Bridge between the link and the target platform."""

    def __init__(
        self,
        platform: TargetPlatform,
        sink: AgentSink,
        router: ConversationRouter | None = None,
        loader: AttachmentLoader | None = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        retry: RetryConfig = FIRE_AND_FORGET,
        ignore_bots: bool = True,
    ):
        """
        Args:
            platform: Target platform client
            sink: Link server used to reach the Agent
            router: Conversation router (defaults to one over platform)
            loader: Attachment loader for platform attachments
            send_timeout: Upper bound in seconds for one platform call
            retry: Retry policy for platform sends
            ignore_bots: Also skip messages from other bots, not only our own
        """
        self._platform = platform
        self._sink = sink
        self._router = router if router is not None else ConversationRouter(platform)
        self._loader = loader if loader is not None else AttachmentLoader()
        self.send_timeout = send_timeout
        self.retry = retry
        self.ignore_bots = ignore_bots
        self._serializer = KeyedSerializer()
        platform.subscribe(self.on_platform_message)

    @property
    def router(self) -> ConversationRouter:
        return self._router

    async def drain(self) -> None:
        await self._serializer.drain()

    async def close(self) -> None:
        await self.drain()
        await self._loader.close()

    # ------------------------------------------------------------------
    # source -> target
    # ------------------------------------------------------------------

    async def handle_envelope(self, envelope: Envelope) -> None:
        """Queue a source_to_target envelope for delivery to the platform."""
        if envelope.is_control or envelope.direction != Direction.SOURCE_TO_TARGET:
            logger.debug(f"Pump ignoring {envelope.kind.value} envelope")
            return
        key = canonicalize(envelope.conversation_key)
        self._serializer.submit(key, lambda: self._deliver_to_target(key, envelope), label="deliver")

    async def _deliver_to_target(self, key: str, envelope: Envelope) -> None:
        try:
            container = await asyncio.wait_for(self._router.resolve_target(key), self.send_timeout)
        except (DeliveryError, asyncio.TimeoutError) as e:
            logger.error(f"Cannot resolve container for {key}: {e!r}")
            return

        attachments = list(envelope.attachments)
        parts = self._platform.prepare_parts(envelope.content, attachments)

        # Each part is retried on its own; a retry never repeats a delivered part
        for index, part in enumerate(parts, start=1):
            async def attempt(part: OutboundPart = part) -> None:
                await asyncio.wait_for(self._platform.send_part(container, part), self.send_timeout)

            try:
                await retry_async(
                    attempt,
                    config=self.retry,
                    should_retry=is_retryable_delivery_error,
                    label=f"send to {key} ({index}/{len(parts)})",
                )
            except ContainerNotFoundError as e:
                self._router.forget(key)
                logger.warning(f"{e}; binding dropped, message lost")
                return
            except (DeliveryError, asyncio.TimeoutError) as e:
                logger.error(f"Delivery to {key} failed at part {index}/{len(parts)}: {e!r}")
                return

        logger.info(
            f"Delivered {envelope.kind.value} to {key} "
            f"(text_len={len(envelope.content)}, attachments={len(attachments)})"
        )

    # ------------------------------------------------------------------
    # target -> source
    # ------------------------------------------------------------------

    async def on_platform_message(self, message: PlatformMessage) -> None:
        """Turn one platform message into one envelope for the Agent."""
        if message.is_self:
            return
        if self.ignore_bots and message.author_is_bot:
            return
        if not message.container_name:
            return
        if not self._sink.has_peer:
            logger.debug(f"No agent connected; dropping message {message.message_id}")
            return

        key = canonicalize(message.container_name)
        self._serializer.submit(key, lambda: self._relay_to_source(key, message), label="relay")

    async def _relay_to_source(self, key: str, message: PlatformMessage) -> None:
        attachments = await self._loader.load_all(message.attachments)
        if message.attachments and len(attachments) < len(message.attachments):
            logger.warning(
                f"Relaying {len(attachments)}/{len(message.attachments)} attachments "
                f"for message {message.message_id}"
            )

        envelope = Envelope.for_payload(
            Direction.TARGET_TO_SOURCE,
            key,
            message.content,
            attachments,
        )
        if await self._sink.send_to_agent(envelope):
            logger.info(f"Relayed {envelope.kind.value} from #{key} to agent")


__all__ = ["AgentSink", "DeliveryPump"]
