"""
Relay process

Wires the pieces together:

    RelayLinkServer ──source_to_target──▶ DeliveryPump ──▶ DiscordPlatform
          ▲                                    │
          └────────target_to_source────────────┘
"""
from __future__ import annotations

import asyncio
import logging

from ..config.config import RelayConfig
from ..infra.retry_policy import RetryConfig
from ..media.loader import AttachmentLoader
from ..platforms.base import TargetPlatform
from ..routing.router import ConversationRouter
from ..transport.server import RelayLinkServer
from .pump import DeliveryPump

logger = logging.getLogger(__name__)


class RelayApp:
    """
    Relay runtime: link server, target platform and delivery pump.

    Usage:
        app = RelayApp.from_config(RelayConfig.from_env())
        await app.run()
    """

    def __init__(
        self,
        platform: TargetPlatform,
        server: RelayLinkServer,
        pump: DeliveryPump,
    ):
        self.platform = platform
        self.server = server
        self.pump = pump
        self._stopped = asyncio.Event()
        server.set_handler(pump.handle_envelope)

    @classmethod
    def from_config(cls, config: RelayConfig, platform: TargetPlatform | None = None) -> "RelayApp":
        if platform is None:
            from ..platforms.discord_platform import DiscordPlatform

            platform = DiscordPlatform(
                token=config.discord_token,
                guild_id=config.guild_id,
                enable_message_content=config.enable_message_content,
            )

        server = RelayLinkServer(
            host=config.ws_host,
            port=config.ws_port,
            heartbeat=config.ws_heartbeat,
        )
        pump = DeliveryPump(
            platform,
            server,
            router=ConversationRouter(platform),
            loader=AttachmentLoader(
                timeout=config.fetch_timeout,
                max_bytes=config.max_attachment_bytes,
            ),
            send_timeout=config.send_timeout,
            retry=RetryConfig(attempts=config.send_retry_attempts),
            ignore_bots=config.ignore_bots,
        )
        return cls(platform, server, pump)

    async def start(self) -> None:
        """Log in to the platform first, then open the link."""
        await self.platform.start()
        await self.server.start()
        logger.info("Relay started")

    async def stop(self) -> None:
        logger.info("Stopping relay...")
        await self.server.stop()
        await self.pump.close()
        await self.platform.stop()
        self._stopped.set()
        logger.info("Relay stopped")

    def request_stop(self) -> None:
        self._stopped.set()

    async def run(self) -> None:
        """Start, block until request_stop() or cancellation, then shut down."""
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()


__all__ = ["RelayApp"]
