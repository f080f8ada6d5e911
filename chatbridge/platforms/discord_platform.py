"""
Discord target platform

One guild is the workspace; every conversation maps to a text channel named
after its canonical key.
"""
from __future__ import annotations

import asyncio
import io
import logging
from typing import Any

import discord

from ..errors import DeliveryError
from ..media.loader import AttachmentSource
from ..media.transcoder import Attachment
from .base import ContainerNotFoundError, OutboundPart, PlatformMessage, TargetPlatform

logger = logging.getLogger(__name__)

DISCORD_MAX_MESSAGE_LENGTH = 2000
READY_TIMEOUT = 60.0


def split_message(content: str, limit: int = DISCORD_MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks Discord accepts, preferring line breaks."""
    if len(content) <= limit:
        return [content]
    chunks: list[str] = []
    remaining = content
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


def build_intents(enable_message_content: bool) -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    # Privileged; must also be enabled in the developer portal
    intents.message_content = enable_message_content
    return intents


class DiscordPlatform(TargetPlatform):
    """
    Discord bot bridged to the source surface.

    Requires the bot to hold Manage Channels in the guild so conversation
    channels can be created on demand.
    """

    id = "discord"

    def __init__(
        self,
        token: str,
        guild_id: int,
        enable_message_content: bool = False,
        client: discord.Client | None = None,
    ):
        super().__init__()
        self._token = token
        self._guild_id = guild_id
        self._enable_message_content = enable_message_content
        self._client = client or discord.Client(intents=build_intents(enable_message_content))
        self._connect_task: asyncio.Task | None = None
        self._register_events()

    @property
    def client(self) -> discord.Client:
        return self._client

    def _register_events(self) -> None:
        client = self._client

        @client.event
        async def on_ready() -> None:
            logger.info(f"[{self.id}] Logged in as {client.user}")
            logger.info(f"[{self.id}] MessageContent intent: {self._enable_message_content}")

        @client.event
        async def on_message(message: discord.Message) -> None:
            await self._handle_discord_message(message)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Log in, open the gateway connection and wait until ready."""
        logger.info(f"[{self.id}] Starting Discord client...")
        await self._client.login(self._token)
        self._connect_task = asyncio.create_task(self._client.connect(reconnect=True))
        await asyncio.wait_for(self._client.wait_until_ready(), READY_TIMEOUT)

    async def stop(self) -> None:
        logger.info(f"[{self.id}] Stopping Discord client...")
        await self._client.close()
        if self._connect_task:
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
            self._connect_task = None

    # ------------------------------------------------------------------
    # containers
    # ------------------------------------------------------------------

    async def _get_guild(self) -> discord.Guild:
        guild = self._client.get_guild(self._guild_id)
        if guild is None:
            guild = await self._client.fetch_guild(self._guild_id)
        return guild

    async def fetch_container(self, name: str) -> discord.TextChannel | None:
        guild = await self._get_guild()
        channel = discord.utils.get(guild.text_channels, name=name)
        if channel is not None:
            return channel
        # Guilds obtained through fetch_guild carry no channel cache
        for candidate in await guild.fetch_channels():
            if isinstance(candidate, discord.TextChannel) and candidate.name == name:
                return candidate
        return None

    async def create_container(self, name: str) -> discord.TextChannel:
        guild = await self._get_guild()
        try:
            return await guild.create_text_channel(name=name, reason="chatbridge conversation")
        except discord.HTTPException as e:
            raise DeliveryError(f"Failed to create channel {name}: {e}", details={"container": name})

    # ------------------------------------------------------------------
    # sending
    # ------------------------------------------------------------------

    def prepare_parts(self, content: str, attachments: list[Attachment]) -> list[OutboundPart]:
        chunks = split_message(content) if content else []
        if not chunks and not attachments:
            return []
        # Leading chunks alone, the last one carries the files as its caption
        parts = [OutboundPart(content=chunk) for chunk in chunks[:-1]]
        parts.append(OutboundPart(content=chunks[-1] if chunks else "", attachments=tuple(attachments)))
        return parts

    async def send_part(self, container: Any, part: OutboundPart) -> None:
        kwargs: dict[str, Any] = {}
        if part.content:
            kwargs["content"] = part.content
        if part.attachments:
            # discord.File buffers are single use
            kwargs["files"] = [discord.File(io.BytesIO(a.payload), filename=a.name) for a in part.attachments]
        if not kwargs:
            logger.debug(f"[{self.id}] Nothing to send to #{container.name}")
            return

        try:
            await container.send(**kwargs)
        except discord.NotFound:
            raise ContainerNotFoundError(container.name)
        except discord.HTTPException as e:
            raise DeliveryError(
                f"Discord send failed in #{container.name}: {e}",
                details={"container": container.name, "status": e.status},
            )

    # ------------------------------------------------------------------
    # inbound
    # ------------------------------------------------------------------

    async def _handle_discord_message(self, message: discord.Message) -> None:
        if message.guild is None or message.guild.id != self._guild_id:
            return

        me = self._client.user
        inbound = PlatformMessage(
            message_id=str(message.id),
            author_id=str(message.author.id),
            author_is_bot=bool(message.author.bot),
            is_self=me is not None and message.author.id == me.id,
            container_name=getattr(message.channel, "name", None),
            content=message.content or "",
            attachments=[
                AttachmentSource(url=att.url, name=att.filename, mime_type=att.content_type)
                for att in message.attachments
            ],
        )
        logger.debug(
            f"[{self.id}] Message in #{inbound.container_name}: "
            f"text_len={len(inbound.content)}, attachments={len(inbound.attachments)}"
        )
        await self._dispatch(inbound)


__all__ = ["DiscordPlatform", "build_intents", "split_message", "DISCORD_MAX_MESSAGE_LENGTH"]
