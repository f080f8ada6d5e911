"""Target platform adapters."""
from __future__ import annotations

from .base import ContainerNotFoundError, MessageHandler, OutboundPart, PlatformMessage, TargetPlatform
from .discord_platform import DiscordPlatform

__all__ = [
    "ContainerNotFoundError",
    "DiscordPlatform",
    "MessageHandler",
    "OutboundPart",
    "PlatformMessage",
    "TargetPlatform",
]
