"""
Target platform interface

The Relay only talks to the target chat platform through this interface.
A container is whatever the platform groups a conversation into (a Discord
text channel); its type is opaque to the rest of the bridge.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..errors import DeliveryError
from ..media.loader import AttachmentSource
from ..media.transcoder import Attachment


@dataclass
class PlatformMessage:
    """
    Normalized "new message arrived" event from the target platform.

    Attributes:
        message_id: Platform message id
        author_id: Platform author id
        author_is_bot: Author is an automated account
        is_self: Author is the relay's own identity
        container_name: Name of the container the message was posted in
        content: Message text (may be empty)
        attachments: Attachment references, fetched later by the pump
    """
    message_id: str
    author_id: str
    container_name: str | None
    content: str = ""
    author_is_bot: bool = False
    is_self: bool = False
    attachments: list[AttachmentSource] = field(default_factory=list)


MessageHandler = Callable[[PlatformMessage], Awaitable[None]]


@dataclass(frozen=True)
class OutboundPart:
    """One platform call worth of an outbound message."""
    content: str = ""
    attachments: tuple[Attachment, ...] = ()


class ContainerNotFoundError(DeliveryError):
    """The container vanished between lookup and send."""

    def __init__(self, name: str):
        super().__init__(f"Container not found: {name}", details={"container": name})
        self.name = name


class TargetPlatform(ABC):
    """Abstract target chat platform"""

    id: str = "target"

    def __init__(self) -> None:
        self._handler: MessageHandler | None = None

    def subscribe(self, handler: MessageHandler) -> None:
        """Register the callback for new platform messages (one subscriber)."""
        self._handler = handler

    async def _dispatch(self, message: PlatformMessage) -> None:
        if self._handler is not None:
            await self._handler(message)

    @abstractmethod
    async def start(self) -> None:
        """Connect and begin delivering events."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect."""

    @abstractmethod
    async def fetch_container(self, name: str) -> Any | None:
        """Find an existing container by name, or None."""

    @abstractmethod
    async def create_container(self, name: str) -> Any:
        """Create a container with the given name."""

    def prepare_parts(self, content: str, attachments: list[Attachment]) -> list[OutboundPart]:
        """Break one message into the platform calls that deliver it, in order."""
        if not content and not attachments:
            return []
        return [OutboundPart(content=content, attachments=tuple(attachments))]

    @abstractmethod
    async def send_part(self, container: Any, part: OutboundPart) -> None:
        """
        Deliver one prepared part with a single platform call.

        Raises:
            ContainerNotFoundError: If the container no longer exists
            DeliveryError: On any other send failure
        """

    async def send(self, container: Any, content: str, attachments: list[Attachment]) -> None:
        """Send text and attachments to a container, part by part."""
        for part in self.prepare_parts(content, attachments):
            await self.send_part(container, part)


__all__ = [
    "ContainerNotFoundError",
    "MessageHandler",
    "OutboundPart",
    "PlatformMessage",
    "TargetPlatform",
]
