"""
Agent-side types

The Agent never touches a page directly. An embedding observer turns whatever
the source view renders into SourceEvents, and an actuator knows how to put a
reply back into the open conversation.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..media.loader import AttachmentSource
from ..media.transcoder import Attachment


@dataclass
class SourceEvent:
    """
    One message-like element seen in the source view.

    Attributes:
        sender_label: Conversation display name, if the observer could read it
        text: Message body
        fallback_text: Accessible label / alt text used when the body is empty
        message_id: Stable platform id, if any
        timestamp: Rendered timestamp, if any
        attachments: Media referenced by the message, not yet fetched
        node: The underlying view object (fast-path dedup only)
    """
    sender_label: str | None = None
    text: str = ""
    fallback_text: str = ""
    message_id: str | None = None
    timestamp: str | None = None
    attachments: list[AttachmentSource] = field(default_factory=list)
    node: Any = field(default=None, compare=False, repr=False)

    @property
    def body_text(self) -> str:
        return self.text or self.fallback_text

    @property
    def attachment_refs(self) -> list[str]:
        return [a.url for a in self.attachments]


EventCallback = Callable[[SourceEvent], Awaitable[Any]]


class SourceObserver(ABC):
    """Reports what the source view shows."""

    @abstractmethod
    def active_conversation(self) -> str | None:
        """Label of the conversation currently open, or None."""

    @abstractmethod
    def subscribe(self, callback: EventCallback) -> None:
        """Call *callback* for every message-like event the view renders."""


class SourceActuator(ABC):
    """Puts replies into the open conversation."""

    @abstractmethod
    async def inject_text(self, text: str) -> None:
        pass

    @abstractmethod
    async def inject_attachments(self, attachments: list[Attachment], caption: str = "") -> None:
        pass


__all__ = ["EventCallback", "SourceActuator", "SourceEvent", "SourceObserver"]
