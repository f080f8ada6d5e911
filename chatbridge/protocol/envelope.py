"""
Link envelope protocol

Defines the units exchanged between the Agent and the Relay and their JSON
wire format:

    {"kind": "ping"} / {"kind": "pong"}
    {"direction": "source_to_target", "type": "text" | "file",
     "sender": "<conversation key>", "content": "...",
     "files": [{"name": "...", "mime": "...", "base64": "..."}]}
    {"direction": "target_to_source", "type": "text" | "file",
     "recipient": "<conversation key>", "content": "...", "files": [...]}

Envelopes are validated on construction; parse_frame() turns any malformed
input into a ProtocolError so callers can log and drop it.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..errors import ProtocolError
from ..media.mime import DEFAULT_MIME
from ..media.transcoder import Attachment, decode, encode, infer_name_from_url

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"


class Kind(str, Enum):
    PING = "ping"
    PONG = "pong"
    TEXT = "text"
    FILE = "file"


CONTROL_KINDS = frozenset({Kind.PING, Kind.PONG})

# Direction names still sent by older Agents
LEGACY_DIRECTIONS = {
    "messenger_to_discord": Direction.SOURCE_TO_TARGET,
    "discord_to_messenger": Direction.TARGET_TO_SOURCE,
}


class WireFile(BaseModel):
    """One entry of the "files" array"""
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    mime: str | None = None
    base64: str = Field(..., description="Base64 payload")

    def to_attachment(self) -> Attachment:
        return Attachment(
            name=self.name or infer_name_from_url("", "file"),
            mime_type=self.mime or DEFAULT_MIME,
            payload=decode(self.base64),
        )

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "WireFile":
        return cls(name=attachment.name, mime=attachment.mime_type, base64=encode(attachment.payload))


class Envelope(BaseModel):
    """
    One discrete message unit crossing the link.

    Attributes:
        kind: ping / pong / text / file
        direction: Required for text and file, absent for ping and pong
        conversation_key: Canonical conversation key; required source->target
        content: Text body or file caption; never None
        attachments: Non-empty for file envelopes, empty otherwise
    """
    model_config = ConfigDict(frozen=True)

    kind: Kind
    direction: Direction | None = None
    conversation_key: str | None = None
    content: str = ""
    attachments: tuple[Attachment, ...] = ()

    @model_validator(mode="after")
    def _check_shape(self) -> "Envelope":
        if self.kind in CONTROL_KINDS:
            if self.direction is not None or self.attachments or self.content:
                raise ValueError(f"{self.kind.value} envelopes carry no payload")
            return self

        if self.direction is None:
            raise ValueError(f"{self.kind.value} envelope requires a direction")
        if self.direction == Direction.SOURCE_TO_TARGET and not self.conversation_key:
            raise ValueError("source_to_target envelope requires a conversation key")
        if self.kind == Kind.FILE and not self.attachments:
            raise ValueError("file envelope requires at least one attachment")
        if self.kind == Kind.TEXT and self.attachments:
            raise ValueError("text envelope cannot carry attachments")
        return self

    # ------------------------------------------------------------------
    # constructors
    # ------------------------------------------------------------------

    @classmethod
    def ping(cls) -> "Envelope":
        return cls(kind=Kind.PING)

    @classmethod
    def pong(cls) -> "Envelope":
        return cls(kind=Kind.PONG)

    @classmethod
    def text(cls, direction: Direction, conversation_key: str | None, content: str | None) -> "Envelope":
        return cls(
            kind=Kind.TEXT,
            direction=direction,
            conversation_key=conversation_key,
            content=content or "",
        )

    @classmethod
    def file(
        cls,
        direction: Direction,
        conversation_key: str | None,
        attachments: list[Attachment] | tuple[Attachment, ...],
        caption: str | None = "",
    ) -> "Envelope":
        return cls(
            kind=Kind.FILE,
            direction=direction,
            conversation_key=conversation_key,
            content=caption or "",
            attachments=tuple(attachments),
        )

    @classmethod
    def for_payload(
        cls,
        direction: Direction,
        conversation_key: str | None,
        content: str | None,
        attachments: list[Attachment],
    ) -> "Envelope":
        """text when there is nothing attached, file otherwise"""
        if attachments:
            return cls.file(direction, conversation_key, attachments, caption=content)
        return cls.text(direction, conversation_key, content)

    # ------------------------------------------------------------------
    # wire format
    # ------------------------------------------------------------------

    @property
    def is_control(self) -> bool:
        return self.kind in CONTROL_KINDS

    def to_wire(self) -> dict[str, Any]:
        if self.is_control:
            return {"kind": self.kind.value}

        frame: dict[str, Any] = {
            "direction": self.direction.value,
            "type": self.kind.value,
            "content": self.content,
        }
        key_field = "sender" if self.direction == Direction.SOURCE_TO_TARGET else "recipient"
        if self.conversation_key is not None:
            frame[key_field] = self.conversation_key
        if self.kind == Kind.FILE:
            frame["files"] = [WireFile.from_attachment(a).model_dump() for a in self.attachments]
        return frame

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


def _parse_direction(raw: Any) -> Direction:
    if isinstance(raw, str):
        if raw in LEGACY_DIRECTIONS:
            return LEGACY_DIRECTIONS[raw]
        try:
            return Direction(raw)
        except ValueError:
            pass
    raise ProtocolError(f"Unknown direction: {raw!r}")


def _parse_files(raw: Any) -> list[Attachment]:
    if not isinstance(raw, list):
        raise ProtocolError("files must be a list")
    attachments: list[Attachment] = []
    for index, entry in enumerate(raw):
        try:
            attachments.append(WireFile.model_validate(entry).to_attachment())
        except (ValidationError, ProtocolError) as e:
            # One broken file does not spoil the rest of the envelope
            logger.warning(f"Skipping malformed file #{index}: {e}")
    return attachments


def parse_frame(raw: str | bytes) -> Envelope:
    """
    Parse one text frame into an Envelope.

    Raises:
        ProtocolError: If the frame is not JSON, not an object, or does not
            describe a valid envelope
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        raise ProtocolError("Frame must be a JSON object")

    kind = data.get("kind")
    if kind in (Kind.PING.value, Kind.PONG.value):
        return Envelope(kind=Kind(kind))

    if "direction" not in data:
        raise ProtocolError(f"Frame has neither a control kind nor a direction (kind={kind!r})")

    direction = _parse_direction(data.get("direction"))

    msg_type = data.get("type")
    if msg_type not in (Kind.TEXT.value, Kind.FILE.value):
        raise ProtocolError(f"Unknown message type: {msg_type!r}")

    content = data.get("content")
    if content is None:
        content = ""
    if not isinstance(content, str):
        raise ProtocolError("content must be a string")

    if direction == Direction.SOURCE_TO_TARGET:
        key = data.get("sender") or data.get("recipient")
    else:
        key = data.get("recipient")
    if key is not None and not isinstance(key, str):
        raise ProtocolError("conversation key must be a string")

    attachments: list[Attachment] = []
    if msg_type == Kind.FILE.value:
        attachments = _parse_files(data.get("files", []))
        if not attachments:
            raise ProtocolError("file frame carries no usable attachment")

    try:
        return Envelope(
            kind=Kind(msg_type),
            direction=direction,
            conversation_key=key or None,
            content=content,
            attachments=tuple(attachments),
        )
    except ValidationError as e:
        raise ProtocolError(f"Invalid envelope: {e.errors()[0].get('msg', e)}")


__all__ = [
    "Direction",
    "Kind",
    "Envelope",
    "WireFile",
    "LEGACY_DIRECTIONS",
    "parse_frame",
]
