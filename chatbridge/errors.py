from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    PROTOCOL = "PROTOCOL"
    LINK_DOWN = "LINK_DOWN"
    DELIVERY = "DELIVERY"
    FETCH = "FETCH"
    CONFIG = "CONFIG"


class BridgeError(Exception):
    def __init__(self, message: str, error_code: ErrorCode, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code.value,
            "message": str(self),
            "details": self.details,
        }


class ProtocolError(BridgeError):
    """Malformed or unknown frame on the link."""

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        msg = message or "Malformed frame"
        super().__init__(msg, ErrorCode.PROTOCOL, details)


class LinkUnavailableError(BridgeError):
    def __init__(self, message: str | None = None):
        msg = message or "No peer connected"
        super().__init__(msg, ErrorCode.LINK_DOWN)


class DeliveryError(BridgeError):
    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        msg = message or "Delivery failed"
        super().__init__(msg, ErrorCode.DELIVERY, details)


class AttachmentFetchError(BridgeError):
    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        msg = message or "Attachment fetch failed"
        super().__init__(msg, ErrorCode.FETCH, details)


class ConfigError(BridgeError):
    """Missing or invalid startup configuration. Fatal."""

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        msg = message or "Invalid configuration"
        super().__init__(msg, ErrorCode.CONFIG, details)


__all__ = [
    "ErrorCode",
    "BridgeError",
    "ProtocolError",
    "LinkUnavailableError",
    "DeliveryError",
    "AttachmentFetchError",
    "ConfigError",
]
