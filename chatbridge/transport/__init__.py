"""Agent/Relay websocket link."""
from __future__ import annotations

from .client import AgentLink
from .server import RelayLinkServer
from .session import LinkSession

__all__ = ["AgentLink", "LinkSession", "RelayLinkServer"]
