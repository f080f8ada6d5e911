"""
Conversation router

Maps canonical conversation keys to target containers (Discord channels),
creating the container on first use. Bindings are cached for the process
lifetime and never persisted.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..platforms.base import TargetPlatform
from .canonical import canonicalize

logger = logging.getLogger(__name__)


class ConversationRouter:
    """
    Resolve conversation keys to target containers.

    Lookup-or-create runs under a per-key lock, so two near-simultaneous first
    messages for the same conversation create a single container.
    """

    def __init__(self, platform: TargetPlatform):
        self._platform = platform
        self._bindings: dict[str, Any] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def resolve_target(self, conversation_key: str | None) -> Any:
        """
        Get the container for a conversation, creating it if absent.

        Raises:
            Whatever the platform raises on lookup or creation failure
        """
        name = canonicalize(conversation_key)

        container = self._bindings.get(name)
        if container is not None:
            return container

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            container = self._bindings.get(name)
            if container is not None:
                return container

            container = await self._platform.fetch_container(name)
            if container is None:
                logger.info(f"Creating container for conversation: {name}")
                container = await self._platform.create_container(name)
            else:
                logger.debug(f"Bound existing container: {name}")

            self._bindings[name] = container
            return container

    def forget(self, conversation_key: str | None) -> bool:
        """Drop a cached binding (e.g. after the container was deleted)."""
        name = canonicalize(conversation_key)
        return self._bindings.pop(name, None) is not None

    def bindings(self) -> dict[str, Any]:
        return dict(self._bindings)


__all__ = ["ConversationRouter"]
