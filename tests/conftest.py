"""
Pytest configuration for chatbridge tests

Shared fakes for the target platform and the relay link
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from chatbridge.media.transcoder import Attachment
from chatbridge.platforms.base import ContainerNotFoundError, OutboundPart, PlatformMessage, TargetPlatform
from chatbridge.errors import DeliveryError


class FakeChannel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"FakeChannel({self.name!r})"


class FakePlatform(TargetPlatform):
    """In-memory target platform that records every call."""

    id = "fake"

    def __init__(self) -> None:
        super().__init__()
        self.containers: dict[str, FakeChannel] = {}
        self.created: list[str] = []
        self.sends: list[tuple[str, str, list[Attachment]]] = []
        self.send_delays: dict[str, float] = {}  # content -> seconds
        self.fail_next_sends = 0
        self.fail_contents: dict[str, int] = {}  # content -> failures left
        self.part_limit: int | None = None
        self.attempts: list[str] = []
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def fetch_container(self, name: str) -> Any | None:
        await asyncio.sleep(0)
        return self.containers.get(name)

    async def create_container(self, name: str) -> Any:
        await asyncio.sleep(0.01)
        channel = FakeChannel(name)
        self.containers[name] = channel
        self.created.append(name)
        return channel

    def prepare_parts(self, content: str, attachments: list[Attachment]) -> list[OutboundPart]:
        if self.part_limit is None or len(content) <= self.part_limit:
            return super().prepare_parts(content, attachments)
        chunks = [content[i:i + self.part_limit] for i in range(0, len(content), self.part_limit)]
        parts = [OutboundPart(content=chunk) for chunk in chunks[:-1]]
        parts.append(OutboundPart(content=chunks[-1], attachments=tuple(attachments)))
        return parts

    async def send_part(self, container: Any, part: OutboundPart) -> None:
        self.attempts.append(part.content)
        delay = self.send_delays.get(part.content, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.containers.get(container.name) is not container:
            raise ContainerNotFoundError(container.name)
        if self.fail_next_sends:
            self.fail_next_sends -= 1
            raise DeliveryError("simulated failure")
        if self.fail_contents.get(part.content):
            self.fail_contents[part.content] -= 1
            raise DeliveryError("simulated failure")
        self.sends.append((container.name, part.content, list(part.attachments)))

    async def emit(self, message: PlatformMessage) -> None:
        await self._dispatch(message)


class FakeSink:
    """Stands in for the link server on the relay side."""

    def __init__(self, has_peer: bool = True):
        self.has_peer = has_peer
        self.sent = []

    async def send_to_agent(self, envelope) -> bool:
        if not self.has_peer:
            return False
        self.sent.append(envelope)
        return True


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def wait_until():
    return _wait_until
