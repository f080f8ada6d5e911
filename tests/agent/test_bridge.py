"""
Tests for the agent bridge
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from chatbridge.agent.bridge import AgentBridge
from chatbridge.agent.echo_tracker import EchoTracker
from chatbridge.agent.types import SourceActuator, SourceEvent, SourceObserver
from chatbridge.config.config import AgentConfig
from chatbridge.dedupe.tracker import DedupTracker
from chatbridge.media.loader import AttachmentSource
from chatbridge.media.mime import MediaKind
from chatbridge.media.transcoder import Attachment
from chatbridge.protocol.envelope import Direction, Envelope, Kind

PIXEL = "data:image/png;base64,iVBORw0KGgo="


class FakeObserver(SourceObserver):
    def __init__(self, active: str | None = "Jane Doe"):
        self.active = active
        self.callbacks = []

    def active_conversation(self) -> str | None:
        return self.active

    def subscribe(self, callback) -> None:
        self.callbacks.append(callback)


class FakeActuator(SourceActuator):
    def __init__(self):
        self.inject_text = AsyncMock()
        self.inject_attachments = AsyncMock()

    async def inject_text(self, text: str) -> None:
        pass

    async def inject_attachments(self, attachments, caption: str = "") -> None:
        pass


def _bridge(active: str | None = "Jane Doe") -> AgentBridge:
    link = MagicMock()
    link.send = AsyncMock(return_value=True)
    link.start = AsyncMock()
    link.stop = AsyncMock()
    return AgentBridge(FakeObserver(active), FakeActuator(), link)


class TestHandleEvent:
    """Source events to envelopes."""

    @pytest.mark.asyncio
    async def test_text_event(self):
        bridge = _bridge()
        envelope = await bridge.handle_event(SourceEvent(sender_label="Jane Doe", text="hello"))

        assert envelope.kind == Kind.TEXT
        assert envelope.direction == Direction.SOURCE_TO_TARGET
        assert envelope.conversation_key == "jane-doe"
        assert envelope.content == "hello"
        bridge.link.send.assert_awaited_once_with(envelope)

    @pytest.mark.asyncio
    async def test_duplicate_event_sent_once(self):
        bridge = _bridge()
        await bridge.handle_event(SourceEvent(sender_label="Jane Doe", text="hello", timestamp="10:00"))
        assert await bridge.handle_event(SourceEvent(sender_label="Jane Doe", text="hello", timestamp="10:00")) is None
        assert bridge.link.send.await_count == 1

    @pytest.mark.asyncio
    async def test_label_from_active_conversation(self):
        bridge = _bridge(active="Zoë & Co.")
        envelope = await bridge.handle_event(SourceEvent(text="hi"))
        assert envelope.conversation_key == "zoe-co"

    @pytest.mark.asyncio
    async def test_unknown_conversation(self):
        bridge = _bridge(active=None)
        envelope = await bridge.handle_event(SourceEvent(text="hi"))
        assert envelope.conversation_key == "unknown"

    @pytest.mark.asyncio
    async def test_attachment_event(self):
        bridge = _bridge()
        envelope = await bridge.handle_event(SourceEvent(
            sender_label="Jane Doe",
            text="look",
            attachments=[AttachmentSource(url=PIXEL, kind=MediaKind.IMAGE)],
        ))

        assert envelope.kind == Kind.FILE
        assert envelope.content == "look"
        assert envelope.attachments[0].mime_type == "image/png"
        assert envelope.attachments[0].name.startswith("image-")

    @pytest.mark.asyncio
    async def test_failed_attachment_falls_back_to_label(self):
        bridge = _bridge()
        envelope = await bridge.handle_event(SourceEvent(
            sender_label="Jane Doe",
            fallback_text="Jane sent a photo",
            attachments=[AttachmentSource(url="blob:https://www.messenger.com/1234")],
        ))

        assert envelope.kind == Kind.TEXT
        assert envelope.content == "Jane sent a photo"

    @pytest.mark.asyncio
    async def test_nothing_left_to_send(self):
        bridge = _bridge()
        envelope = await bridge.handle_event(SourceEvent(
            sender_label="Jane Doe",
            attachments=[AttachmentSource(url="blob:https://www.messenger.com/1234")],
        ))
        assert envelope is None
        bridge.link.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_event_ignored(self):
        bridge = _bridge()
        assert await bridge.handle_event(SourceEvent(sender_label="Jane Doe")) is None
        bridge.link.send.assert_not_awaited()


class TestHandleEnvelope:
    """Replies injected into the source view."""

    @pytest.mark.asyncio
    async def test_file_reply_with_caption_in_matching_conversation(self):
        bridge = _bridge(active="Jane Doe")
        photo = Attachment(name="p.png", mime_type="image/png", payload=b"PNG")
        envelope = Envelope.file(Direction.TARGET_TO_SOURCE, "jane-doe", [photo], caption="here you go")

        assert await bridge.handle_envelope(envelope) is True
        bridge.actuator.inject_attachments.assert_awaited_once_with([photo], "here you go")
        bridge.actuator.inject_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reply_for_another_conversation(self):
        bridge = _bridge(active="John Smith")
        photo = Attachment(name="p.png", mime_type="image/png", payload=b"PNG")
        envelope = Envelope.file(Direction.TARGET_TO_SOURCE, "jane-doe", [photo], caption="here you go")

        assert await bridge.handle_envelope(envelope) is False
        bridge.actuator.inject_attachments.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_text_reply(self):
        bridge = _bridge()
        assert await bridge.handle_envelope(Envelope.text(Direction.TARGET_TO_SOURCE, "jane-doe", "hi"))
        bridge.actuator.inject_text.assert_awaited_once_with("hi")

    @pytest.mark.asyncio
    async def test_reply_without_key_goes_to_open_conversation(self):
        bridge = _bridge(active="John Smith")
        assert await bridge.handle_envelope(Envelope.text(Direction.TARGET_TO_SOURCE, None, "hi"))
        bridge.actuator.inject_text.assert_awaited_once_with("hi")

    @pytest.mark.asyncio
    async def test_no_open_conversation(self):
        bridge = _bridge(active=None)
        assert not await bridge.handle_envelope(Envelope.text(Direction.TARGET_TO_SOURCE, None, "hi"))

    @pytest.mark.asyncio
    async def test_non_reply_envelopes_ignored(self):
        bridge = _bridge()
        assert not await bridge.handle_envelope(Envelope.pong())
        assert not await bridge.handle_envelope(Envelope.text(Direction.SOURCE_TO_TARGET, "jane-doe", "x"))

    @pytest.mark.asyncio
    async def test_actuator_failure(self):
        bridge = _bridge()
        bridge.actuator.inject_text.side_effect = RuntimeError("composer not found")
        assert await bridge.handle_envelope(Envelope.text(Direction.TARGET_TO_SOURCE, "jane-doe", "hi")) is False

    @pytest.mark.asyncio
    async def test_injected_reply_is_not_relayed_back(self):
        bridge = _bridge()
        await bridge.handle_envelope(Envelope.text(Direction.TARGET_TO_SOURCE, "jane-doe", "on my way"))

        echoed = await bridge.handle_event(SourceEvent(sender_label="Jane Doe", text="on my way"))
        assert echoed is None
        bridge.link.send.assert_not_awaited()

        # Typed again by the user later: a new message
        again = await bridge.handle_event(SourceEvent(sender_label="Jane Doe", text="on my way", timestamp="10:05"))
        assert again is not None

    @pytest.mark.asyncio
    async def test_captionless_file_reply_is_not_relayed_back(self):
        bridge = _bridge()
        photo = Attachment(name="p.png", mime_type="image/png", payload=b"PNG")
        await bridge.handle_envelope(Envelope.file(Direction.TARGET_TO_SOURCE, "jane-doe", [photo]))

        echoed = await bridge.handle_event(
            SourceEvent(sender_label="Jane Doe", attachments=[AttachmentSource(url=PIXEL, kind=MediaKind.IMAGE)])
        )
        assert echoed is None
        bridge.link.send.assert_not_awaited()
        assert bridge.echo_tracker.count() == 0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_wires_observer_and_link(self):
        bridge = _bridge()
        await bridge.start()

        assert bridge.observer.callbacks == [bridge.handle_event]
        bridge.link.set_handler.assert_called_once_with(bridge.handle_envelope)
        bridge.link.start.assert_awaited_once()

        await bridge.stop()
        bridge.link.stop.assert_awaited_once()

    def test_from_config(self):
        config = AgentConfig(ws_url="ws://relay:9000", pending_limit=5, fingerprint_max_age=60)
        bridge = AgentBridge.from_config(FakeObserver(), FakeActuator(), config)

        assert bridge.link.url == "ws://relay:9000"
        assert bridge.link.pending_limit == 5
        assert bridge.tracker.max_age_seconds == 60

    def test_injected_collaborators_are_kept(self):
        tracker = DedupTracker(max_age_seconds=60)
        echo_tracker = EchoTracker()
        bridge = AgentBridge(FakeObserver(), FakeActuator(), MagicMock(), tracker=tracker, echo_tracker=echo_tracker)

        assert bridge.tracker is tracker
        assert bridge.echo_tracker is echo_tracker


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
