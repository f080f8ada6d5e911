"""
Tests for the link envelope protocol
"""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from chatbridge.errors import ProtocolError
from chatbridge.media.transcoder import Attachment, encode
from chatbridge.protocol.envelope import Direction, Envelope, Kind, parse_frame


PNG = Attachment(name="photo.png", mime_type="image/png", payload=b"\x89PNG\r\n\x1a\n\x00\x01")


class TestControlFrames:
    """Tests for ping / pong."""

    def test_parse_ping(self):
        env = parse_frame('{"kind": "ping"}')
        assert env.kind == Kind.PING
        assert env.is_control
        assert env.direction is None

    def test_parse_pong(self):
        assert parse_frame(b'{"kind": "pong"}').kind == Kind.PONG

    def test_control_wire_format(self):
        assert Envelope.ping().to_wire() == {"kind": "ping"}
        assert json.loads(Envelope.pong().to_json()) == {"kind": "pong"}

    def test_control_cannot_carry_payload(self):
        with pytest.raises(ValidationError):
            Envelope(kind=Kind.PING, content="hello")


class TestTextFrames:
    """Tests for text envelopes."""

    def test_parse_source_to_target(self):
        env = parse_frame(json.dumps({
            "direction": "source_to_target",
            "type": "text",
            "sender": "jane-doe",
            "content": "hello",
        }))
        assert env.kind == Kind.TEXT
        assert env.direction == Direction.SOURCE_TO_TARGET
        assert env.conversation_key == "jane-doe"
        assert env.content == "hello"
        assert env.attachments == ()

    def test_recipient_accepted_as_sender_alias(self):
        env = parse_frame('{"direction": "source_to_target", "type": "text", "recipient": "jane-doe"}')
        assert env.conversation_key == "jane-doe"

    def test_missing_content_is_empty_string(self):
        env = parse_frame('{"direction": "source_to_target", "type": "text", "sender": "a", "content": null}')
        assert env.content == ""

    def test_source_to_target_requires_key(self):
        with pytest.raises(ProtocolError):
            parse_frame('{"direction": "source_to_target", "type": "text", "content": "hi"}')

    def test_target_to_source_without_key(self):
        env = parse_frame('{"direction": "target_to_source", "type": "text", "content": "hi"}')
        assert env.conversation_key is None

    def test_legacy_direction_names(self):
        env = parse_frame('{"direction": "messenger_to_discord", "type": "text", "sender": "a"}')
        assert env.direction == Direction.SOURCE_TO_TARGET

        env = parse_frame('{"direction": "discord_to_messenger", "type": "text", "recipient": "a"}')
        assert env.direction == Direction.TARGET_TO_SOURCE

    def test_target_to_source_wire_uses_recipient(self):
        wire = Envelope.text(Direction.TARGET_TO_SOURCE, "jane-doe", "hi").to_wire()
        assert wire == {
            "direction": "target_to_source",
            "type": "text",
            "recipient": "jane-doe",
            "content": "hi",
        }

    def test_json_keeps_unicode(self):
        raw = Envelope.text(Direction.SOURCE_TO_TARGET, "zoe", "Zoë ✓").to_json()
        assert "Zoë ✓" in raw
        assert parse_frame(raw).content == "Zoë ✓"


class TestFileFrames:
    """Tests for file envelopes."""

    def test_round_trip(self):
        env = Envelope.file(Direction.SOURCE_TO_TARGET, "jane-doe", [PNG], caption="look")
        parsed = parse_frame(env.to_json())

        assert parsed.kind == Kind.FILE
        assert parsed.content == "look"
        assert parsed.attachments == (PNG,)

    def test_wire_files(self):
        wire = Envelope.file(Direction.TARGET_TO_SOURCE, "jane-doe", [PNG]).to_wire()
        assert wire["files"] == [{"name": "photo.png", "mime": "image/png", "base64": encode(PNG.payload)}]

    def test_broken_entry_is_skipped(self):
        frame = {
            "direction": "source_to_target",
            "type": "file",
            "sender": "a",
            "files": [
                {"name": "bad.bin", "mime": "application/octet-stream", "base64": "not base64!"},
                {"name": "ok.txt", "mime": "text/plain", "base64": encode(b"ok")},
            ],
        }
        env = parse_frame(json.dumps(frame))
        assert [a.name for a in env.attachments] == ["ok.txt"]
        assert env.attachments[0].payload == b"ok"

    def test_no_usable_files(self):
        frame = {"direction": "source_to_target", "type": "file", "sender": "a", "files": [{"name": "x"}]}
        with pytest.raises(ProtocolError):
            parse_frame(json.dumps(frame))

    def test_missing_name_and_mime_get_defaults(self):
        frame = {"direction": "target_to_source", "type": "file", "files": [{"base64": encode(b"x")}]}
        attachment = parse_frame(json.dumps(frame)).attachments[0]
        assert attachment.mime_type == "application/octet-stream"
        assert attachment.name.startswith("file-")

    def test_file_envelope_requires_attachments(self):
        with pytest.raises(ValidationError):
            Envelope(kind=Kind.FILE, direction=Direction.SOURCE_TO_TARGET, conversation_key="a")

    def test_text_envelope_rejects_attachments(self):
        with pytest.raises(ValidationError):
            Envelope(
                kind=Kind.TEXT,
                direction=Direction.SOURCE_TO_TARGET,
                conversation_key="a",
                attachments=(PNG,),
            )

    def test_for_payload(self):
        assert Envelope.for_payload(Direction.TARGET_TO_SOURCE, "a", "hi", []).kind == Kind.TEXT
        assert Envelope.for_payload(Direction.TARGET_TO_SOURCE, "a", "hi", [PNG]).kind == Kind.FILE


class TestMalformedFrames:
    """Malformed input always surfaces as ProtocolError."""

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        '"ping"',
        '{"kind": "hello"}',
        '{"direction": "sideways", "type": "text", "sender": "a"}',
        '{"direction": "source_to_target", "type": "video", "sender": "a"}',
        '{"direction": "source_to_target", "type": "text", "sender": "a", "content": 42}',
        '{"direction": "source_to_target", "type": "text", "sender": 7}',
        '{"direction": "source_to_target", "type": "file", "sender": "a", "files": "nope"}',
    ])
    def test_rejected(self, raw):
        with pytest.raises(ProtocolError):
            parse_frame(raw)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
