"""
End-to-end tests: AgentLink -> RelayApp -> platform and back
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from chatbridge.config.config import RelayConfig
from chatbridge.platforms.base import PlatformMessage
from chatbridge.protocol.envelope import Direction, Envelope, Kind
from chatbridge.relay.app import RelayApp
from chatbridge.transport.client import AgentLink


def _config() -> RelayConfig:
    return RelayConfig(discord_token="token", guild_id=1, ws_port=0, ws_heartbeat=None)


class TestRelayApp:
    """Tests for RelayApp wiring."""

    @pytest.mark.asyncio
    async def test_round_trip(self, platform, wait_until):
        app = RelayApp.from_config(_config(), platform=platform)
        await app.start()
        inbound = AsyncMock()
        link = AgentLink(f"ws://127.0.0.1:{app.server.port}", on_envelope=inbound, heartbeat_interval=0)
        try:
            assert platform.started
            await link.start()
            assert await link.wait_live(timeout=2)

            await link.send(Envelope.text(Direction.SOURCE_TO_TARGET, "jane-doe", "hello"))
            await wait_until(lambda: platform.sends == [("jane-doe", "hello", [])])
            assert platform.created == ["jane-doe"]

            await wait_until(lambda: app.server.has_peer)
            await platform.emit(PlatformMessage(
                message_id="9",
                author_id="7",
                container_name="jane-doe",
                content="on my way",
            ))
            await wait_until(lambda: inbound.await_count == 1)

            reply = inbound.await_args.args[0]
            assert reply.kind == Kind.TEXT
            assert reply.conversation_key == "jane-doe"
            assert reply.content == "on my way"
        finally:
            await link.stop()
            await app.stop()
        assert not platform.started

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, platform, wait_until):
        app = RelayApp.from_config(_config(), platform=platform)
        task = asyncio.create_task(app.run())
        await wait_until(lambda: platform.started)

        app.request_stop()
        await asyncio.wait_for(task, 2)
        assert not platform.started

    def test_from_config_settings(self, platform):
        config = _config()
        config.send_timeout = 5.0
        config.send_retry_attempts = 3
        config.ignore_bots = False

        app = RelayApp.from_config(config, platform=platform)
        assert app.pump.send_timeout == 5.0
        assert app.pump.retry.attempts == 3
        assert app.pump.ignore_bots is False
        assert app.server.port == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
