"""
Bridge configuration

Startup inputs for the Relay and the Agent. Values come from the process
environment (optionally seeded from a .env file) and are validated once,
before any connection is attempted.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from ..errors import ConfigError

DEFAULT_WS_PORT = 8080
DEFAULT_WS_URL = "ws://localhost:8080"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_env_file(path: str | Path | None = None) -> bool:
    """Seed os.environ from a .env file. Existing variables win."""
    return load_dotenv(dotenv_path=path, override=False)


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _get_int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _get_float(env: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass
class RelayConfig:
    """
    Relay process configuration

    Configuration for the websocket server and the Discord side.
    """
    discord_token: str
    guild_id: int

    # Link server
    ws_host: str = "127.0.0.1"
    ws_port: int = DEFAULT_WS_PORT
    ws_heartbeat: float = 30.0  # aiohttp protocol-level ping interval

    # Discord behavior
    enable_message_content: bool = False
    ignore_bots: bool = True

    # Delivery limits
    fetch_timeout: float = 15.0
    send_timeout: float = 30.0
    send_retry_attempts: int = 1  # 1 = fire-and-forget
    max_attachment_bytes: int | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "RelayConfig":
        """
        Build configuration from environment variables

        Raises:
            ConfigError: If DISCORD_TOKEN or GUILD_ID is missing or invalid
        """
        env = os.environ if env is None else env

        missing = [key for key in ("DISCORD_TOKEN", "GUILD_ID") if not (env.get(key) or "").strip()]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )

        guild_id = _get_int(env, "GUILD_ID", None)
        port = _get_int(env, "WS_PORT", DEFAULT_WS_PORT)
        if not 0 < port < 65536:
            raise ConfigError(f"WS_PORT out of range: {port}")

        retry_attempts = _get_int(env, "SEND_RETRY_ATTEMPTS", 1)
        if retry_attempts < 1:
            raise ConfigError("SEND_RETRY_ATTEMPTS must be at least 1")

        return cls(
            discord_token=env["DISCORD_TOKEN"].strip(),
            guild_id=guild_id,
            ws_host=(env.get("WS_HOST") or "127.0.0.1").strip(),
            ws_port=port,
            enable_message_content=_get_bool(env, "ENABLE_MESSAGE_CONTENT", False),
            ignore_bots=_get_bool(env, "IGNORE_BOTS", True),
            fetch_timeout=_get_float(env, "FETCH_TIMEOUT", 15.0),
            send_timeout=_get_float(env, "SEND_TIMEOUT", 30.0),
            send_retry_attempts=retry_attempts,
            max_attachment_bytes=_get_int(env, "MAX_ATTACHMENT_BYTES", None),
        )


@dataclass
class AgentConfig:
    """
    Agent configuration

    Configuration for the source-side link client and dedup memory.
    """
    ws_url: str = DEFAULT_WS_URL
    reconnect_delay: float = 2.0
    heartbeat_interval: float = 30.0  # 0 disables periodic pings
    pong_timeout: float = 10.0
    pending_limit: int = 100
    fingerprint_max_age: float | None = None  # None = keep for process lifetime
    fetch_timeout: float = 15.0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AgentConfig":
        env = os.environ if env is None else env

        ws_url = (env.get("BRIDGE_WS_URL") or DEFAULT_WS_URL).strip()
        if not ws_url.startswith(("ws://", "wss://")):
            raise ConfigError(f"BRIDGE_WS_URL must be a ws:// or wss:// URL, got {ws_url!r}")

        pending_limit = _get_int(env, "PENDING_LIMIT", 100)
        if pending_limit < 1:
            raise ConfigError("PENDING_LIMIT must be at least 1")

        return cls(
            ws_url=ws_url,
            reconnect_delay=_get_float(env, "RECONNECT_DELAY", 2.0),
            heartbeat_interval=_get_float(env, "HEARTBEAT_INTERVAL", 30.0),
            pending_limit=pending_limit,
            fingerprint_max_age=_get_float(env, "FINGERPRINT_MAX_AGE", None),
            fetch_timeout=_get_float(env, "FETCH_TIMEOUT", 15.0),
        )
