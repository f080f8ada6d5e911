"""Startup configuration for the Relay and the Agent."""
from __future__ import annotations

from .config import AgentConfig, RelayConfig, load_env_file

__all__ = ["AgentConfig", "RelayConfig", "load_env_file"]
