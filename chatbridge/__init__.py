"""chatbridge - relay chat messages between a web chat view and Discord.

An in-browser Agent observes the source chat surface and talks to the Relay
over a single websocket; the Relay bridges to the target platform.
"""
from __future__ import annotations

__version__ = "0.1.0"
