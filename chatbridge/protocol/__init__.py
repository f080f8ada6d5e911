"""Envelope protocol spoken over the Agent/Relay link."""
from __future__ import annotations

from .envelope import Direction, Envelope, Kind, WireFile, parse_frame

__all__ = ["Direction", "Envelope", "Kind", "WireFile", "parse_frame"]
