"""Duplicate suppression for source-side events."""
from __future__ import annotations

from .fingerprint import compute_fingerprint
from .tracker import DedupTracker, ObserveResult

__all__ = ["DedupTracker", "ObserveResult", "compute_fingerprint"]
