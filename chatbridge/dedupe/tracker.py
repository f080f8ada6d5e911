"""
Dedup / session tracker

Remembers which source events were already emitted so that DOM re-scans,
virtualized-list re-mounts and link reconnects never relay the same message
twice.

Two layers:
1. Fingerprints (content derived) - the source of truth
2. Node identities (weakly referenced) - remember the fingerprint each view
   element last carried; a hit only counts when the content still matches
"""
from __future__ import annotations

import logging
import time
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from .fingerprint import compute_fingerprint

logger = logging.getLogger(__name__)


class ObservableEvent(Protocol):
    """Fields the tracker reads from a source event"""
    message_id: str | None
    timestamp: str | None
    node: Any

    @property
    def body_text(self) -> str: ...

    @property
    def attachment_refs(self) -> list[str]: ...


@dataclass(frozen=True)
class ObserveResult:
    """
    Outcome of DedupTracker.observe()

    Attributes:
        new: True only the first time a fingerprint is seen
        fingerprint: The computed fingerprint (None for noise)
        reason: "new", "duplicate", "seen_node" or "empty"
    """
    new: bool
    fingerprint: str | None = None
    reason: str = "new"


class DedupTracker:
    """
    Fingerprint memory for the process lifetime.

    Usage:
        tracker = DedupTracker()
        if tracker.observe(event).new:
            emit(event)

    With max_age_seconds set, fingerprints older than the limit are evicted
    oldest-first; otherwise the set grows for the life of the process.
    """

    def __init__(
        self,
        max_age_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()
        self._nodes: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    def observe(self, event: ObservableEvent) -> ObserveResult:
        """
        Record an event and report whether it is new.

        Check and insert happen without a suspension point in between, so
        concurrent callers on the event loop cannot both see new=True.
        """
        fingerprint = compute_fingerprint(
            event.message_id,
            event.timestamp,
            event.body_text,
            event.attachment_refs,
        )
        if fingerprint is None:
            # Nothing to identify or relay; the node may fill in later
            return ObserveResult(new=False, reason="empty")

        node = getattr(event, "node", None)
        if node is not None and self._node_fingerprint(node) == fingerprint:
            return ObserveResult(new=False, fingerprint=fingerprint, reason="seen_node")

        self._evict_expired()

        if fingerprint in self._seen:
            self._remember_node(node, fingerprint)
            logger.debug(f"Duplicate source event: {fingerprint}")
            return ObserveResult(new=False, fingerprint=fingerprint, reason="duplicate")

        self._seen[fingerprint] = self._clock()
        self._remember_node(node, fingerprint)
        return ObserveResult(new=True, fingerprint=fingerprint, reason="new")

    def seen(self, fingerprint: str) -> bool:
        self._evict_expired()
        return fingerprint in self._seen

    def forget(self, fingerprint: str) -> bool:
        return self._seen.pop(fingerprint, None) is not None

    def clear(self) -> None:
        self._seen.clear()
        self._nodes = weakref.WeakKeyDictionary()

    def stats(self) -> dict[str, Any]:
        return {
            "fingerprints": len(self._seen),
            "nodes": len(self._nodes),
            "max_age_seconds": self.max_age_seconds,
        }

    def __len__(self) -> int:
        return len(self._seen)

    # ------------------------------------------------------------------
    # internal
    # ------------------------------------------------------------------

    def _node_fingerprint(self, node: Any) -> str | None:
        try:
            return self._nodes.get(node)
        except TypeError:
            # Not weak-referenceable: no fast path for this node
            return None

    def _remember_node(self, node: Any, fingerprint: str) -> None:
        if node is None:
            return
        try:
            self._nodes[node] = fingerprint
        except TypeError:
            # Not weak-referenceable: no fast path for this node
            pass

    def _evict_expired(self) -> int:
        if self.max_age_seconds is None:
            return 0
        cutoff = self._clock() - self.max_age_seconds
        removed = 0
        while self._seen:
            fingerprint, seen_at = next(iter(self._seen.items()))
            if seen_at > cutoff:
                break
            self._seen.popitem(last=False)
            removed += 1
        if removed:
            logger.debug(f"Evicted {removed} expired fingerprints")
        return removed


__all__ = ["DedupTracker", "ObserveResult", "ObservableEvent"]
