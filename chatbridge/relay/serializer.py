"""
Per-conversation job serialization

Jobs that share a key run one at a time in submission order; jobs with
different keys run concurrently.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class KeyedSerializer:
    """
    Ordered, per-key job runner.

    Usage:
        serializer = KeyedSerializer()
        serializer.submit("jane-doe", lambda: deliver(a))
        serializer.submit("jane-doe", lambda: deliver(b))  # starts after a finishes
        await serializer.drain()
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._active: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()

    def submit(self, key: str, job: Job, label: str = "job") -> asyncio.Task:
        """Schedule a job behind every earlier job with the same key."""
        task = asyncio.create_task(self._run(key, job, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, key: str, job: Job, label: str) -> None:
        # asyncio.Lock wakes waiters first-in first-out
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._active[key] = self._active.get(key, 0) + 1
        try:
            async with lock:
                await job()
        except Exception as e:
            logger.error(f"{label} for {key} failed: {e}", exc_info=True)
        finally:
            remaining = self._active[key] - 1
            if remaining:
                self._active[key] = remaining
            else:
                del self._active[key]
                self._locks.pop(key, None)

    async def drain(self) -> None:
        """Wait for every job submitted so far (and any they submit)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)


__all__ = ["KeyedSerializer"]
