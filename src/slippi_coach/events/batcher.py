"""
Per-match batching of admitted events.

Each match with pending events gets one drain task. Every ``interval`` it
takes up to ``batch_size`` of the oldest events and hands them to the
sink as one ordered batch. The task is started on the first enqueue and
exits as soon as the queue is empty, so finished matches leave nothing
behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from slippi_coach.events.schema import CandidateEvent

logger = logging.getLogger(__name__)

BatchSink = Callable[[str, List[CandidateEvent]], Awaitable[None]]


class EventBatcher:
    """
    FIFO event queues per match, drained in bounded batches on a timer.

    Must be used from inside a running event loop (``enqueue`` schedules
    the drain task on it).
    """

    def __init__(self, sink: BatchSink, batch_size: int = 3, interval_ms: float = 1500.0) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._sink = sink
        self.batch_size = batch_size
        self.interval_s = interval_ms / 1000.0
        self._queues: Dict[str, Deque[CandidateEvent]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self.batches_released = 0

    def enqueue(self, handle: str, event: CandidateEvent) -> None:
        self._queues.setdefault(handle, deque()).append(event)
        if handle not in self._tasks:
            self._tasks[handle] = asyncio.get_running_loop().create_task(
                self._drain(handle), name=f"drain:{handle}"
            )

    def pending(self, handle: str) -> int:
        return len(self._queues.get(handle, ()))

    def active_matches(self) -> List[str]:
        """Handles that still own a queue or a drain task."""
        return sorted(set(self._queues) | set(self._tasks))

    def take_batch(self, handle: str) -> List[CandidateEvent]:
        """Remove and return up to ``batch_size`` oldest events (may be empty)."""
        queue = self._queues.get(handle)
        if not queue:
            return []
        return [queue.popleft() for _ in range(min(self.batch_size, len(queue)))]

    async def _drain(self, handle: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_s)
                batch = self.take_batch(handle)
                if not batch:
                    break

                self.batches_released += 1
                try:
                    await self._sink(handle, batch)
                except Exception:
                    logger.exception("%s: batch sink failed, %d events lost", handle, len(batch))

                if not self._queues.get(handle):
                    break
        finally:
            if self._tasks.get(handle) is asyncio.current_task():
                del self._tasks[handle]
            if handle not in self._tasks and not self._queues.get(handle):
                self._queues.pop(handle, None)

    def cancel(self, handle: str) -> None:
        """
        Stop a match's drain task and discard its queue.

        No partial batch is emitted. A sink call already in progress is
        cancelled along with the task.
        """
        task = self._tasks.pop(handle, None)
        if task is not None:
            task.cancel()
        dropped = self._queues.pop(handle, None)
        if dropped:
            logger.debug("%s: discarded %d pending events", handle, len(dropped))

    async def wait_idle(self, handle: Optional[str] = None) -> None:
        """Wait until the given match (or every match) has drained."""
        while True:
            tasks = [t for h, t in self._tasks.items() if handle is None or h == handle]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every drain task and discard all pending events."""
        tasks = list(self._tasks.values())
        for handle in list(self._tasks):
            self.cancel(handle)
        self._queues.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
