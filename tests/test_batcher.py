"""Tests for slippi_coach.events.batcher."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import List, Tuple

import pytest

from slippi_coach.events.batcher import EventBatcher
from slippi_coach.events.schema import CandidateEvent, FrameHeartbeat


def heartbeats(n: int, start: int = 0) -> List[FrameHeartbeat]:
    return [FrameHeartbeat(frame=start + i) for i in range(n)]


class RecordingSink:
    def __init__(self) -> None:
        self.batches: List[Tuple[str, List[CandidateEvent]]] = []

    async def __call__(self, handle: str, batch: List[CandidateEvent]) -> None:
        self.batches.append((handle, batch))


class TestTakeBatch:
    def test_take_is_bounded_and_fifo(self) -> None:
        batcher = EventBatcher(RecordingSink(), batch_size=3)
        batcher._queues["m1"] = deque(heartbeats(5))
        assert [e.frame for e in batcher.take_batch("m1")] == [0, 1, 2]
        assert [e.frame for e in batcher.take_batch("m1")] == [3, 4]
        assert batcher.take_batch("m1") == []

    def test_unknown_match_is_empty(self) -> None:
        assert EventBatcher(RecordingSink()).take_batch("nope") == []

    def test_batch_size_validated(self) -> None:
        with pytest.raises(ValueError):
            EventBatcher(RecordingSink(), batch_size=0)


class TestDrain:
    @pytest.mark.asyncio
    async def test_batches_are_bounded_fifo_and_unique(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=3, interval_ms=5)
        events = heartbeats(7)
        for e in events:
            batcher.enqueue("m1", e)

        await batcher.wait_idle("m1")

        sizes = [len(b) for _, b in sink.batches]
        assert sizes == [3, 3, 1]
        flattened = [e for _, b in sink.batches for e in b]
        assert flattened == events
        assert batcher.batches_released == 3

    @pytest.mark.asyncio
    async def test_idle_match_is_cleaned_up(self) -> None:
        batcher = EventBatcher(RecordingSink(), batch_size=3, interval_ms=5)
        batcher.enqueue("m1", FrameHeartbeat(frame=1))
        assert batcher.active_matches() == ["m1"]
        await batcher.wait_idle()
        assert batcher.active_matches() == []
        assert batcher.pending("m1") == 0

    @pytest.mark.asyncio
    async def test_restarts_after_idle(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=3, interval_ms=5)
        batcher.enqueue("m1", FrameHeartbeat(frame=1))
        await batcher.wait_idle()
        batcher.enqueue("m1", FrameHeartbeat(frame=2))
        await batcher.wait_idle()
        assert [[e.frame for e in b] for _, b in sink.batches] == [[1], [2]]

    @pytest.mark.asyncio
    async def test_matches_drain_independently(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=2, interval_ms=5)
        for e in heartbeats(3):
            batcher.enqueue("a", e)
        batcher.enqueue("b", FrameHeartbeat(frame=100))
        await batcher.wait_idle()

        by_match = {}
        for handle, batch in sink.batches:
            by_match.setdefault(handle, []).extend(e.frame for e in batch)
        assert by_match == {"a": [0, 1, 2], "b": [100]}

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_drain(self) -> None:
        delivered: List[List[CandidateEvent]] = []

        async def flaky(handle: str, batch: List[CandidateEvent]) -> None:
            if not delivered and batch[0].frame == 0:
                delivered.append([])
                raise RuntimeError("sink exploded")
            delivered.append(batch)

        batcher = EventBatcher(flaky, batch_size=1, interval_ms=5)
        for e in heartbeats(2):
            batcher.enqueue("m1", e)
        await batcher.wait_idle()
        assert [b[0].frame for b in delivered if b] == [1]


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_discards_without_partial_batch(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=3, interval_ms=50)
        for e in heartbeats(2):
            batcher.enqueue("m1", e)
        batcher.cancel("m1")
        await asyncio.sleep(0.1)
        assert sink.batches == []
        assert batcher.active_matches() == []

    @pytest.mark.asyncio
    async def test_cancel_leaves_other_matches_alone(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=3, interval_ms=5)
        batcher.enqueue("a", FrameHeartbeat(frame=1))
        batcher.enqueue("b", FrameHeartbeat(frame=2))
        batcher.cancel("a")
        await batcher.wait_idle()
        assert [h for h, _ in sink.batches] == ["b"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self) -> None:
        sink = RecordingSink()
        batcher = EventBatcher(sink, batch_size=3, interval_ms=50)
        batcher.enqueue("a", FrameHeartbeat(frame=1))
        batcher.enqueue("b", FrameHeartbeat(frame=2))
        await batcher.shutdown()
        assert sink.batches == []
        assert batcher.active_matches() == []
