"""
CoachSession: the single entry point that wires the pipeline together.

    frames -> MatchStateTracker -> AdmissionController -> EventBatcher
           -> NarrationDispatcher -> on_commentary
    match end -> MatchSummaryBuilder -> on_coaching

One session serves any number of concurrent matches, each identified by
an opaque handle. Only the narration cache is shared between matches.
"""

from __future__ import annotations

import inspect
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from slippi_coach.commentary.cache import NarrationCache
from slippi_coach.commentary.coaching import MatchSummaryBuilder
from slippi_coach.commentary.engine import NarrationDispatcher
from slippi_coach.commentary.llm_client import LLMClient
from slippi_coach.commentary.prompting import MatchContext
from slippi_coach.commentary.providers import create_llm_client
from slippi_coach.config import CoachConfig
from slippi_coach.events.admission import AdmissionController, Clock, monotonic_ms
from slippi_coach.events.batcher import EventBatcher
from slippi_coach.events.schema import CandidateEvent, EventType
from slippi_coach.events.tracker import MatchStateTracker
from slippi_coach.ingest.source import ComboRecord, FrameSnapshot, FrameSource, GameEnd, MatchSettings
from slippi_coach.melee import NO_CONTEST, end_reason_for_method
from slippi_coach.state.match_state import MatchPhase, MatchSummary

logger = logging.getLogger(__name__)

# End reason recorded when a source goes away without a game-end block.
SOURCE_REMOVED_REASON = "source removed"

EventCallback = Callable[[str, CandidateEvent], Any]
CommentaryCallback = Callable[[str, str, List[CandidateEvent]], Any]
CoachingCallback = Callable[[str, MatchSummary, str], Any]


@dataclass(frozen=True)
class _Subscription:
    on_event: Optional[EventCallback] = None
    event_types: Optional[FrozenSet[EventType]] = None

    def wants(self, event: CandidateEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


async def _emit(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class CoachSession:
    """
    Live commentary and end-of-match coaching for Slippi matches.

    Parameters
    ----------
    config : CoachConfig, optional
        Throttle, batch, cache and style settings. Defaults are used if omitted.
    llm_client : LLMClient, optional
        Text provider for narration and coaching; None means templates only.
        Use ``from_config`` to build the client from ``config.provider``.
    on_commentary : callable, optional
        ``(handle, text, batch)``, called once per narrated batch. May be a coroutine.
    on_coaching : callable, optional
        ``(handle, summary, text)``, called once per completed match. May be a coroutine.
    clock : callable
        Millisecond clock for throttling (injectable for tests).
    cache_clock : callable, optional
        Second clock for narration cache expiry (injectable for tests).
    rng : random.Random, optional
        Template choice source.
    coach_on_end : bool
        Request coaching text when a match ends.
    """

    def __init__(
        self,
        config: Optional[CoachConfig] = None,
        llm_client: Optional[LLMClient] = None,
        on_commentary: Optional[CommentaryCallback] = None,
        on_coaching: Optional[CoachingCallback] = None,
        clock: Clock = monotonic_ms,
        cache_clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        coach_on_end: bool = True,
    ) -> None:
        self.config = config or CoachConfig()
        self.on_commentary = on_commentary
        self.on_coaching = on_coaching
        self.coach_on_end = coach_on_end

        cache_kwargs: Dict[str, Any] = {}
        if cache_clock is not None:
            cache_kwargs["clock"] = cache_clock
        self.cache = NarrationCache(
            ttl_s=self.config.cache.ttl_s,
            max_entries=self.config.cache.max_entries,
            **cache_kwargs,
        )

        self.tracker = MatchStateTracker()
        self.admission = AdmissionController(self.config.throttle, clock=clock)
        self.dispatcher = NarrationDispatcher(
            llm_client=llm_client, cache=self.cache, style=self.config.style, rng=rng
        )
        self.batcher = EventBatcher(
            self._narrate_batch,
            batch_size=self.config.batch.batch_size,
            interval_ms=self.config.batch.interval_ms,
        )
        self.summary_builder = MatchSummaryBuilder(self.tracker, llm_client)

        self._subscriptions: Dict[str, _Subscription] = {}
        self._summaries: Dict[str, MatchSummary] = {}

    @classmethod
    def from_config(cls, config: Optional[CoachConfig] = None, **kwargs: Any) -> "CoachSession":
        """
        Build a session whose text provider comes from ``config.provider``.

        Raises
        ------
        ConfigurationError
            If the provider cannot be created.
        """
        config = config or CoachConfig()
        return cls(config=config, llm_client=create_llm_client(config.provider), **kwargs)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(
        self,
        handle: str,
        source: FrameSource,
        on_event: Optional[EventCallback] = None,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> MatchSummary:
        """
        Consume ``source`` until it ends and return the match summary.

        ``on_event(handle, event)`` sees every detected event whose type is
        in ``event_types`` (all types when None), before throttling. The
        same filter limits which events are narrated. Lifecycle handling
        and the end-of-match summary always cover the full match.
        ``on_event`` runs synchronously inside frame handling, so it must be
        a plain function; a coroutine function raises TypeError.

        A source that ends without a game-end block is treated as removed:
        the match ends implicitly with reason ``"source removed"``. Pending
        commentary is drained before this returns.
        """
        if on_event is not None and inspect.iscoroutinefunction(on_event):
            raise TypeError("on_event must be a plain function, not a coroutine function")
        self._subscriptions[handle] = _Subscription(
            on_event=on_event,
            event_types=frozenset(EventType(t) for t in event_types) if event_types is not None else None,
        )
        try:
            while not self.is_completed(handle):
                self._maybe_start(handle, source)
                snapshot = await source.next_frame()
                if snapshot is None:
                    break
                # settings can appear after the first frames of a live stream
                self._maybe_start(handle, source)
                self.handle_frame(handle, snapshot, source.combos())

                end = source.game_end()
                if end is not None:
                    await self.handle_game_end(handle, end)

            if not self.is_completed(handle):
                end = source.game_end()
                if end is not None:
                    await self.handle_game_end(handle, end)
                else:
                    await self.end_match(handle, SOURCE_REMOVED_REASON)

            await self.batcher.wait_idle(handle)
        finally:
            self._release(handle)
        return self.summarize(handle)

    def _maybe_start(self, handle: str, source: FrameSource) -> None:
        state = self.tracker.get(handle)
        if state is not None and state.phase is not MatchPhase.PENDING:
            return
        settings = source.settings()
        if settings is not None:
            self.handle_settings(handle, settings)

    def handle_settings(self, handle: str, settings: MatchSettings) -> None:
        event = self.tracker.on_settings_known(handle, settings.players, settings.stage_id)
        if event is not None:
            self._dispatch(handle, event)

    def handle_frame(
        self,
        handle: str,
        snapshot: FrameSnapshot,
        combos: Sequence[ComboRecord] = (),
    ) -> List[CandidateEvent]:
        """Feed one frame; returns the events detected on it (before throttling)."""
        events = self.tracker.on_frame(handle, snapshot, combos)
        for event in events:
            self._dispatch(handle, event)
        return events

    async def handle_game_end(self, handle: str, game_end: GameEnd) -> Optional[MatchSummary]:
        reason = end_reason_for_method(game_end.method)
        quitter = game_end.quitter_index if game_end.method == NO_CONTEST else None
        return await self.end_match(handle, reason, quitter)

    async def end_match(
        self,
        handle: str,
        end_reason: str,
        quitter_index: Optional[int] = None,
    ) -> Optional[MatchSummary]:
        """
        Complete a match, build its summary and request coaching.

        Returns None when the match had already completed; the summary is
        built exactly once per match.
        """
        event = self.tracker.on_match_end(handle, end_reason, quitter_index)
        if event is None:
            return None
        self._dispatch(handle, event)

        summary = self.summary_builder.summarize(handle)
        self._summaries[handle] = summary
        if self.coach_on_end:
            text = await self.summary_builder.coach(summary)
            await _emit(self.on_coaching, handle, summary, text)
        return summary

    async def source_removed(self, handle: str) -> Optional[MatchSummary]:
        """
        The source for ``handle`` disappeared (file removed or renamed).

        Ends the match if no explicit end was seen, then tears it down
        without narrating whatever was still queued.
        """
        summary = await self.end_match(handle, SOURCE_REMOVED_REASON)
        self.stop_match(handle)
        return summary

    def stop_match(self, handle: str) -> None:
        """Cancel a match's pending narration and drop its throttle state."""
        self.batcher.cancel(handle)
        self._release(handle)

    def _release(self, handle: str) -> None:
        self.admission.forget(handle)
        self._subscriptions.pop(handle, None)

    def _dispatch(self, handle: str, event: CandidateEvent) -> None:
        subscription = self._subscriptions.get(handle)
        if subscription is not None:
            if not subscription.wants(event):
                return
            if subscription.on_event is not None:
                result = subscription.on_event(handle, event)
                if inspect.isawaitable(result):
                    if inspect.iscoroutine(result):
                        result.close()
                    raise TypeError("on_event returned an awaitable; it must be a plain function")

        if self.admission.admit(handle, event):
            self.batcher.enqueue(handle, event)

    async def _narrate_batch(self, handle: str, batch: List[CandidateEvent]) -> None:
        text = await self.narrate(handle, batch)
        await _emit(self.on_commentary, handle, text, batch)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_completed(self, handle: str) -> bool:
        state = self.tracker.get(handle)
        return state is not None and state.phase is MatchPhase.COMPLETED

    def context_for(self, handle: str) -> Optional[MatchContext]:
        state = self.tracker.get(handle)
        if state is None or not state.players:
            return None
        return MatchContext.from_state(state)

    async def narrate(
        self,
        handle: str,
        batch: Sequence[CandidateEvent],
        context: Optional[MatchContext] = None,
        style: Optional[str] = None,
    ) -> str:
        """Narrate a batch; the match's live context is used when none is given."""
        if context is None:
            context = self.context_for(handle)
        return await self.dispatcher.narrate(handle, batch, context, style)

    def summarize(self, handle: str) -> MatchSummary:
        """The match's summary (frozen at match end once the match completes)."""
        summary = self._summaries.get(handle)
        if summary is not None:
            return summary
        return self.summary_builder.summarize(handle)

    def forget(self, handle: str) -> None:
        """Drop every trace of a match, including its tracked state and summary."""
        self.stop_match(handle)
        self.tracker.forget(handle)
        self._summaries.pop(handle, None)

    def diagnostics(self) -> Dict[str, Any]:
        matches = {}
        for handle in self.tracker.handles():
            state = self.tracker.get(handle)
            matches[handle] = {
                "phase": state.phase.value,
                "last_frame": state.last_processed_frame,
                "dropped_frames": state.dropped_frames,
                "data_gaps": state.data_gaps,
                "pending": self.batcher.pending(handle),
            }
        return {
            "matches": matches,
            "admission": {
                "accepted": {cls.value: n for cls, n in self.admission.accepted.items()},
                "dropped": {cls.value: n for cls, n in self.admission.dropped.items()},
            },
            "batches_released": self.batcher.batches_released,
            "cache": {"size": len(self.cache), "hits": self.cache.hits, "misses": self.cache.misses},
            "provider": {
                "calls": self.dispatcher.provider_calls,
                "failures": self.dispatcher.provider_failures,
                "template_renders": self.dispatcher.template_renders,
            },
        }

    async def shutdown(self) -> None:
        """Cancel all drain tasks and in-flight generations."""
        await self.batcher.shutdown()
        await self.dispatcher.close()
        self._subscriptions.clear()
