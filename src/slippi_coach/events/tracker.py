from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from slippi_coach.events.action_states import classify_transition
from slippi_coach.events.schema import (
    MIN_COMBO_HITS,
    ActionState,
    CandidateEvent,
    Combo,
    FrameHeartbeat,
    MatchEnd,
    MatchStart,
    PlayerSnapshot,
    RosterEntry,
    StockLost,
)
from slippi_coach.exceptions import OrderingViolation
from slippi_coach.ingest.source import ComboRecord, FrameSnapshot, PlayerSettings
from slippi_coach.melee import character_name
from slippi_coach.state.match_state import MatchPhase, MatchState, PlayerState, apply_event_to_state

logger = logging.getLogger(__name__)

# ~5 seconds at 60 fps.
HEARTBEAT_INTERVAL_FRAMES = 300


class MatchStateTracker:
    """
    Turn consecutive frame snapshots into discrete candidate events.

    One tracker serves any number of matches, keyed by an opaque handle
    (a replay path or stream id). Matches never share state.

    Frames are only interpreted once the match is ACTIVE (roster known);
    before that they are ignored, and after COMPLETED nothing is emitted.
    The tracker never raises for bad telemetry: out-of-order frames are
    dropped and counted, players with missing data are skipped.
    """

    def __init__(self, heartbeat_interval: int = HEARTBEAT_INTERVAL_FRAMES) -> None:
        self.heartbeat_interval = heartbeat_interval
        self._matches: Dict[str, MatchState] = {}

    def get(self, handle: str) -> Optional[MatchState]:
        return self._matches.get(handle)

    def handles(self) -> List[str]:
        return list(self._matches)

    def forget(self, handle: str) -> None:
        self._matches.pop(handle, None)

    def _state_for(self, handle: str) -> MatchState:
        state = self._matches.get(handle)
        if state is None:
            state = MatchState(handle=handle)
            self._matches[handle] = state
            logger.debug("tracking new match %s", handle)
        return state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_settings_known(
        self,
        handle: str,
        roster: Sequence[PlayerSettings],
        stage_id: Optional[int] = None,
    ) -> Optional[MatchStart]:
        """
        Fix the roster and move the match to ACTIVE.

        Returns the MatchStart event, or None if the match already started
        or has completed (a match becomes ACTIVE at most once).
        """
        state = self._state_for(handle)
        if state.phase is not MatchPhase.PENDING:
            logger.debug("settings for %s ignored in phase %s", handle, state.phase.value)
            return None

        entries = tuple(
            RosterEntry(
                index=i,
                port=p.port,
                character_id=p.character_id,
                character=character_name(p.character_id),
                is_human=p.is_human,
            )
            for i, p in enumerate(roster)
        )
        # Fresh per-match tracking: stocks back to 4, no history, no combos seen.
        state.players = [PlayerState(entry=e) for e in entries]
        state.stage_id = stage_id
        state.history.clear()
        state.processed_combos.clear()
        state.phase = MatchPhase.ACTIVE

        logger.info(
            "match %s started: %s",
            handle,
            " vs ".join(f"P{e.port} {e.character}" for e in entries) or "(empty roster)",
        )
        return MatchStart(
            roster=entries,
            stage_id=stage_id,
            frame=state.last_processed_frame if state.last_processed_frame is not None else 0,
        )

    def on_match_end(
        self,
        handle: str,
        end_reason: str,
        quitter_index: Optional[int] = None,
    ) -> Optional[MatchEnd]:
        """
        Move the match to COMPLETED.

        A match that was never seen is created and completed directly, so
        a zero-length match still has a (empty) summary. Returns None if
        the match had already completed.
        """
        state = self._state_for(handle)
        if state.phase is MatchPhase.COMPLETED:
            return None

        state.phase = MatchPhase.COMPLETED
        state.end_reason = end_reason
        logger.info("match %s ended: %s", handle, end_reason)
        return MatchEnd(
            end_reason=end_reason,
            quitter_index=quitter_index,
            frame=state.last_processed_frame if state.last_processed_frame is not None else 0,
        )

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def on_frame(
        self,
        handle: str,
        snapshot: FrameSnapshot,
        combos: Iterable[ComboRecord] = (),
    ) -> List[CandidateEvent]:
        """
        Compare a frame against the previous one and emit what changed.

        Events come back in a fixed order: StockLost, ActionState, Combo,
        FrameHeartbeat. All of them carry ``snapshot.frame``.
        """
        state = self._state_for(handle)
        if state.phase is not MatchPhase.ACTIVE:
            return []

        last = state.last_processed_frame
        if last is not None and snapshot.frame <= last:
            state.dropped_frames += 1
            logger.debug("%s: dropped %s", handle, OrderingViolation(snapshot.frame, last))
            return []

        frame = snapshot.frame
        stock_events: List[CandidateEvent] = []
        action_events: List[CandidateEvent] = []

        # 1) Per-player stock and action-state edges
        for player in state.players:
            data = snapshot.players[player.index] if player.index < len(snapshot.players) else None
            if data is None:
                state.data_gaps += 1
                continue

            if data.stocks < player.stocks:
                stock_events.append(
                    StockLost(
                        frame=frame,
                        player_index=player.index,
                        stocks_lost=player.stocks - data.stocks,
                        remaining_stocks=data.stocks,
                        character=player.character,
                    )
                )
            # Tracked count only ever goes down within a match.
            player.stocks = min(player.stocks, data.stocks)

            transition = classify_transition(player.action_state, data.action_state_id)
            if transition is not None:
                subtype, detail = transition
                action_events.append(
                    ActionState(
                        frame=frame,
                        player_index=player.index,
                        subtype=subtype,
                        detail=detail,
                        character=player.character,
                    )
                )
            player.action_state = data.action_state_id
            player.percent = data.percent

        # 2) Combos reported by the source's stats engine
        combo_events = self._new_combos(state, combos, frame)

        # 3) Periodic heartbeat so quiet stretches still get narrated
        heartbeat: List[CandidateEvent] = []
        if self.heartbeat_interval > 0 and frame % self.heartbeat_interval == 0:
            heartbeat.append(
                FrameHeartbeat(
                    frame=frame,
                    players=tuple(
                        PlayerSnapshot(player_index=p.index, percent=p.percent, stocks=p.stocks)
                        for p in state.players
                    ),
                )
            )

        for event in stock_events + combo_events:
            apply_event_to_state(state, event)
        state.last_processed_frame = frame

        return stock_events + action_events + combo_events + heartbeat

    def _new_combos(
        self, state: MatchState, combos: Iterable[ComboRecord], frame: int
    ) -> List[CandidateEvent]:
        events: List[CandidateEvent] = []
        for combo in combos:
            key = (combo.player_index, combo.start_frame)
            if key in state.processed_combos:
                continue
            # Not marked as seen: the same combo may be reported again with more hits.
            if combo.hit_count < MIN_COMBO_HITS:
                continue

            state.processed_combos.add(key)
            player = state.player(combo.player_index)
            if player is None:
                state.data_gaps += 1
                logger.debug("%s: combo for unknown player %s ignored", state.handle, combo.player_index)
                continue

            events.append(
                Combo(
                    frame=frame,
                    player_index=combo.player_index,
                    hit_count=combo.hit_count,
                    damage=combo.resolved_damage(),
                    start_frame=combo.start_frame,
                    end_frame=combo.end_frame,
                    character=player.character,
                )
            )
        return events
