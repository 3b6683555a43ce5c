from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from slippi_coach.events.schema import CandidateEvent, Combo, RosterEntry, StockLost
from slippi_coach.melee import FRAMES_PER_SECOND, STARTING_STOCKS, stage_name


class MatchPhase(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class PlayerState:
    """
    Running state for one player slot.

    ``stocks``/``percent``/``action_state`` mirror the last processed frame;
    the cumulative counters are updated as events are applied.
    """

    entry: RosterEntry
    stocks: int = STARTING_STOCKS
    percent: float = 0.0
    action_state: Optional[int] = None
    damage_dealt: float = 0.0
    stocks_lost: int = 0
    combo_count: int = 0

    @property
    def index(self) -> int:
        return self.entry.index

    @property
    def character(self) -> str:
        return self.entry.character


@dataclass
class MatchState:
    """
    Everything the tracker knows about one match.

    ``history`` holds every StockLost and Combo event detected since
    MatchStart, before any throttling, so end-of-match statistics are not
    skewed by which events happened to be narrated.
    """

    handle: str
    phase: MatchPhase = MatchPhase.PENDING
    players: List[PlayerState] = field(default_factory=list)
    stage_id: Optional[int] = None
    last_processed_frame: Optional[int] = None
    processed_combos: Set[Tuple[int, int]] = field(default_factory=set)
    history: List[CandidateEvent] = field(default_factory=list)
    end_reason: Optional[str] = None
    dropped_frames: int = 0
    data_gaps: int = 0

    @property
    def roster(self) -> Tuple[RosterEntry, ...]:
        return tuple(p.entry for p in self.players)

    def player(self, index: int) -> Optional[PlayerState]:
        if 0 <= index < len(self.players):
            return self.players[index]
        return None

    def game_time_seconds(self) -> int:
        """Whole seconds of game time at the last processed frame."""
        if self.last_processed_frame is None or self.last_processed_frame < 0:
            return 0
        return self.last_processed_frame // FRAMES_PER_SECOND

    def __str__(self) -> str:
        players = ", ".join(
            f"P{p.entry.port} {p.character} {p.stocks}st {p.percent:.0f}%" for p in self.players
        )
        return (
            f"MatchState(handle={self.handle!r}, phase={self.phase.value}, "
            f"stage={stage_name(self.stage_id)}, frame={self.last_processed_frame}, "
            f"players=[{players}])"
        )


def apply_event_to_state(state: MatchState, event: CandidateEvent) -> MatchState:
    """
    Fold one detected event into the match's cumulative counters and history.

    Only StockLost and Combo carry statistics; other events are ignored.
    Returns the same state instance (for chaining).
    """
    if isinstance(event, StockLost):
        player = state.player(event.player_index)
        if player is not None:
            player.stocks_lost += event.stocks_lost
        state.history.append(event)
    elif isinstance(event, Combo):
        player = state.player(event.player_index)
        if player is not None:
            player.damage_dealt += event.damage
            player.combo_count += 1
        state.history.append(event)
    return state


# ----------------------------------------------------------------------
# End-of-match summary
# ----------------------------------------------------------------------

# Damage per stock lost that is worth one efficiency point.
DAMAGE_PER_EFFICIENCY_POINT = 20


def efficiency_rating(damage_dealt: float, stocks_lost: int) -> int:
    """
    Rate damage-per-stock efficiency on a 1-10 scale.

    Losing no stocks is a perfect 10 (infinite damage per stock). Dealing
    no damage while losing at least one stock is a 1. Otherwise one point
    per 20% of damage per stock lost, clamped to [1, 10].
    """
    if stocks_lost <= 0:
        return 10
    if damage_dealt <= 0:
        return 1
    damage_per_stock = damage_dealt / stocks_lost
    return max(1, min(10, math.floor(damage_per_stock / DAMAGE_PER_EFFICIENCY_POINT)))


@dataclass(frozen=True)
class PlayerSummary:
    player_index: int
    character: str
    damage_dealt: float
    stocks_lost: int
    combo_count: int

    @property
    def efficiency(self) -> int:
        return efficiency_rating(self.damage_dealt, self.stocks_lost)


@dataclass(frozen=True)
class MatchSummary:
    handle: str
    per_player: Tuple[PlayerSummary, ...] = ()
    stage_id: Optional[int] = None
    end_reason: Optional[str] = None

    @property
    def total_damage(self) -> float:
        return sum(p.damage_dealt for p in self.per_player)

    @property
    def total_stocks_lost(self) -> int:
        return sum(p.stocks_lost for p in self.per_player)

    @property
    def total_combos(self) -> int:
        return sum(p.combo_count for p in self.per_player)


def summarize_events(
    handle: str,
    roster: Sequence[RosterEntry],
    events: Iterable[CandidateEvent],
    stage_id: Optional[int] = None,
    end_reason: Optional[str] = None,
) -> MatchSummary:
    """
    Fold a StockLost/Combo history into per-player totals.

    The result has one entry per roster slot; events for a player index
    beyond the roster still get an ``Unknown`` entry rather than being lost.
    Events with a negative player index are ignored.
    """
    events = [
        e for e in events if not isinstance(e, (StockLost, Combo)) or e.player_index >= 0
    ]
    size = len(roster)
    for e in events:
        if isinstance(e, (StockLost, Combo)):
            size = max(size, e.player_index + 1)

    damage = [0.0] * size
    stocks = [0] * size
    combos = [0] * size
    for e in events:
        if isinstance(e, StockLost):
            stocks[e.player_index] += e.stocks_lost
        elif isinstance(e, Combo):
            damage[e.player_index] += e.damage
            combos[e.player_index] += 1

    per_player = tuple(
        PlayerSummary(
            player_index=i,
            character=roster[i].character if i < len(roster) else "Unknown",
            damage_dealt=damage[i],
            stocks_lost=stocks[i],
            combo_count=combos[i],
        )
        for i in range(size)
    )
    return MatchSummary(handle=handle, per_player=per_player, stage_id=stage_id, end_reason=end_reason)
