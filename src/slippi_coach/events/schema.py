from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


class EventType(str, Enum):
    """
    Discrete event kinds produced by the match state tracker.

    Values are the strings used in serialized events and template keys.
    """

    STOCK_LOST = "stock_lost"
    COMBO = "combo"
    ACTION_STATE = "action_state"
    FRAME_HEARTBEAT = "frame_heartbeat"
    MATCH_START = "match_start"
    MATCH_END = "match_end"


class ActionSubtype(str, Enum):
    TECH = "tech"
    TECH_MISS = "tech-miss"
    SHIELD = "shield"
    GRAB = "grab"
    RECOVERY = "recovery"
    AERIAL_LANDING = "aerial-landing"
    WAVEDASH = "wavedash"


class EventClass(str, Enum):
    """
    Throttling bucket an event maps to.

    LIFECYCLE events are never throttled.
    """

    STOCK_LOSS = "STOCK_LOSS"
    SIGNIFICANT_COMBO = "SIGNIFICANT_COMBO"
    MINOR_COMBO = "MINOR_COMBO"
    NEUTRAL_EXCHANGE = "NEUTRAL_EXCHANGE"
    FRAME_UPDATE = "FRAME_UPDATE"
    LIFECYCLE = "LIFECYCLE"


# Combos with at least this many hits are SIGNIFICANT_COMBO; 2-3 are MINOR_COMBO.
SIGNIFICANT_COMBO_HITS = 4
# Combos shorter than this are noise and never become events.
MIN_COMBO_HITS = 2


@dataclass(frozen=True)
class RosterEntry:
    """
    Immutable description of one player slot, fixed at match start.

    Attributes
    ----------
    index : int
        0-based player index, stable for the match.
    port : int
        Controller port shown on screen (1-4).
    character_id : int
        Slippi external character id.
    character : str
        Display name resolved from ``character_id``.
    is_human : bool
        False for CPU players.
    """

    index: int
    port: int
    character_id: int
    character: str
    is_human: bool = True


@dataclass(frozen=True)
class PlayerSnapshot:
    player_index: int
    percent: float
    stocks: int


@dataclass(frozen=True)
class StockLost:
    event_type: ClassVar[EventType] = EventType.STOCK_LOST

    frame: int
    player_index: int
    stocks_lost: int
    remaining_stocks: int
    character: str = "Unknown"


@dataclass(frozen=True)
class Combo:
    event_type: ClassVar[EventType] = EventType.COMBO

    frame: int
    player_index: int
    hit_count: int
    damage: float
    start_frame: int
    end_frame: Optional[int] = None
    character: str = "Unknown"


@dataclass(frozen=True)
class ActionState:
    event_type: ClassVar[EventType] = EventType.ACTION_STATE

    frame: int
    player_index: int
    subtype: ActionSubtype
    detail: Optional[str] = None
    character: str = "Unknown"


@dataclass(frozen=True)
class FrameHeartbeat:
    event_type: ClassVar[EventType] = EventType.FRAME_HEARTBEAT

    frame: int
    players: Tuple[PlayerSnapshot, ...] = ()


@dataclass(frozen=True)
class MatchStart:
    event_type: ClassVar[EventType] = EventType.MATCH_START

    roster: Tuple[RosterEntry, ...]
    stage_id: Optional[int] = None
    frame: int = 0


@dataclass(frozen=True)
class MatchEnd:
    event_type: ClassVar[EventType] = EventType.MATCH_END

    end_reason: str
    quitter_index: Optional[int] = None
    frame: int = 0


CandidateEvent = Union[StockLost, Combo, ActionState, FrameHeartbeat, MatchStart, MatchEnd]


def event_class(event: CandidateEvent) -> EventClass:
    """Map an event to its throttling bucket."""
    if isinstance(event, StockLost):
        return EventClass.STOCK_LOSS
    if isinstance(event, Combo):
        if event.hit_count >= SIGNIFICANT_COMBO_HITS:
            return EventClass.SIGNIFICANT_COMBO
        return EventClass.MINOR_COMBO
    if isinstance(event, ActionState):
        return EventClass.NEUTRAL_EXCHANGE
    if isinstance(event, FrameHeartbeat):
        return EventClass.FRAME_UPDATE
    if isinstance(event, (MatchStart, MatchEnd)):
        return EventClass.LIFECYCLE
    raise TypeError(f"not a candidate event: {event!r}")


def event_to_dict(event: CandidateEvent) -> Dict[str, Any]:
    """
    Convert an event to a JSON-serializable dict tagged with its ``type``.
    """
    d = asdict(event)
    d["type"] = event.event_type.value
    if isinstance(event, ActionState):
        d["subtype"] = event.subtype.value
    return d


def semantic_fields(event: CandidateEvent) -> Dict[str, Any]:
    """
    The fields that decide what a narration line should say.

    Frame numbers are left out so the same kind of event recurring later,
    or in another match, maps to the same narration cache key. Damage and
    percent are rounded to one decimal for the same reason.
    """
    if isinstance(event, StockLost):
        return {
            "type": event.event_type.value,
            "player": event.player_index,
            "character": event.character,
            "stocks_lost": event.stocks_lost,
            "remaining": event.remaining_stocks,
        }
    if isinstance(event, Combo):
        return {
            "type": event.event_type.value,
            "player": event.player_index,
            "character": event.character,
            "hits": event.hit_count,
            "damage": round(event.damage, 1),
        }
    if isinstance(event, ActionState):
        return {
            "type": event.event_type.value,
            "player": event.player_index,
            "character": event.character,
            "subtype": event.subtype.value,
            "detail": event.detail,
        }
    if isinstance(event, FrameHeartbeat):
        return {
            "type": event.event_type.value,
            "players": [
                [p.player_index, round(p.percent, 1), p.stocks] for p in event.players
            ],
        }
    if isinstance(event, MatchStart):
        return {
            "type": event.event_type.value,
            "roster": [r.character for r in event.roster],
            "stage": event.stage_id,
        }
    if isinstance(event, MatchEnd):
        return {
            "type": event.event_type.value,
            "reason": event.end_reason,
            "quitter": event.quitter_index,
        }
    raise TypeError(f"not a candidate event: {event!r}")
