"""
Deterministic commentary templates.

Every event type (and every ActionState subtype) maps to a few
equivalent phrasings; one is picked at random for variety. Anything not
covered falls through to DEFAULT_LINE, so templates always produce text.
"""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence

from slippi_coach.events.schema import (
    ActionState,
    ActionSubtype,
    CandidateEvent,
    Combo,
    FrameHeartbeat,
    MatchEnd,
    MatchStart,
    RosterEntry,
    StockLost,
)
from slippi_coach.melee import stage_name
from slippi_coach.state.match_state import MatchSummary

DEFAULT_LINE = "The match continues!"

STOCK_LOST_TEMPLATES = [
    "{name} loses a stock! {remaining} remaining.",
    "{name} gets sent to the blast zone! {remaining} stocks left.",
    "Down goes {name}! {remaining} stocks remaining.",
]

LAST_STOCK_TEMPLATES = [
    "{name} loses the last stock!",
    "That's the final stock for {name}!",
]

COMBO_TEMPLATES = [
    "{name} lands a {hits}-hit combo for {damage:.1f}%!",
    "{hits} hits from {name} dealing {damage:.1f}% damage!",
    "{name} extends the punish with a {hits}-piece for {damage:.1f}%!",
]

ACTION_TEMPLATES: Dict[ActionSubtype, List[str]] = {
    ActionSubtype.TECH: [
        "{name} techs {detail}!",
        "Clean tech {detail} from {name}.",
    ],
    ActionSubtype.TECH_MISS: [
        "{name} misses the tech!",
        "No tech from {name}, that's a punish opportunity.",
    ],
    ActionSubtype.SHIELD: [
        "{name} puts up the shield.",
        "{name} shields it!",
    ],
    ActionSubtype.GRAB: [
        "{name} gets the grab!",
        "Grab from {name}, here comes the follow-up.",
    ],
    ActionSubtype.RECOVERY: [
        "{name} is recovering with {detail}.",
        "{name} goes for the {detail} back to stage.",
    ],
    ActionSubtype.AERIAL_LANDING: [
        "{name} lands the {detail}.",
        "{name} comes down with a {detail}.",
    ],
    ActionSubtype.WAVEDASH: [
        "{name} wavedashes into position.",
        "Slick wavedash from {name}.",
    ],
}

# Used when an ActionState carries no detail.
ACTION_DEFAULT_DETAILS: Dict[ActionSubtype, str] = {
    ActionSubtype.TECH: "in-place",
    ActionSubtype.RECOVERY: "up-b",
    ActionSubtype.AERIAL_LANDING: "aerial",
}

HEARTBEAT_TEMPLATES = [
    "{seconds} seconds in: {status}.",
    "Status check at {seconds}s: {status}.",
]

MATCH_START_TEMPLATES = [
    "{matchup} on {stage}. Let's go!",
    "Here we go: {matchup} on {stage}!",
]

MATCH_END_TEMPLATES = [
    "{reason} That's the match!",
    "{reason} What a game.",
]

NO_CONTEST_TEMPLATES = [
    "No Contest: {quitter} calls it early.",
    "{quitter} pulls the plug. No Contest.",
]


def _player_name(index: int, character: str) -> str:
    if character and character != "Unknown":
        return character
    return f"Player {index + 1}"


def _roster_name(index: int, roster: Optional[Sequence[RosterEntry]]) -> str:
    if roster and 0 <= index < len(roster):
        return _player_name(index, roster[index].character)
    return f"Player {index + 1}"


def template_candidates(
    event: CandidateEvent, roster: Optional[Sequence[RosterEntry]] = None
) -> List[str]:
    """
    Every line the templates could produce for ``event``.

    ``roster`` is only used to name players in heartbeat and no-contest
    lines; other events carry their own character names.
    """
    if isinstance(event, StockLost):
        name = _player_name(event.player_index, event.character)
        templates = LAST_STOCK_TEMPLATES if event.remaining_stocks <= 0 else STOCK_LOST_TEMPLATES
        return [t.format(name=name, remaining=event.remaining_stocks) for t in templates]

    if isinstance(event, Combo):
        name = _player_name(event.player_index, event.character)
        return [t.format(name=name, hits=event.hit_count, damage=event.damage) for t in COMBO_TEMPLATES]

    if isinstance(event, ActionState):
        templates = ACTION_TEMPLATES.get(event.subtype)
        if not templates:
            return [DEFAULT_LINE]
        name = _player_name(event.player_index, event.character)
        detail = event.detail or ACTION_DEFAULT_DETAILS.get(event.subtype, "")
        return [t.format(name=name, detail=detail) for t in templates]

    if isinstance(event, FrameHeartbeat):
        if not event.players:
            return [DEFAULT_LINE]
        status = ", ".join(
            f"{_roster_name(p.player_index, roster)} at {p.percent:.0f}% with {p.stocks} stocks"
            for p in event.players
        )
        seconds = max(event.frame, 0) // 60
        return [t.format(seconds=seconds, status=status) for t in HEARTBEAT_TEMPLATES]

    if isinstance(event, MatchStart):
        matchup = " vs ".join(_player_name(r.index, r.character) for r in event.roster) or "A new match"
        return [t.format(matchup=matchup, stage=stage_name(event.stage_id)) for t in MATCH_START_TEMPLATES]

    if isinstance(event, MatchEnd):
        if event.quitter_index is not None:
            quitter = _roster_name(event.quitter_index, roster)
            return [t.format(quitter=quitter) for t in NO_CONTEST_TEMPLATES]
        return [t.format(reason=event.end_reason) for t in MATCH_END_TEMPLATES]

    return [DEFAULT_LINE]


def render_event(
    event: CandidateEvent,
    roster: Optional[Sequence[RosterEntry]] = None,
    rng: Optional[random.Random] = None,
) -> str:
    candidates = template_candidates(event, roster)
    return (rng or random).choice(candidates)


def render_batch(
    events: Sequence[CandidateEvent],
    roster: Optional[Sequence[RosterEntry]] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """One line per event, joined into a single narration string."""
    if not events:
        return DEFAULT_LINE
    return " ".join(render_event(e, roster, rng) for e in events)


# ----------------------------------------------------------------------
# Coaching fallback
# ----------------------------------------------------------------------


def _efficiency_advice(rating: int) -> str:
    if rating >= 8:
        return "Excellent damage-per-stock efficiency. Keep converting your openings the same way."
    if rating >= 5:
        return "Solid trades overall. Look for longer punishes off each opening to push efficiency up."
    if rating >= 3:
        return "You are losing stocks cheaply. Work on di, recovery mix-ups and safer neutral approaches."
    return "Very low damage per stock. Slow down in neutral and focus on not getting hit first."


def render_coaching(summary: MatchSummary) -> str:
    """Template coaching report used when no text model is available."""
    if not summary.per_player:
        return "No match data was recorded, so there is nothing to coach on yet."

    lines = ["Match summary:"]
    for p in summary.per_player:
        lines.append(
            f"- {_player_name(p.player_index, p.character)}: {p.damage_dealt:.1f}% damage from combos, "
            f"{p.stocks_lost} stocks lost, {p.combo_count} combos, efficiency {p.efficiency}/10."
        )
    lines.append("")
    lines.append("Coaching notes:")
    for p in summary.per_player:
        lines.append(f"- {_player_name(p.player_index, p.character)}: {_efficiency_advice(p.efficiency)}")
    return "\n".join(lines)
