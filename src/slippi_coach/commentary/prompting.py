from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from slippi_coach.events.schema import (
    ActionState,
    CandidateEvent,
    Combo,
    FrameHeartbeat,
    MatchEnd,
    MatchStart,
    RosterEntry,
    StockLost,
)
from slippi_coach.melee import stage_name
from slippi_coach.state.match_state import MatchState, MatchSummary

# Live narration is spoken over gameplay, so keep it short.
NARRATION_MAX_TOKENS = 150

COACHING_MAX_TOKENS = 800
COACHING_TEMPERATURE = 0.7
COACHING_SYSTEM_PROMPT = (
    "You are an elite-level Super Smash Bros. Melee coach with technical expertise."
)


@dataclass(frozen=True)
class NarrationStyle:
    system_prompt: str
    instructions: str
    temperature: float


STYLES: Dict[str, NarrationStyle] = {
    "technical": NarrationStyle(
        system_prompt=(
            "You are a technical Super Smash Bros. Melee commentator who knows frame data, "
            "tech skill and character matchups."
        ),
        instructions=(
            "Call the action precisely. Name the techniques involved and what they mean "
            "for the exchange. One or two sentences, no emojis."
        ),
        temperature=0.4,
    ),
    "hype": NarrationStyle(
        system_prompt=(
            "You are an energetic Super Smash Bros. Melee tournament commentator calling a "
            "live set."
        ),
        instructions=(
            "React to the action with big energy, like a grand finals caster. "
            "One or two short sentences, no emojis."
        ),
        temperature=0.8,
    ),
    "educational": NarrationStyle(
        system_prompt=(
            "You are a friendly Super Smash Bros. Melee commentator explaining the game to "
            "newer players."
        ),
        instructions=(
            "Describe what just happened and briefly why it matters, in plain language a "
            "new player can follow. One or two sentences, no emojis."
        ),
        temperature=0.6,
    ),
    "analytical": NarrationStyle(
        system_prompt=(
            "You are an analytical Super Smash Bros. Melee commentator focused on momentum "
            "and decision making."
        ),
        instructions=(
            "Explain how these events shift the momentum of the match given the stocks and "
            "percents. One or two sentences, no emojis."
        ),
        temperature=0.5,
    ),
}


@dataclass(frozen=True)
class MatchContext:
    """
    Live match situation attached to a narration request.

    Attributes
    ----------
    roster : tuple[RosterEntry, ...]
        Player slots in index order.
    stocks, percents : tuple
        Current stock count and percent per roster slot.
    frame : int
        Last processed frame.
    game_time : int
        Whole seconds of game time at ``frame``.
    stage_id : int, optional
    """

    roster: Tuple[RosterEntry, ...] = ()
    stocks: Tuple[int, ...] = ()
    percents: Tuple[float, ...] = ()
    frame: int = 0
    game_time: int = 0
    stage_id: Optional[int] = None

    @classmethod
    def from_state(cls, state: MatchState) -> "MatchContext":
        return cls(
            roster=state.roster,
            stocks=tuple(p.stocks for p in state.players),
            percents=tuple(p.percent for p in state.players),
            frame=state.last_processed_frame or 0,
            game_time=state.game_time_seconds(),
            stage_id=state.stage_id,
        )


def _player_label(index: int, character: str) -> str:
    return f"P{index + 1} ({character})"


def _format_event_brief(e: CandidateEvent) -> str:
    """
    Short human-readable description of an event, for use in the prompt.
    """
    if isinstance(e, StockLost):
        return (
            f"frame {e.frame}: {_player_label(e.player_index, e.character)} lost "
            f"{e.stocks_lost} stock(s), {e.remaining_stocks} remaining"
        )
    if isinstance(e, Combo):
        return (
            f"frame {e.frame}: {_player_label(e.player_index, e.character)} landed a "
            f"{e.hit_count}-hit combo for {e.damage:.1f}%"
        )
    if isinstance(e, ActionState):
        detail = f" ({e.detail})" if e.detail else ""
        return (
            f"frame {e.frame}: {_player_label(e.player_index, e.character)} "
            f"{e.subtype.value}{detail}"
        )
    if isinstance(e, FrameHeartbeat):
        status = ", ".join(
            f"P{p.player_index + 1} {p.percent:.0f}% / {p.stocks} stocks" for p in e.players
        )
        return f"frame {e.frame}: status update: {status or 'no player data'}"
    if isinstance(e, MatchStart):
        roster = " vs ".join(_player_label(r.index, r.character) for r in e.roster)
        return f"match start on {stage_name(e.stage_id)}: {roster or 'unknown roster'}"
    if isinstance(e, MatchEnd):
        quitter = f", quit by P{e.quitter_index + 1}" if e.quitter_index is not None else ""
        return f"frame {e.frame}: match end ({e.end_reason}{quitter})"
    return repr(e)


def _format_context(context: MatchContext) -> str:
    lines = [
        f"- Stage: {stage_name(context.stage_id)}",
        f"- Game time: {context.game_time}s (frame {context.frame})",
    ]
    for i, entry in enumerate(context.roster):
        stocks = context.stocks[i] if i < len(context.stocks) else "?"
        percent = f"{context.percents[i]:.0f}%" if i < len(context.percents) else "?"
        kind = "" if entry.is_human else " [CPU]"
        lines.append(
            f"- P{entry.port} {entry.character}{kind}: {stocks} stocks, {percent}"
        )
    return "\n".join(lines)


def get_style(style: str) -> NarrationStyle:
    """Look up a narration style, falling back to ``hype`` for unknown names."""
    return STYLES.get(style, STYLES["hype"])


def build_narration_prompt(
    batch: Sequence[CandidateEvent],
    context: Optional[MatchContext] = None,
    style: str = "hype",
) -> str:
    """
    Build the user prompt asking for live commentary on one batch.

    Events are listed oldest first; the match context block is included
    only when a context is given.
    """
    events = "\n".join(f"- {_format_event_brief(e)}" for e in batch) or "- (no events)"
    sections = [get_style(style).instructions]
    if context is not None:
        sections.append(f"Current match state:\n{_format_context(context)}")
    sections.append(f"New events to call:\n{events}")
    sections.append(
        "Comment on these events only. Do not invent player tags, scores or "
        "events that are not listed."
    )
    return "\n\n".join(sections)


def build_coaching_prompt(summary: MatchSummary) -> str:
    """
    Build the end-of-match coaching request from per-player totals.
    """
    header = (
        f"Match on {stage_name(summary.stage_id)} ended: {summary.end_reason or 'Unknown'}."
    )
    if summary.per_player:
        stats = "\n".join(
            f"- {_player_label(p.player_index, p.character)}: "
            f"damage dealt in combos {p.damage_dealt:.1f}%, "
            f"stocks lost {p.stocks_lost}, combos {p.combo_count}, "
            f"efficiency rating {p.efficiency}/10"
            for p in summary.per_player
        )
    else:
        stats = "- (no player data recorded)"

    instructions = (
        "The efficiency rating is damage dealt per stock lost on a 1-10 scale "
        "(10 means no stocks lost).\n"
        "For each player give:\n"
        "1. One strength shown in this match.\n"
        "2. The most important weakness, tied to the numbers above.\n"
        "3. One concrete drill or habit to practice next session.\n"
        "Be specific to Melee and keep the whole answer under 250 words."
    )
    return f"{header}\n\nPer-player statistics:\n{stats}\n\n{instructions}"
