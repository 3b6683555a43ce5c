"""
State tracking for Melee matches.

- match_state: MatchState/PlayerState dataclasses, event folding, and
  the end-of-match summary with its efficiency rating.
"""

from .match_state import (  # noqa: F401
    MatchPhase,
    MatchState,
    MatchSummary,
    PlayerState,
    PlayerSummary,
    apply_event_to_state,
    efficiency_rating,
    summarize_events,
)
