"""Tests for slippi_coach.commentary.templates."""

from __future__ import annotations

import random

import pytest

from slippi_coach.commentary.templates import (
    DEFAULT_LINE,
    render_batch,
    render_coaching,
    render_event,
    template_candidates,
)
from slippi_coach.events.schema import (
    ActionState,
    ActionSubtype,
    Combo,
    FrameHeartbeat,
    MatchEnd,
    MatchStart,
    PlayerSnapshot,
    RosterEntry,
    StockLost,
)
from slippi_coach.state.match_state import MatchSummary, PlayerSummary

ROSTER = (
    RosterEntry(index=0, port=1, character_id=2, character="Fox"),
    RosterEntry(index=1, port=2, character_id=9, character="Marth"),
)


class TestCandidates:
    def test_stock_lost(self) -> None:
        event = StockLost(frame=1, player_index=0, stocks_lost=1, remaining_stocks=2, character="Fox")
        candidates = template_candidates(event)
        assert "Down goes Fox! 2 stocks remaining." in candidates
        assert "Fox gets sent to the blast zone! 2 stocks left." in candidates

    def test_last_stock(self) -> None:
        event = StockLost(frame=1, player_index=1, stocks_lost=1, remaining_stocks=0, character="Marth")
        assert "That's the final stock for Marth!" in template_candidates(event)

    def test_combo(self) -> None:
        event = Combo(frame=1, player_index=0, hit_count=4, damage=52.5, start_frame=0, character="Fox")
        assert "Fox lands a 4-hit combo for 52.5%!" in template_candidates(event)

    @pytest.mark.parametrize("subtype", list(ActionSubtype))
    def test_every_action_subtype_has_templates(self, subtype: ActionSubtype) -> None:
        event = ActionState(frame=1, player_index=0, subtype=subtype, character="Fox")
        candidates = template_candidates(event)
        assert candidates
        assert DEFAULT_LINE not in candidates
        assert all("Fox" in c for c in candidates)

    def test_action_detail_used(self) -> None:
        event = ActionState(
            frame=1, player_index=0, subtype=ActionSubtype.AERIAL_LANDING, detail="back air", character="Marth"
        )
        assert "Marth lands the back air." in template_candidates(event)

    def test_unknown_character_named_by_slot(self) -> None:
        event = StockLost(frame=1, player_index=2, stocks_lost=1, remaining_stocks=3)
        assert all("Player 3" in c for c in template_candidates(event))

    def test_heartbeat_uses_roster(self) -> None:
        event = FrameHeartbeat(
            frame=600,
            players=(PlayerSnapshot(0, 35.0, 4), PlayerSnapshot(1, 80.4, 3)),
        )
        candidates = template_candidates(event, ROSTER)
        assert "10 seconds in: Fox at 35% with 4 stocks, Marth at 80% with 3 stocks." in candidates

    def test_empty_heartbeat_is_catch_all(self) -> None:
        assert template_candidates(FrameHeartbeat(frame=300)) == [DEFAULT_LINE]

    def test_match_start(self) -> None:
        event = MatchStart(roster=ROSTER, stage_id=32)
        assert "Fox vs Marth on Final Destination. Let's go!" in template_candidates(event)

    def test_match_end(self) -> None:
        assert "GAME! That's the match!" in template_candidates(MatchEnd(end_reason="GAME!"))

    def test_no_contest_names_quitter(self) -> None:
        event = MatchEnd(end_reason="No Contest", quitter_index=1)
        assert "No Contest: Marth calls it early." in template_candidates(event, ROSTER)

    def test_unrecognized_event_gets_catch_all(self) -> None:
        assert template_candidates(object()) == [DEFAULT_LINE]


class TestRender:
    def test_render_event_picks_a_candidate(self) -> None:
        event = StockLost(frame=1, player_index=0, stocks_lost=1, remaining_stocks=3, character="Fox")
        rng = random.Random(1)
        for _ in range(10):
            assert render_event(event, rng=rng) in template_candidates(event)

    def test_render_batch_joins_lines(self) -> None:
        events = [
            MatchStart(roster=ROSTER, stage_id=31),
            MatchEnd(end_reason="TIME!"),
        ]
        text = render_batch(events, ROSTER, random.Random(3))
        assert any(text.startswith(c) for c in template_candidates(events[0]))
        assert any(text.endswith(c) for c in template_candidates(events[1]))

    def test_empty_batch(self) -> None:
        assert render_batch([]) == DEFAULT_LINE


class TestCoachingReport:
    def test_report_lists_every_player(self) -> None:
        summary = MatchSummary(
            handle="m1",
            per_player=(
                PlayerSummary(0, "Fox", damage_dealt=240.0, stocks_lost=2, combo_count=6),
                PlayerSummary(1, "Marth", damage_dealt=90.0, stocks_lost=4, combo_count=3),
            ),
        )
        report = render_coaching(summary)
        assert "Fox: 240.0% damage from combos, 2 stocks lost, 6 combos, efficiency 6/10." in report
        assert "Marth: 90.0% damage from combos, 4 stocks lost, 3 combos, efficiency 1/10." in report

    def test_empty_summary(self) -> None:
        assert "nothing to coach" in render_coaching(MatchSummary(handle="m1"))
