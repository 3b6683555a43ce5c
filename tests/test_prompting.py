"""Tests for slippi_coach.commentary.prompting."""

from __future__ import annotations

from conftest import FOX, MARTH, WAIT, make_frame, make_settings
from slippi_coach.commentary.prompting import (
    STYLES,
    MatchContext,
    build_coaching_prompt,
    build_narration_prompt,
    get_style,
)
from slippi_coach.config import NARRATION_STYLES
from slippi_coach.events.schema import ActionState, ActionSubtype, MatchEnd, StockLost
from slippi_coach.events.tracker import MatchStateTracker
from slippi_coach.state.match_state import MatchSummary, PlayerSummary

STOCK = StockLost(frame=300, player_index=0, stocks_lost=1, remaining_stocks=3, character="Fox")
TECH = ActionState(frame=320, player_index=1, subtype=ActionSubtype.TECH, detail="roll left", character="Marth")


class TestStyles:
    def test_every_configured_style_defined(self) -> None:
        assert set(STYLES) == set(NARRATION_STYLES)

    def test_styles_differ(self) -> None:
        prompts = {s.system_prompt for s in STYLES.values()}
        assert len(prompts) == len(STYLES)

    def test_unknown_style_falls_back_to_hype(self) -> None:
        assert get_style("shouty") is STYLES["hype"]


class TestNarrationPrompt:
    def test_events_listed_in_order(self) -> None:
        prompt = build_narration_prompt([STOCK, TECH], style="educational")
        assert prompt.startswith(STYLES["educational"].instructions)
        stock_at = prompt.index("P1 (Fox) lost 1 stock(s), 3 remaining")
        tech_at = prompt.index("P2 (Marth) tech (roll left)")
        assert stock_at < tech_at

    def test_no_context_section_without_context(self) -> None:
        assert "Current match state" not in build_narration_prompt([STOCK])

    def test_context_from_state(self) -> None:
        tracker = MatchStateTracker(heartbeat_interval=0)
        settings = make_settings(FOX, MARTH, stage_id=32)
        tracker.on_settings_known("m1", settings.players, settings.stage_id)
        tracker.on_frame("m1", make_frame(600, [(3, 12.0, WAIT), (4, 87.0, WAIT)]))

        context = MatchContext.from_state(tracker.get("m1"))
        assert context.stocks == (3, 4)
        assert context.percents == (12.0, 87.0)
        assert context.game_time == 10

        prompt = build_narration_prompt([STOCK], context)
        assert "Final Destination" in prompt
        assert "Game time: 10s (frame 600)" in prompt
        assert "P1 Fox: 3 stocks, 12%" in prompt

    def test_match_end_with_quitter(self) -> None:
        prompt = build_narration_prompt([MatchEnd(end_reason="No Contest", quitter_index=0, frame=900)])
        assert "match end (No Contest, quit by P1)" in prompt


class TestCoachingPrompt:
    def test_lists_stats_and_rating(self) -> None:
        summary = MatchSummary(
            handle="m1",
            per_player=(
                PlayerSummary(0, "Fox", damage_dealt=180.0, stocks_lost=3, combo_count=7),
                PlayerSummary(1, "Marth", damage_dealt=210.0, stocks_lost=0, combo_count=5),
            ),
            stage_id=31,
            end_reason="GAME!",
        )
        prompt = build_coaching_prompt(summary)
        assert prompt.startswith("Match on Battlefield ended: GAME!")
        assert "P1 (Fox): damage dealt in combos 180.0%, stocks lost 3, combos 7, efficiency rating 3/10" in prompt
        assert "P2 (Marth): damage dealt in combos 210.0%, stocks lost 0, combos 5, efficiency rating 10/10" in prompt

    def test_empty_summary(self) -> None:
        assert "(no player data recorded)" in build_coaching_prompt(MatchSummary(handle="m1"))
