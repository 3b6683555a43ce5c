"""
End-of-match statistics and coaching feedback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from slippi_coach.commentary.llm_client import LLMClient
from slippi_coach.commentary.prompting import (
    COACHING_MAX_TOKENS,
    COACHING_SYSTEM_PROMPT,
    COACHING_TEMPERATURE,
    build_coaching_prompt,
)
from slippi_coach.commentary.templates import render_coaching
from slippi_coach.events.tracker import MatchStateTracker
from slippi_coach.exceptions import ProviderError
from slippi_coach.state.match_state import MatchSummary, summarize_events

logger = logging.getLogger(__name__)


class MatchSummaryBuilder:
    """
    Fold a match's stock-loss and combo history into per-player totals,
    and turn those totals into coaching text.

    The history comes from the tracker and covers every detected event,
    whether or not it was admitted for narration.
    """

    def __init__(self, tracker: MatchStateTracker, llm_client: Optional[LLMClient] = None) -> None:
        self.tracker = tracker
        self.llm_client = llm_client

    def summarize(self, handle: str) -> MatchSummary:
        """Totals for ``handle``; an unknown match summarizes to nothing."""
        state = self.tracker.get(handle)
        if state is None:
            return MatchSummary(handle=handle)
        return summarize_events(
            handle,
            state.roster,
            state.history,
            stage_id=state.stage_id,
            end_reason=state.end_reason,
        )

    async def coach(self, summary: MatchSummary) -> str:
        """
        Ask the text provider for coaching feedback on ``summary``.

        Falls back to the template report when there is no provider or the
        provider fails.
        """
        if self.llm_client is not None:
            try:
                return await asyncio.to_thread(
                    self.llm_client.generate_completion,
                    build_coaching_prompt(summary),
                    COACHING_MAX_TOKENS,
                    COACHING_TEMPERATURE,
                    COACHING_SYSTEM_PROMPT,
                )
            except ProviderError as exc:
                logger.warning("%s: coaching request failed, using templates: %s", summary.handle, exc)
        return render_coaching(summary)
