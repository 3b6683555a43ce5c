"""Shared test fixtures for the commentary core.

* :class:`FakeClock` -- hand-driven clock for throttling and cache expiry.
* :class:`FakeLLMClient` -- in-process text provider that records calls.
* :func:`make_frame` / :func:`make_settings` -- terse frame and roster builders.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import pytest

from slippi_coach.commentary.llm_client import DEFAULT_SYSTEM_PROMPT, LLMClient
from slippi_coach.exceptions import ProviderError
from slippi_coach.ingest.source import FrameSnapshot, MatchSettings, PlayerFrame, PlayerSettings

FOX = 2
MARTH = 9
FALCO = 20

# Standing still.
WAIT = 0x0E


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, amount: float) -> None:
        self.now += amount


class FakeLLMClient(LLMClient):
    """Provider double: returns canned text or raises ProviderError."""

    name = "fake"

    def __init__(self, response: str = "What a play!", fail: bool = False) -> None:
        self.response = response
        self.fail = fail
        self.calls: List[dict] = []

    def generate_completion(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "system_prompt": system_prompt,
            }
        )
        if self.fail:
            raise ProviderError("backend unavailable", provider=self.name)
        return self.response


def make_frame(
    frame: int,
    players: Sequence[Optional[Tuple[int, float, int]]],
) -> FrameSnapshot:
    """Build a snapshot from ``(stocks, percent, action_state)`` tuples (None = data gap)."""
    return FrameSnapshot(
        frame=frame,
        players=tuple(
            None if p is None else PlayerFrame(stocks=p[0], percent=p[1], action_state_id=p[2])
            for p in players
        ),
    )


def make_settings(*character_ids: int, stage_id: Optional[int] = 31) -> MatchSettings:
    return MatchSettings(
        players=tuple(PlayerSettings(port=i + 1, character_id=c) for i, c in enumerate(character_ids)),
        stage_id=stage_id,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def failing_llm() -> FakeLLMClient:
    return FakeLLMClient(fail=True)


@pytest.fixture
def fox_marth() -> MatchSettings:
    return make_settings(FOX, MARTH)
