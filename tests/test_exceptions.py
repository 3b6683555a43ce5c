"""Tests for slippi_coach.exceptions."""

from __future__ import annotations

import pytest

from slippi_coach.exceptions import (
    CoachError,
    ConfigurationError,
    DataGapError,
    OrderingViolation,
    ProviderError,
)


class TestHierarchy:
    @pytest.mark.parametrize("cls", [DataGapError, ProviderError, ConfigurationError, OrderingViolation])
    def test_subclass_of_base(self, cls: type) -> None:
        assert issubclass(cls, CoachError)

    def test_base_is_exception(self) -> None:
        assert issubclass(CoachError, Exception)


class TestAttributes:
    def test_data_gap_carries_player(self) -> None:
        exc = DataGapError("no frame data for player 1", player_index=1)
        assert exc.player_index == 1
        assert str(exc) == "no frame data for player 1"

    def test_provider_error_carries_provider(self) -> None:
        exc = ProviderError("timeout", provider="openai")
        assert exc.provider == "openai"

    def test_ordering_violation_message(self) -> None:
        exc = OrderingViolation(frame=5, last_processed=10)
        assert (exc.frame, exc.last_processed) == (5, 10)
        assert str(exc) == "frame 5 delivered after frame 10"
