"""
Exception taxonomy for the commentary core.

Everything derives from CoachError so callers can catch the whole family
with one clause. None of these are fatal: each one has a local recovery
(skip the player, fall back to templates, drop the frame).
"""

from __future__ import annotations

from typing import Optional


class CoachError(Exception):
    """Base exception for all commentary core errors."""


class DataGapError(CoachError):
    """
    Raised when a frame record is missing or has malformed data for a player.

    ``FrameSnapshot.from_dict`` catches this and records the player as
    None for that frame; the tracker then skips that player and counts a
    data gap.
    """

    def __init__(self, message: str, player_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.player_index = player_index


class ProviderError(CoachError):
    """
    Raised by a text-generation client on transport, auth or format failure.

    The narration dispatcher and the coaching builder catch this and fall
    back to deterministic templates.
    """

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class ConfigurationError(CoachError):
    """Raised when the coach configuration or provider selection is invalid."""


class OrderingViolation(CoachError):
    """
    A frame arrived with a frame number at or below the last processed one.

    The tracker never raises this; it drops the frame and counts it.
    The class exists so diagnostics can name the condition.
    """

    def __init__(self, frame: int, last_processed: int) -> None:
        super().__init__(
            f"frame {frame} delivered after frame {last_processed}"
        )
        self.frame = frame
        self.last_processed = last_processed
