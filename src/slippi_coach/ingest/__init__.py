"""
Frame sources feeding the tracker.

- source: FrameSource protocol, frame/settings/combo types, ScriptedFrameSource.
- replay: JSON replay documents played back as a frame source.
"""

from .source import (  # noqa: F401
    ComboRecord,
    FrameSnapshot,
    FrameSource,
    GameEnd,
    MatchSettings,
    PlayerFrame,
    PlayerSettings,
    ScriptedFrameSource,
)
from .replay import ReplayFrameSource, load_replay, replay_from_dict  # noqa: F401
