"""
JSON replay documents.

A replay document is what a Slippi parser exports for one game:

    {
      "settings": {"stageId": 31, "players": [{"port": 1, "characterId": 2, "type": 0}, ...]},
      "frames":   [{"frame": 0, "players": [{"post": {"stocksRemaining": 4, "percent": 0.0,
                                                    "actionStateId": 14}}, ...]}, ...],
      "combos":   [{"playerIndex": 0, "startFrame": 120, "endFrame": 180,
                    "moves": [...], "startPercent": 0.0, "endPercent": 38.5}, ...],
      "gameEnd":  {"gameEndMethod": 2, "lrasInitiatorIndex": -1}
    }

snake_case spellings are accepted everywhere camelCase is shown.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from slippi_coach.ingest.source import (
    ComboRecord,
    FrameSnapshot,
    GameEnd,
    MatchSettings,
    ScriptedFrameSource,
)

logger = logging.getLogger(__name__)


class ReplayFrameSource(ScriptedFrameSource):
    """
    Scripted source that can pace playback like a live stream.

    With ``frame_delay_s`` > 0 each frame is delivered after that delay
    (1/60 s reproduces real time).
    """

    def __init__(
        self,
        frames: Iterable[FrameSnapshot],
        settings: Optional[MatchSettings] = None,
        combos: Iterable[ComboRecord] = (),
        game_end: Optional[GameEnd] = None,
        frame_delay_s: float = 0.0,
    ) -> None:
        super().__init__(frames, settings, combos, game_end)
        self.frame_delay_s = frame_delay_s

    async def next_frame(self) -> Optional[FrameSnapshot]:
        if self.frame_delay_s > 0:
            await asyncio.sleep(self.frame_delay_s)
        return await super().next_frame()


def replay_from_dict(doc: Mapping[str, Any], frame_delay_s: float = 0.0) -> ReplayFrameSource:
    """Build a frame source from a parsed replay document."""
    raw_settings = doc.get("settings")
    settings = MatchSettings.from_dict(raw_settings) if raw_settings else None

    frames = sorted(
        (FrameSnapshot.from_dict(f) for f in doc.get("frames") or []),
        key=lambda f: f.frame,
    )
    combos = [ComboRecord.from_dict(c) for c in doc.get("combos") or []]

    raw_end = doc.get("gameEnd", doc.get("game_end"))
    game_end = GameEnd.from_dict(raw_end) if raw_end else None

    logger.debug(
        "replay document: %d frames, %d combos, game end %s",
        len(frames), len(combos), "present" if game_end else "missing",
    )
    return ReplayFrameSource(frames, settings, combos, game_end, frame_delay_s=frame_delay_s)


def load_replay(path: Union[str, Path], frame_delay_s: float = 0.0) -> ReplayFrameSource:
    """
    Read a replay document from disk.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the file is not a JSON object.
    """
    replay_path = Path(path)
    if not replay_path.exists():
        raise FileNotFoundError(f"Replay not found: {replay_path}")
    with replay_path.open("r", encoding="utf-8") as f:
        doc = json.load(f)
    if not isinstance(doc, dict):
        raise ValueError(f"{replay_path} is not a replay document (expected a JSON object)")
    return replay_from_dict(doc, frame_delay_s=frame_delay_s)
