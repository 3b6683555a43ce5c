"""
Frame source contract and the plain data types it yields.

A frame source is whatever sits between the game (a live Slippi stream
or a replay file being written) and the tracker. The core only needs
per-frame player snapshots, the match settings once known, the combo
list computed so far, and the game-end block if there is one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence

from slippi_coach.exceptions import DataGapError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerFrame:
    """Post-frame state of one player."""

    stocks: int
    percent: float
    action_state_id: int

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], player_index: int) -> "PlayerFrame":
        """
        Parse a player entry, accepting either a flat dict or Slippi's
        ``{"post": {...}}`` nesting and ``stocksRemaining``/``actionStateId``
        spellings.

        Raises
        ------
        DataGapError
            If the entry is missing, is not a mapping, or lacks (or has
            non-numeric) stocks, percent or action state.
        """
        if not data or not isinstance(data, Mapping):
            raise DataGapError(f"no frame data for player {player_index}", player_index)
        post = data.get("post", data)
        if not post or not isinstance(post, Mapping):
            raise DataGapError(f"no post-frame data for player {player_index}", player_index)

        stocks = _first_present(post, "stocks", "stocksRemaining")
        percent = _first_present(post, "percent")
        action_state = _first_present(post, "action_state_id", "actionStateId")
        if stocks is None or percent is None or action_state is None:
            raise DataGapError(f"partial frame data for player {player_index}", player_index)
        try:
            return cls(stocks=int(stocks), percent=float(percent), action_state_id=int(action_state))
        except (TypeError, ValueError) as exc:
            raise DataGapError(f"malformed frame data for player {player_index}: {exc}", player_index) from exc


@dataclass(frozen=True)
class FrameSnapshot:
    """
    One frame of telemetry.

    ``players`` is indexed by player index; an entry is None when the
    source had no usable data for that player on this frame.
    """

    frame: int
    players: Sequence[Optional[PlayerFrame]] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FrameSnapshot":
        raw_players = data.get("players") or []
        if isinstance(raw_players, Mapping):
            size = max((int(k) for k in raw_players), default=-1) + 1
            raw_players = [raw_players.get(str(i), raw_players.get(i)) for i in range(size)]

        players: List[Optional[PlayerFrame]] = []
        for index, raw in enumerate(raw_players):
            try:
                players.append(PlayerFrame.from_dict(raw, index))
            except DataGapError as exc:
                logger.debug("frame %s: %s", data.get("frame"), exc)
                players.append(None)
        return cls(frame=int(data["frame"]), players=tuple(players))


@dataclass(frozen=True)
class PlayerSettings:
    port: int
    character_id: int
    is_human: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int) -> "PlayerSettings":
        # Slippi player type: 0 = human, 1 = CPU.
        player_type = data.get("type", data.get("playerType", 0))
        return cls(
            port=int(data.get("port", index + 1)),
            character_id=int(_first_present(data, "character_id", "characterId") or 0),
            is_human=player_type in (0, None, "human"),
        )


@dataclass(frozen=True)
class MatchSettings:
    players: Sequence[PlayerSettings]
    stage_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchSettings":
        players = [
            PlayerSettings.from_dict(p, i) for i, p in enumerate(data.get("players") or []) if p
        ]
        stage = _first_present(data, "stage_id", "stageId")
        return cls(players=tuple(players), stage_id=None if stage is None else int(stage))


@dataclass(frozen=True)
class ComboRecord:
    """
    A combo as computed by the source's stats engine.

    ``damage`` may be None, in which case it is derived from
    ``end_percent - start_percent``.
    """

    player_index: int
    start_frame: int
    end_frame: Optional[int] = None
    moves: Sequence[Any] = field(default_factory=tuple)
    damage: Optional[float] = None
    start_percent: Optional[float] = None
    end_percent: Optional[float] = None

    @property
    def hit_count(self) -> int:
        return len(self.moves)

    def resolved_damage(self) -> float:
        if self.damage is not None:
            return float(self.damage)
        if self.start_percent is not None and self.end_percent is not None:
            return float(self.end_percent) - float(self.start_percent)
        return 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComboRecord":
        end_frame = _first_present(data, "end_frame", "endFrame")
        return cls(
            player_index=int(_first_present(data, "player_index", "playerIndex")),
            start_frame=int(_first_present(data, "start_frame", "startFrame")),
            end_frame=None if end_frame is None else int(end_frame),
            moves=tuple(data.get("moves") or ()),
            damage=_first_present(data, "damage", "percent"),
            start_percent=_first_present(data, "start_percent", "startPercent"),
            end_percent=_first_present(data, "end_percent", "endPercent"),
        )


@dataclass(frozen=True)
class GameEnd:
    method: Optional[int] = None
    quitter_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameEnd":
        method = _first_present(data, "method", "gameEndMethod")
        quitter = _first_present(data, "quitter_index", "lrasInitiatorIndex")
        return cls(
            method=None if method is None else int(method),
            quitter_index=None if quitter is None or int(quitter) < 0 else int(quitter),
        )


class FrameSource(Protocol):
    """What the session needs from a live stream or a replay reader."""

    async def next_frame(self) -> Optional[FrameSnapshot]:
        """Wait for the next frame; None once the stream has ended."""
        ...

    def settings(self) -> Optional[MatchSettings]:
        ...

    def combos(self) -> List[ComboRecord]:
        ...

    def game_end(self) -> Optional[GameEnd]:
        ...


class ScriptedFrameSource:
    """
    In-memory frame source that plays back prepared frames in order.

    Combos become visible once the playback reaches the combo's end frame
    (or start frame when no end frame is known), matching how a stats
    engine only reports a combo after it happened. The game-end block is
    visible once every frame has been delivered.
    """

    def __init__(
        self,
        frames: Iterable[FrameSnapshot],
        settings: Optional[MatchSettings] = None,
        combos: Iterable[ComboRecord] = (),
        game_end: Optional[GameEnd] = None,
    ) -> None:
        self._frames = list(frames)
        self._settings = settings
        self._combos = list(combos)
        self._game_end = game_end
        self._position = 0
        self._current_frame: Optional[int] = None

    async def next_frame(self) -> Optional[FrameSnapshot]:
        if self._position >= len(self._frames):
            return None
        snapshot = self._frames[self._position]
        self._position += 1
        self._current_frame = snapshot.frame
        return snapshot

    def settings(self) -> Optional[MatchSettings]:
        return self._settings

    def combos(self) -> List[ComboRecord]:
        if self._current_frame is None:
            return []
        return [
            c for c in self._combos
            if (c.end_frame if c.end_frame is not None else c.start_frame) <= self._current_frame
        ]

    def game_end(self) -> Optional[GameEnd]:
        if self._position < len(self._frames):
            return None
        return self._game_end


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None

