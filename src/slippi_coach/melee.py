"""
Static Melee lookup tables: characters, stages, and game-end methods.

Character ids are Slippi "external" character ids as they appear in the
replay game-start block.
"""

from __future__ import annotations

from typing import Dict, Optional

CHARACTER_NAMES: Dict[int, str] = {
    0: "Captain Falcon",
    1: "Donkey Kong",
    2: "Fox",
    3: "Mr. Game & Watch",
    4: "Kirby",
    5: "Bowser",
    6: "Link",
    7: "Luigi",
    8: "Mario",
    9: "Marth",
    10: "Mewtwo",
    11: "Ness",
    12: "Peach",
    13: "Pikachu",
    14: "Ice Climbers",
    15: "Jigglypuff",
    16: "Samus",
    17: "Yoshi",
    18: "Zelda",
    19: "Sheik",
    20: "Falco",
    21: "Young Link",
    22: "Dr. Mario",
    23: "Roy",
    24: "Pichu",
    25: "Ganondorf",
}

STAGE_NAMES: Dict[int, str] = {
    2: "Fountain of Dreams",
    3: "Pokemon Stadium",
    8: "Yoshi's Story",
    28: "Dream Land",
    31: "Battlefield",
    32: "Final Destination",
}

# gameEndMethod values from the replay game-end block.
GAME_END_METHODS: Dict[int, str] = {
    1: "TIME!",
    2: "GAME!",
    7: "No Contest",
}

NO_CONTEST = 7

# Stock count every player starts with.
STARTING_STOCKS = 4

FRAMES_PER_SECOND = 60


def character_name(character_id: Optional[int]) -> str:
    if character_id is None:
        return "Unknown"
    return CHARACTER_NAMES.get(character_id, "Unknown")


def stage_name(stage_id: Optional[int]) -> str:
    if stage_id is None:
        return "Unknown stage"
    return STAGE_NAMES.get(stage_id, f"stage {stage_id}")


def end_reason_for_method(method: Optional[int]) -> str:
    """Map a numeric game-end method to its on-screen label (``Unknown`` if unmapped)."""
    if method is None:
        return "Unknown"
    return GAME_END_METHODS.get(method, "Unknown")
