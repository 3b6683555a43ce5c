"""
Melee action-state ids of interest and transition classification.

Only edges matter: ``classify_transition`` looks at the previous and the
current action state of one player and says which neutral-exchange
subtype (if any) that change represents.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from slippi_coach.events.schema import ActionSubtype

# Techs
TECH_IN_PLACE = 0xC7
TECH_ROLL_LEFT = 0xC9
TECH_ROLL_RIGHT = 0xCA

# Missed techs (DownBoundU / DownBoundD)
DOWN_BOUND_UP = 0xB7
DOWN_BOUND_DOWN = 0xBF

# Recoveries
FIRE_FOX_AIR = 0x15A
UP_B_AIR = 0x15C

# Common states
SHIELD = 0xB3
GRAB = 0xD4

# Aerials and what follows them
NAIR = 0x41
FAIR = 0x42
BAIR = 0x43
UAIR = 0x44
DAIR = 0x45
LANDING_NAIR = 0x46
LANDING_FAIR = 0x47
LANDING_BAIR = 0x48
LANDING_UAIR = 0x49
LANDING_DAIR = 0x4A
FALL = 0x1D

# Air dodge into special landing is a wavedash (or waveland).
AIR_DODGE = 0xEC
LANDING_FALL_SPECIAL = 0x2B

TECH_DETAILS: Dict[int, str] = {
    TECH_IN_PLACE: "in-place",
    TECH_ROLL_LEFT: "roll left",
    TECH_ROLL_RIGHT: "roll right",
}

AERIAL_NAMES: Dict[int, str] = {
    NAIR: "neutral air",
    FAIR: "forward air",
    BAIR: "back air",
    UAIR: "up air",
    DAIR: "down air",
}

AERIAL_LANDINGS = {FALL, LANDING_NAIR, LANDING_FAIR, LANDING_BAIR, LANDING_UAIR, LANDING_DAIR}

RECOVERY_STATES = {FIRE_FOX_AIR, UP_B_AIR}

MISSED_TECH_STATES = {DOWN_BOUND_UP, DOWN_BOUND_DOWN}


def classify_transition(
    previous: Optional[int], current: Optional[int]
) -> Optional[Tuple[ActionSubtype, Optional[str]]]:
    """
    Classify an action-state change into a neutral-exchange subtype.

    Parameters
    ----------
    previous : int or None
        Action state on the last processed frame.
    current : int or None
        Action state on this frame.

    Returns
    -------
    (subtype, detail) or None
        None when there is no change, no previous state, or the change is
        not one we narrate.
    """
    if previous is None or current is None or previous == current:
        return None

    if current in TECH_DETAILS:
        return ActionSubtype.TECH, TECH_DETAILS[current]
    if current in MISSED_TECH_STATES:
        return ActionSubtype.TECH_MISS, None
    if current == SHIELD:
        return ActionSubtype.SHIELD, None
    if current == GRAB:
        return ActionSubtype.GRAB, None
    if current in RECOVERY_STATES:
        return ActionSubtype.RECOVERY, "fire fox" if current == FIRE_FOX_AIR else "up-b"
    if current in AERIAL_LANDINGS and previous in AERIAL_NAMES:
        return ActionSubtype.AERIAL_LANDING, AERIAL_NAMES[previous]
    if current == LANDING_FALL_SPECIAL and previous == AIR_DODGE:
        return ActionSubtype.WAVEDASH, None
    return None
