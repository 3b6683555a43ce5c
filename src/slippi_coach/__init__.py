"""
Live Melee commentary and end-of-match coaching from Slippi frame data.
"""

from .config import CoachConfig  # noqa: F401
from .session import CoachSession  # noqa: F401

__version__ = "0.1.0"
