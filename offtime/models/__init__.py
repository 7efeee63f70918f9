from .day_stat import DayStat
from .session_note import SessionNote
from .streak import StreakState
from .personal_best import PersonalBest

__all__ = [
    "DayStat",
    "SessionNote",
    "StreakState",
    "PersonalBest",
]
