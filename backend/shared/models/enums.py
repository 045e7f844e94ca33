"""Domain enumerations for the DiamondView platform."""
from __future__ import annotations

from enum import Enum


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"
    CANCELLED = "cancelled"


class InningHalf(str, Enum):
    TOP = "top"
    MID = "mid"
    BOTTOM = "bottom"
    END = "end"

    @property
    def rank(self) -> int:
        """Position within an inning: top < mid < bottom < end."""
        return _HALF_RANK[self]


_HALF_RANK = {
    InningHalf.TOP: 0,
    InningHalf.MID: 1,
    InningHalf.BOTTOM: 2,
    InningHalf.END: 3,
}


class Layer(str, Enum):
    SCHEDULE = "schedule"
    LIVE = "live"


class SourceName(str, Enum):
    SIDEARM = "sidearm"
    PEAR = "pear"
    ESPN = "espn"
    STATBROADCAST = "statbroadcast"
    SIDEARM_LIVE = "sidearm_live"


class SupervisorState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    ACTIVE_POLLING = "active_polling"
