from __future__ import annotations

from enum import Enum


class Difficulty(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class UserLevel(str, Enum):
    STUDENT = "student"
    RESIDENT = "resident"
    ATTENDING = "attending"

    @property
    def default_difficulty(self) -> Difficulty:
        return _LEVEL_DIFFICULTY[self]


class CaseSource(str, Enum):
    GENERATED = "generated"
    FALLBACK = "fallback"


_LEVEL_DIFFICULTY = {
    UserLevel.STUDENT: Difficulty.BASIC,
    UserLevel.RESIDENT: Difficulty.INTERMEDIATE,
    UserLevel.ATTENDING: Difficulty.ADVANCED,
}


__all__ = ["CaseSource", "Difficulty", "UserLevel"]
