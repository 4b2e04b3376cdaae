"""
Behavior vocabulary and the typed DailyRecord shared by every classifier.

Grades are ordinal: Off (0), Not Great (50), Solid (80), Elite (100).
`exerciseCompleted` is a binary gate and is independent of the `movement`
rating, which tracks bonus activity (NEAT).

Pure data + tiny numeric helpers. No DB, no HTTP.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

class Behavior:
    NUTRITION_PATTERN = "nutrition_pattern"
    ENERGY_BALANCE    = "energy_balance"
    PROTEIN           = "protein"
    HYDRATION         = "hydration"
    SLEEP             = "sleep"
    MINDSET           = "mindset"
    MOVEMENT          = "movement"


ALL_BEHAVIORS: tuple[str, ...] = (
    Behavior.NUTRITION_PATTERN,
    Behavior.ENERGY_BALANCE,
    Behavior.PROTEIN,
    Behavior.HYDRATION,
    Behavior.SLEEP,
    Behavior.MINDSET,
    Behavior.MOVEMENT,
)

# Everything except the NEAT movement rating
NON_EXERCISE_BEHAVIORS: tuple[str, ...] = (
    Behavior.NUTRITION_PATTERN,
    Behavior.ENERGY_BALANCE,
    Behavior.PROTEIN,
    Behavior.HYDRATION,
    Behavior.SLEEP,
    Behavior.MINDSET,
)


class Grade:
    OFF       = 0
    NOT_GREAT = 50
    SOLID     = 80
    ELITE     = 100


GRADES: tuple[int, ...] = (Grade.OFF, Grade.NOT_GREAT, Grade.SOLID, Grade.ELITE)


class CheckinType:
    REAL     = "real"
    GAP_FILL = "gap_fill"


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BehaviorGrade:
    name: str
    grade: int


@dataclass(frozen=True)
class DailyRecord:
    """One parsed check-in. Built only via schemas.checkin.CheckinDocument."""
    day: date
    checkin_type: str
    exercise_completed: bool
    behavior_grades: tuple[BehaviorGrade, ...] = field(default_factory=tuple)
    momentum_score: float = 0.0
    daily_score: float = 0.0
    gap_resolved: Optional[bool] = None
    total_real_checkins: Optional[int] = None
    note: Optional[str] = None

    @property
    def is_real(self) -> bool:
        return self.checkin_type == CheckinType.REAL

    def grade(self, name: str) -> Optional[int]:
        """Grade for `name`, or None when the behavior was not rated that day."""
        for bg in self.behavior_grades:
            if bg.name == name:
                return bg.grade
        return None

    def grade_or_zero(self, name: str) -> int:
        g = self.grade(name)
        return g if g is not None else 0


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round .5 upwards (Python's round() uses banker's rounding)."""
    return int(math.floor(value + 0.5))


def mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return sum(vals) / len(vals)


def grades_for(records: Iterable[DailyRecord], name: str) -> list[int]:
    """All recorded grades for one behavior. Days without a rating are skipped."""
    out: list[int] = []
    for r in records:
        g = r.grade(name)
        if g is not None:
            out.append(g)
    return out


def behavior_average(records: Iterable[DailyRecord], name: str) -> float:
    """Mean of recorded grades for `name`; 0 when the behavior was never rated."""
    return mean(grades_for(records, name))


def exercise_days(records: Iterable[DailyRecord]) -> int:
    return sum(1 for r in records if r.exercise_completed)
