"""
Progression Classifier — advance / stabilize / simplify for next week.

Priority (first stage with any matching trigger wins):
  1. simplify   safety override
  2. stabilize  cooldown after a recent jump
  3. advance    default forward push
  4. fallback   advance, "Maintain forward momentum with current approach"

Inputs are the current and previous week's real check-ins, oldest first.
Exercise days count `exerciseCompleted`; the `movement` grade (NEAT) is a
separate progression behavior. Mindset is a signal only and never counts
toward progression.

Each stage is a list of trigger functions `(ProgressionInputs) -> list[str]`.
All reasons of the winning stage are returned as `triggers`; the first one
is the primary `reason`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from weekly_coach.services.behaviors import (
    ALL_BEHAVIORS,
    Behavior,
    DailyRecord,
    Grade,
    behavior_average,
    exercise_days,
    round_half_up,
)


class ProgressionType:
    ADVANCE   = "advance"
    STABILIZE = "stabilize"
    SIMPLIFY  = "simplify"


PROGRESSION_TYPES = (ProgressionType.ADVANCE, ProgressionType.STABILIZE, ProgressionType.SIMPLIFY)

FOUNDATION_BEHAVIORS = (Behavior.SLEEP, Behavior.NUTRITION_PATTERN, Behavior.HYDRATION)

PROGRESSION_BEHAVIORS = (
    Behavior.NUTRITION_PATTERN,
    Behavior.ENERGY_BALANCE,
    Behavior.PROTEIN,
    Behavior.HYDRATION,
    Behavior.SLEEP,
    Behavior.MOVEMENT,
)

# Thresholds
MAX_OFF_RATINGS       = 3
MOMENTUM_DECLINE      = 15
FOUNDATION_FLOOR      = 50
EXERCISE_DROP_BELOW   = 3
EXERCISE_ADVANCE_DAYS = 5
BEHAVIOR_JUMP         = 15
SOLID_AVERAGE         = Grade.SOLID
SOLID_BEHAVIOR_COUNT  = 5
FOUNDATION_EXERCISE   = 4

FALLBACK_REASON = "Maintain forward momentum with current approach"


@dataclass(frozen=True)
class ProgressionResult:
    type: str
    reason: str
    triggers: tuple[str, ...]
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "reason": self.reason,
            "triggers": list(self.triggers),
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class ProgressionInputs:
    current: tuple[DailyRecord, ...]
    previous: tuple[DailyRecord, ...]
    averages: dict[str, float]
    previous_averages: dict[str, float]
    exercise_days: int
    previous_exercise_days: int
    momentum_change: float
    off_count: int


def _last_momentum(week: Sequence[DailyRecord]) -> float:
    return week[-1].momentum_score if week else 0.0


def _off_ratings(week: Sequence[DailyRecord]) -> int:
    return sum(1 for r in week for bg in r.behavior_grades if bg.grade == Grade.OFF)


def _has_off(week: Sequence[DailyRecord], name: str) -> bool:
    return any(r.grade(name) == Grade.OFF for r in week)


def _averages(week: Sequence[DailyRecord]) -> dict[str, float]:
    return {name: behavior_average(week, name) for name in ALL_BEHAVIORS}


def _build_inputs(current: Sequence[DailyRecord], previous: Sequence[DailyRecord]) -> ProgressionInputs:
    current = tuple(current)
    previous = tuple(previous)
    return ProgressionInputs(
        current=current,
        previous=previous,
        averages=_averages(current),
        previous_averages=_averages(previous),
        exercise_days=exercise_days(current),
        previous_exercise_days=exercise_days(previous),
        momentum_change=_last_momentum(current) - _last_momentum(previous),
        off_count=_off_ratings(current),
    )


# ---------------------------------------------------------------------------
# Simplify triggers
# ---------------------------------------------------------------------------

def _too_many_off(p: ProgressionInputs) -> list[str]:
    if p.off_count >= MAX_OFF_RATINGS:
        return [f"{p.off_count} Off ratings this week (threshold: {MAX_OFF_RATINGS})"]
    return []


def _momentum_declined(p: ProgressionInputs) -> list[str]:
    if p.momentum_change <= -MOMENTUM_DECLINE:
        return [f"Momentum declined {abs(p.momentum_change):.1f} points (threshold: {MOMENTUM_DECLINE})"]
    return []


def _foundation_below_floor(p: ProgressionInputs) -> list[str]:
    return [
        f"{name} averaged {round_half_up(p.averages[name])}% (floor: {FOUNDATION_FLOOR}%)"
        for name in FOUNDATION_BEHAVIORS
        if p.averages[name] < FOUNDATION_FLOOR
    ]


def _exercise_dropped(p: ProgressionInputs) -> list[str]:
    if p.previous_exercise_days >= EXERCISE_ADVANCE_DAYS and p.exercise_days < EXERCISE_DROP_BELOW:
        return [f"Movement dropped from {p.previous_exercise_days} to {p.exercise_days} days"]
    return []


# ---------------------------------------------------------------------------
# Stabilize triggers
# ---------------------------------------------------------------------------

def _exercise_jumped(p: ProgressionInputs) -> list[str]:
    if p.exercise_days >= p.previous_exercise_days + 2 and p.exercise_days >= EXERCISE_ADVANCE_DAYS:
        return [
            f"Movement increased from {p.previous_exercise_days} to {p.exercise_days} days (likely level-up)"
        ]
    return []


def _behavior_jumped(p: ProgressionInputs) -> list[str]:
    reasons = []
    for name in ALL_BEHAVIORS:
        cur, prev = p.averages[name], p.previous_averages[name]
        if cur - prev >= BEHAVIOR_JUMP:
            reasons.append(
                f"{name} jumped {round_half_up(cur - prev)} points "
                f"({round_half_up(prev)}% → {round_half_up(cur)}%)"
            )
    return reasons


# ---------------------------------------------------------------------------
# Advance triggers
# ---------------------------------------------------------------------------

def _two_consistent_weeks(p: ProgressionInputs) -> list[str]:
    if p.exercise_days >= EXERCISE_ADVANCE_DAYS and p.previous_exercise_days >= EXERCISE_ADVANCE_DAYS:
        return [
            f"Exercised {p.exercise_days} days this week, "
            f"{p.previous_exercise_days} days last week (earned level-up)"
        ]
    return []


def _solid_without_off(p: ProgressionInputs) -> list[str]:
    both_weeks = p.previous + p.current
    return [
        f"{name} averaged {round_half_up(p.averages[name])}% with no Off ratings (ready to increase)"
        for name in PROGRESSION_BEHAVIORS
        if p.averages[name] >= SOLID_AVERAGE and not _has_off(both_weeks, name)
    ]


def _solid_foundation(p: ProgressionInputs) -> list[str]:
    solid = [name for name in PROGRESSION_BEHAVIORS if p.averages[name] >= SOLID_AVERAGE]
    if len(solid) < SOLID_BEHAVIOR_COUNT or p.exercise_days < FOUNDATION_EXERCISE:
        return []
    if any(_has_off(p.current, name) for name in PROGRESSION_BEHAVIORS):
        return []
    return [
        f"{len(solid)} behaviors averaging Solid+ with {p.exercise_days} exercise days "
        "(foundation ready for increase)"
    ]


Trigger = Callable[[ProgressionInputs], list[str]]

PROGRESSION_STAGES: tuple[tuple[str, tuple[Trigger, ...]], ...] = (
    (ProgressionType.SIMPLIFY, (_too_many_off, _momentum_declined, _foundation_below_floor, _exercise_dropped)),
    (ProgressionType.STABILIZE, (_exercise_jumped, _behavior_jumped)),
    (ProgressionType.ADVANCE, (_two_consistent_weeks, _solid_without_off, _solid_foundation)),
)


def _metadata(p: ProgressionInputs) -> dict:
    return {
        "movementDays": p.exercise_days,
        "previousMovementDays": p.previous_exercise_days,
        "momentumChange": p.momentum_change,
        "offRatingCount": p.off_count,
        "behaviorAverages": dict(p.averages),
    }


def derive_progression(
    current: Sequence[DailyRecord],
    previous: Sequence[DailyRecord],
) -> ProgressionResult:
    p = _build_inputs(current, previous)
    metadata = _metadata(p)

    for progression_type, triggers in PROGRESSION_STAGES:
        reasons = [reason for trigger in triggers for reason in trigger(p)]
        if reasons:
            return ProgressionResult(
                type=progression_type,
                reason=reasons[0],
                triggers=tuple(reasons),
                metadata=metadata,
            )

    return ProgressionResult(
        type=ProgressionType.ADVANCE,
        reason=FALLBACK_REASON,
        triggers=("No specific triggers - default ADVANCE",),
        metadata=metadata,
    )


def default_progression() -> ProgressionResult:
    """Used when no check-in data is available (fixture runs)."""
    return ProgressionResult(
        type=ProgressionType.ADVANCE,
        reason=FALLBACK_REASON,
        triggers=("No check-in data - default ADVANCE",),
        metadata={},
    )
