"""
Week-over-week comparison and standout performance detection.

compare_weeks        per-behavior average this week vs last week
                     (rounded half-up; direction up/down when |delta| > 5)
detect_standout      behaviors rated on all 7 days that were Elite every day
                     or averaged Solid or better

Mindset is not compared week over week; it is a signal-only behavior.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from weekly_coach.services.behaviors import (
    Behavior,
    DailyRecord,
    Grade,
    behavior_average,
    grades_for,
    mean,
    round_half_up,
)

COMPARED_BEHAVIORS = (
    Behavior.NUTRITION_PATTERN,
    Behavior.ENERGY_BALANCE,
    Behavior.PROTEIN,
    Behavior.HYDRATION,
    Behavior.SLEEP,
    Behavior.MOVEMENT,
)

FLAT_BAND = 5
FULL_WEEK = 7

PERFORMANCE_LABELS = {
    Behavior.NUTRITION_PATTERN: "Nutrition Pattern",
    Behavior.ENERGY_BALANCE: "Energy Balance",
    Behavior.PROTEIN: "Protein",
    Behavior.HYDRATION: "Hydration",
    Behavior.SLEEP: "Sleep",
    Behavior.MINDSET: "Mindset",
    Behavior.MOVEMENT: "Movement",
}


@dataclass(frozen=True)
class BehaviorChange:
    behavior: str
    current_avg: int
    previous_avg: int
    delta: int
    direction: str  # up | down | flat

    @property
    def arrow(self) -> str:
        return {"up": "↑", "down": "↓"}.get(self.direction, "→")

    def describe(self) -> str:
        sign = "+" if self.delta > 0 else ""
        return f"{self.behavior}: {self.previous_avg} → {self.current_avg} ({sign}{self.delta}) {self.arrow}"


@dataclass(frozen=True)
class StandoutPerformance:
    solid_week: tuple[str, ...] = ()
    elite_week: tuple[str, ...] = ()


def compare_weeks(
    current: Sequence[DailyRecord],
    previous: Sequence[DailyRecord],
) -> list[BehaviorChange]:
    changes = []
    for name in COMPARED_BEHAVIORS:
        cur = round_half_up(behavior_average(current, name))
        prev = round_half_up(behavior_average(previous, name))
        delta = cur - prev
        direction = "flat"
        if delta > FLAT_BAND:
            direction = "up"
        elif delta < -FLAT_BAND:
            direction = "down"
        changes.append(BehaviorChange(
            behavior=name.replace("_", " "),
            current_avg=cur,
            previous_avg=prev,
            delta=delta,
            direction=direction,
        ))
    return changes


def largest_drop(changes: Sequence[BehaviorChange]) -> BehaviorChange | None:
    drops = [c for c in changes if c.direction == "down"]
    return min(drops, key=lambda c: c.delta) if drops else None


def detect_standout_performance(records: Sequence[DailyRecord]) -> StandoutPerformance:
    """Only days with an actual (non-Off) rating count; a full week is required."""
    solid, elite = [], []
    for name, label in PERFORMANCE_LABELS.items():
        rated = [g for g in grades_for(records, name) if g > 0]
        if len(rated) < FULL_WEEK:
            continue
        if all(g == Grade.ELITE for g in rated):
            elite.append(label)
        elif mean(rated) >= Grade.SOLID:
            solid.append(label)
    return StandoutPerformance(solid_week=tuple(solid), elite_week=tuple(elite))
