"""
Day-of-week analyzer.

For each behavior, compares the weekday (Mon–Fri) average against the
weekend (Sat/Sun) average and finds the best and worst weekday name.

  score behaviors   significant when |weekday - weekend| >= 25 points
  exercise flag     completion-rate %, significant when the gap >= 30

Returns structured facts, not prose. Fewer than 7 records → empty result.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from weekly_coach.services.behaviors import ALL_BEHAVIORS, Behavior, DailyRecord, mean, round_half_up

# Sunday first, so ties between equally-scored days resolve the same way on every call.
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
WEEKEND = ("Saturday", "Sunday")

MIN_RECORDS = 7
SCORE_SIGNIFICANCE = 25
SCORE_SPREAD = 30
EXERCISE_SIGNIFICANCE = 30
EXERCISE_WORST_DAY_RATE = 40

DISPLAY_NAMES = {
    Behavior.NUTRITION_PATTERN: "Nutrition",
    Behavior.ENERGY_BALANCE: "Energy Balance",
    Behavior.PROTEIN: "Protein",
    Behavior.HYDRATION: "Hydration",
    Behavior.SLEEP: "Sleep",
    Behavior.MOVEMENT: "Movement (NEAT)",
    Behavior.MINDSET: "Mindset",
}
EXERCISE_LABEL = "Exercise"


@dataclass(frozen=True)
class DayOfWeekPattern:
    behavior: str
    pattern: str
    weekday_avg: int
    weekend_avg: int
    worst_day: str
    worst_day_avg: int
    best_day: str
    best_day_avg: int
    is_significant: bool


@dataclass(frozen=True)
class DayOfWeekAnalysis:
    patterns: tuple[DayOfWeekPattern, ...] = ()

    @property
    def significant_patterns(self) -> tuple[DayOfWeekPattern, ...]:
        return tuple(p for p in self.patterns if p.is_significant)

    @property
    def has_significant_patterns(self) -> bool:
        return bool(self.significant_patterns)


def day_name(record: DailyRecord) -> str:
    # date.weekday(): Monday == 0
    return DAY_NAMES[(record.day.weekday() + 1) % 7]


def _best_and_worst(day_values: dict[str, float]) -> tuple[str, float, str, float]:
    """Stable descending sort: best = first maximum, worst = last minimum."""
    ranked = sorted(
        ((d, day_values[d]) for d in DAY_NAMES if d in day_values),
        key=lambda item: item[1],
        reverse=True,
    )
    if not ranked:
        return "Unknown", 0.0, "Unknown", 0.0
    best_day, best = ranked[0]
    worst_day, worst = ranked[-1]
    return best_day, best, worst_day, worst


def _analyze_scores(records: Sequence[DailyRecord], behavior: str) -> DayOfWeekPattern:
    by_day: dict[str, list[int]] = {d: [] for d in DAY_NAMES}
    for r in records:
        g = r.grade(behavior)
        if g is not None:
            by_day[day_name(r)].append(g)

    day_avgs = {d: mean(vals) for d, vals in by_day.items() if vals}
    weekday_avg = mean(g for d in WEEKDAYS for g in by_day[d])
    weekend_avg = mean(g for d in WEEKEND for g in by_day[d])
    best_day, best, worst_day, worst = _best_and_worst(day_avgs)

    significant = abs(weekday_avg - weekend_avg) >= SCORE_SIGNIFICANCE
    label = ""
    if significant:
        if weekend_avg < weekday_avg - SCORE_SIGNIFICANCE:
            label = "drops on weekends"
        elif weekday_avg < weekend_avg - SCORE_SIGNIFICANCE:
            label = "drops on weekdays"
        elif best - worst >= SCORE_SPREAD:
            label = f"inconsistent ({worst_day} struggles)"

    return DayOfWeekPattern(
        behavior=DISPLAY_NAMES.get(behavior, behavior),
        pattern=label,
        weekday_avg=round_half_up(weekday_avg),
        weekend_avg=round_half_up(weekend_avg),
        worst_day=worst_day,
        worst_day_avg=round_half_up(worst),
        best_day=best_day,
        best_day_avg=round_half_up(best),
        is_significant=significant,
    )


def _completion_rate(flags: list[bool]) -> float:
    if not flags:
        return 0.0
    return sum(1 for f in flags if f) / len(flags) * 100


def _analyze_exercise(records: Sequence[DailyRecord]) -> DayOfWeekPattern:
    by_day: dict[str, list[bool]] = {d: [] for d in DAY_NAMES}
    for r in records:
        by_day[day_name(r)].append(r.exercise_completed)

    day_rates = {d: _completion_rate(flags) for d, flags in by_day.items() if flags}
    weekday_rate = _completion_rate([f for d in WEEKDAYS for f in by_day[d]])
    weekend_rate = _completion_rate([f for d in WEEKEND for f in by_day[d]])
    best_day, best, worst_day, worst = _best_and_worst(day_rates)

    significant = abs(weekday_rate - weekend_rate) >= EXERCISE_SIGNIFICANCE
    label = ""
    if significant:
        if weekend_rate < weekday_rate - EXERCISE_SIGNIFICANCE:
            label = "missed on weekends"
        elif weekday_rate < weekend_rate - EXERCISE_SIGNIFICANCE:
            label = "missed on weekdays"
        elif worst < EXERCISE_WORST_DAY_RATE:
            label = f"frequently missed on {worst_day}s"

    return DayOfWeekPattern(
        behavior=EXERCISE_LABEL,
        pattern=label,
        weekday_avg=round_half_up(weekday_rate),
        weekend_avg=round_half_up(weekend_rate),
        worst_day=worst_day,
        worst_day_avg=round_half_up(worst),
        best_day=best_day,
        best_day_avg=round_half_up(best),
        is_significant=significant,
    )


def analyze_day_of_week(records: Sequence[DailyRecord]) -> DayOfWeekAnalysis:
    if len(records) < MIN_RECORDS:
        return DayOfWeekAnalysis()
    patterns = [_analyze_scores(records, b) for b in ALL_BEHAVIORS]
    patterns.append(_analyze_exercise(records))
    return DayOfWeekAnalysis(patterns=tuple(patterns))
