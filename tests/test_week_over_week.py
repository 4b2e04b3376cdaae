"""
Tests for week-over-week comparison and standout performance.
"""
from __future__ import annotations

from datetime import date, timedelta

from weekly_coach.services.behaviors import ALL_BEHAVIORS, BehaviorGrade, DailyRecord
from weekly_coach.services.week_over_week import (
    BehaviorChange,
    compare_weeks,
    detect_standout_performance,
    largest_drop,
)

CURRENT = date(2026, 2, 2)
PREVIOUS = CURRENT - timedelta(days=7)


def _week(start: date, days: int = 7, **grades: int) -> list[DailyRecord]:
    return [
        DailyRecord(
            day=start + timedelta(days=i),
            checkin_type="real",
            exercise_completed=True,
            behavior_grades=tuple(BehaviorGrade(n, grades.get(n, 80)) for n in ALL_BEHAVIORS),
        )
        for i in range(days)
    ]


def _change(changes, behavior):
    return next(c for c in changes if c.behavior == behavior)


class TestCompareWeeks:
    def test_improvement(self):
        changes = compare_weeks(_week(CURRENT), _week(PREVIOUS, sleep=50))
        sleep = _change(changes, "sleep")
        assert (sleep.previous_avg, sleep.current_avg, sleep.delta, sleep.direction) == (50, 80, 30, "up")
        assert sleep.describe() == "sleep: 50 → 80 (+30) ↑"

    def test_decline(self):
        protein = _change(compare_weeks(_week(CURRENT, protein=50), _week(PREVIOUS)), "protein")
        assert protein.direction == "down"
        assert protein.describe() == "protein: 80 → 50 (-30) ↓"

    def test_small_change_is_flat(self):
        current = _week(CURRENT)
        current[0] = DailyRecord(
            day=current[0].day,
            checkin_type="real",
            exercise_completed=True,
            behavior_grades=tuple(
                BehaviorGrade(n, 100 if n == "hydration" else 80) for n in ALL_BEHAVIORS
            ),
        )
        hydration = _change(compare_weeks(current, _week(PREVIOUS)), "hydration")
        assert hydration.delta == 3
        assert hydration.direction == "flat"
        assert hydration.arrow == "→"

    def test_mindset_is_not_compared(self):
        changes = compare_weeks(_week(CURRENT), _week(PREVIOUS, mindset=0))
        assert len(changes) == 6
        assert all(c.behavior != "mindset" for c in changes)

    def test_names_use_spaces(self):
        names = [c.behavior for c in compare_weeks(_week(CURRENT), _week(PREVIOUS))]
        assert "nutrition pattern" in names
        assert "energy balance" in names


class TestLargestDrop:
    def test_picks_the_steepest_decline(self):
        changes = [
            BehaviorChange("sleep", 50, 80, -30, "down"),
            BehaviorChange("protein", 0, 80, -80, "down"),
            BehaviorChange("hydration", 100, 50, 50, "up"),
        ]
        assert largest_drop(changes).behavior == "protein"

    def test_none_without_drops(self):
        assert largest_drop(compare_weeks(_week(CURRENT), _week(PREVIOUS))) is None


class TestStandout:
    def test_elite_and_solid(self):
        standout = detect_standout_performance(_week(CURRENT, sleep=100))
        assert standout.elite_week == ("Sleep",)
        assert "Hydration" in standout.solid_week
        assert "Sleep" not in standout.solid_week

    def test_requires_a_full_week(self):
        standout = detect_standout_performance(_week(CURRENT, days=6, sleep=100))
        assert standout.elite_week == ()
        assert standout.solid_week == ()

    def test_off_days_do_not_count_as_rated(self):
        records = _week(CURRENT, sleep=100)
        records[3] = DailyRecord(
            day=records[3].day,
            checkin_type="real",
            exercise_completed=True,
            behavior_grades=tuple(BehaviorGrade(n, 0 if n == "sleep" else 80) for n in ALL_BEHAVIORS),
        )
        assert "Sleep" not in detect_standout_performance(records).elite_week

    def test_not_great_average_is_not_standout(self):
        standout = detect_standout_performance(_week(CURRENT, protein=50))
        assert "Protein" not in standout.solid_week
