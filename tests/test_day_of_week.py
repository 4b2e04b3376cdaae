"""
Tests for the day-of-week analyzer. The week runs Monday 2026-02-02 to
Sunday 2026-02-08.
"""
from __future__ import annotations

from datetime import date, timedelta

from weekly_coach.services.behaviors import ALL_BEHAVIORS, BehaviorGrade, DailyRecord
from weekly_coach.services.day_of_week import analyze_day_of_week, day_name

MONDAY = date(2026, 2, 2)


def _week(weekday_grade: int, weekend_grade: int, behavior: str = "sleep", weekend_exercise: bool = True):
    records = []
    for i in range(7):
        day = MONDAY + timedelta(days=i)
        weekend = day.weekday() >= 5
        grades = {n: 80 for n in ALL_BEHAVIORS}
        grades[behavior] = weekend_grade if weekend else weekday_grade
        records.append(DailyRecord(
            day=day,
            checkin_type="real",
            exercise_completed=weekend_exercise or not weekend,
            behavior_grades=tuple(BehaviorGrade(n, g) for n, g in grades.items()),
        ))
    return records


def _pattern(analysis, behavior):
    return next(p for p in analysis.patterns if p.behavior == behavior)


class TestDayName:
    def test_names(self):
        records = _week(80, 80)
        assert day_name(records[0]) == "Monday"
        assert day_name(records[6]) == "Sunday"


class TestScores:
    def test_too_few_records_is_empty(self):
        analysis = analyze_day_of_week(_week(80, 50)[:6])
        assert analysis.patterns == ()
        assert not analysis.has_significant_patterns

    def test_weekend_drop(self):
        sleep = _pattern(analyze_day_of_week(_week(80, 50)), "Sleep")
        assert sleep.is_significant
        assert sleep.pattern == "drops on weekends"
        assert (sleep.weekday_avg, sleep.weekend_avg) == (80, 50)
        assert sleep.best_day == "Monday"
        assert sleep.worst_day == "Saturday"

    def test_weekday_drop(self):
        hydration = _pattern(analyze_day_of_week(_week(50, 100, behavior="hydration")), "Hydration")
        assert hydration.pattern == "drops on weekdays"

    def test_small_gap_is_not_significant(self):
        records = _week(80, 80)
        saturday = records[5]
        records[5] = DailyRecord(
            day=saturday.day,
            checkin_type="real",
            exercise_completed=True,
            behavior_grades=tuple(
                BehaviorGrade(bg.name, 50 if bg.name == "sleep" else bg.grade) for bg in saturday.behavior_grades
            ),
        )
        sleep = _pattern(analyze_day_of_week(records), "Sleep")
        assert sleep.weekend_avg == 65
        assert not sleep.is_significant
        assert sleep.pattern == ""

    def test_display_names(self):
        names = {p.behavior for p in analyze_day_of_week(_week(80, 80)).patterns}
        assert "Movement (NEAT)" in names
        assert "Energy Balance" in names


class TestExercise:
    def test_missed_on_weekends(self):
        analysis = analyze_day_of_week(_week(80, 80, weekend_exercise=False))
        exercise = _pattern(analysis, "Exercise")
        assert exercise.is_significant
        assert exercise.pattern == "missed on weekends"
        assert (exercise.weekday_avg, exercise.weekend_avg) == (100, 0)

    def test_every_behavior_plus_exercise(self):
        analysis = analyze_day_of_week(_week(80, 80))
        assert len(analysis.patterns) == len(ALL_BEHAVIORS) + 1
        assert analysis.significant_patterns == ()
