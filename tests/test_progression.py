"""
Tests for the progression classifier.

Weeks are built from seven hand-made records; the previous week always
starts seven days before the current one.
"""
from __future__ import annotations

from datetime import date, timedelta

from weekly_coach.services.behaviors import ALL_BEHAVIORS, BehaviorGrade, DailyRecord
from weekly_coach.services.progression import (
    FALLBACK_REASON,
    ProgressionType,
    default_progression,
    derive_progression,
)

CURRENT = date(2026, 2, 2)
PREVIOUS = CURRENT - timedelta(days=7)


def _week(start: date, exercise: int = 5, momentum: float = 70, overrides=None, **grades: int) -> list[DailyRecord]:
    """Seven records; exercise on the first `exercise` days.

    `overrides` maps a day index to per-behavior grades for that day only.
    """
    overrides = overrides or {}
    records = []
    for i in range(7):
        day_grades = {n: grades.get(n, 80) for n in ALL_BEHAVIORS}
        day_grades.update(overrides.get(i, {}))
        records.append(DailyRecord(
            day=start + timedelta(days=i),
            checkin_type="real",
            exercise_completed=i < exercise,
            behavior_grades=tuple(BehaviorGrade(n, g) for n, g in day_grades.items()),
            momentum_score=momentum,
        ))
    return records


class TestSimplify:
    def test_three_off_ratings(self):
        current = _week(CURRENT, overrides={0: {"mindset": 0}, 1: {"mindset": 0}, 2: {"mindset": 0}})
        result = derive_progression(current, _week(PREVIOUS))
        assert result.type == ProgressionType.SIMPLIFY
        assert result.reason == "3 Off ratings this week (threshold: 3)"

    def test_two_off_ratings_are_tolerated(self):
        current = _week(CURRENT, overrides={0: {"mindset": 0}, 1: {"mindset": 0}})
        assert derive_progression(current, _week(PREVIOUS)).type != ProgressionType.SIMPLIFY

    def test_momentum_decline(self):
        result = derive_progression(_week(CURRENT, momentum=60), _week(PREVIOUS, momentum=80))
        assert result.type == ProgressionType.SIMPLIFY
        assert result.reason == "Momentum declined 20.0 points (threshold: 15)"

    def test_foundation_below_floor(self):
        current = _week(CURRENT, sleep=50, overrides={5: {"sleep": 0}, 6: {"sleep": 0}})
        result = derive_progression(current, _week(PREVIOUS))
        assert result.type == ProgressionType.SIMPLIFY
        assert result.reason == "sleep averaged 36% (floor: 50%)"

    def test_exercise_dropped(self):
        result = derive_progression(_week(CURRENT, exercise=2), _week(PREVIOUS, exercise=6))
        assert result.type == ProgressionType.SIMPLIFY
        assert result.reason == "Movement dropped from 6 to 2 days"

    def test_simplify_beats_stabilize(self):
        current = _week(CURRENT, exercise=6, momentum=50)
        result = derive_progression(current, _week(PREVIOUS, exercise=3, momentum=70))
        assert result.type == ProgressionType.SIMPLIFY

    def test_all_reasons_of_the_stage_are_kept(self):
        current = _week(CURRENT, exercise=2, momentum=50)
        result = derive_progression(current, _week(PREVIOUS, exercise=6, momentum=70))
        assert result.triggers == (
            "Momentum declined 20.0 points (threshold: 15)",
            "Movement dropped from 6 to 2 days",
        )


class TestStabilize:
    def test_exercise_jump(self):
        result = derive_progression(_week(CURRENT, exercise=5), _week(PREVIOUS, exercise=3))
        assert result.type == ProgressionType.STABILIZE
        assert result.reason == "Movement increased from 3 to 5 days (likely level-up)"

    def test_behavior_jump(self):
        result = derive_progression(_week(CURRENT), _week(PREVIOUS, hydration=50))
        assert result.type == ProgressionType.STABILIZE
        assert result.reason == "hydration jumped 30 points (50% → 80%)"

    def test_small_improvement_is_not_a_jump(self):
        previous = _week(PREVIOUS, overrides={0: {"hydration": 50}})
        assert derive_progression(_week(CURRENT), previous).type == ProgressionType.ADVANCE


class TestAdvance:
    def test_two_consistent_weeks(self):
        result = derive_progression(_week(CURRENT), _week(PREVIOUS))
        assert result.type == ProgressionType.ADVANCE
        assert result.reason == "Exercised 5 days this week, 5 days last week (earned level-up)"
        assert "sleep averaged 80% with no Off ratings (ready to increase)" in result.triggers

    def test_mindset_never_counts_toward_advance(self):
        result = derive_progression(_week(CURRENT, exercise=3), _week(PREVIOUS, exercise=3))
        assert not any(t.startswith("mindset") for t in result.triggers)

    def test_fallback(self):
        grades = {n: 50 for n in ALL_BEHAVIORS}
        result = derive_progression(_week(CURRENT, exercise=3, **grades), _week(PREVIOUS, exercise=3, **grades))
        assert result.type == ProgressionType.ADVANCE
        assert result.reason == FALLBACK_REASON
        assert result.triggers == ("No specific triggers - default ADVANCE",)


class TestMetadata:
    def test_metadata_describes_the_inputs(self):
        result = derive_progression(_week(CURRENT, exercise=4, momentum=75), _week(PREVIOUS, exercise=5))
        assert result.metadata["movementDays"] == 4
        assert result.metadata["previousMovementDays"] == 5
        assert result.metadata["momentumChange"] == 5
        assert result.metadata["offRatingCount"] == 0
        assert result.metadata["behaviorAverages"]["sleep"] == 80

    def test_to_dict(self):
        d = derive_progression(_week(CURRENT), _week(PREVIOUS)).to_dict()
        assert d["type"] == "advance"
        assert isinstance(d["triggers"], list)

    def test_default_progression(self):
        result = default_progression()
        assert result.type == ProgressionType.ADVANCE
        assert result.reason == FALLBACK_REASON
        assert result.metadata == {}
