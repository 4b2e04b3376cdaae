"""
Tests for the pattern classifier.

Pure tests call classify_week with hand-built records; DB tests seed
check-ins through CheckinStore and call detect_weekly_pattern with a fixed
`today`. Every DB test uses its own email so suites never collide.
"""
from __future__ import annotations

import random
from datetime import date, timedelta

import pytest

from weekly_coach.schemas.checkin import CheckinDocument
from weekly_coach.services.behaviors import ALL_BEHAVIORS, BehaviorGrade, DailyRecord
from weekly_coach.services.pattern_classifier import (
    ALL_PATTERNS,
    PatternType,
    classify_week,
    compute_window,
    detect_weekly_pattern,
)
from weekly_coach.services.record_source import CheckinStore

END = date(2026, 2, 8)  # Sunday
START = END - timedelta(days=6)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _grades(default: int = 80, **overrides: int) -> tuple[BehaviorGrade, ...]:
    return tuple(BehaviorGrade(name, overrides.get(name, default)) for name in ALL_BEHAVIORS)


def _day(
    offset: int,
    grades: tuple[BehaviorGrade, ...] | None = None,
    exercise: bool = False,
    momentum: float = 72,
    checkin_type: str = "real",
    gap_resolved: bool | None = None,
    daily_score: float = 70,
) -> DailyRecord:
    """offset 0 = START (oldest), 6 = END (newest)."""
    return DailyRecord(
        day=START + timedelta(days=offset),
        checkin_type=checkin_type,
        exercise_completed=exercise,
        behavior_grades=_grades() if grades is None else grades,
        momentum_score=momentum,
        daily_score=daily_score,
        gap_resolved=gap_resolved,
    )


def _classify(records, lifetime: int = 30):
    return classify_week(records, lifetime, "2026-W06", START, END)


def _seed(db, email: str, day: date, **fields) -> None:
    payload = {
        "date": day.isoformat(),
        "checkinType": "real",
        "exerciseCompleted": False,
        "behaviorGrades": [{"name": n, "grade": 80} for n in ALL_BEHAVIORS],
        "momentumScore": 72,
        "dailyScore": 70,
    }
    payload.update(fields)
    CheckinStore(db).upsert(email, CheckinDocument.model_validate(payload))


# ---------------------------------------------------------------------------
# Pure classification, one test per rule
# ---------------------------------------------------------------------------

class TestGuards:
    def test_three_real_checkins_is_insufficient(self):
        p = _classify([_day(i) for i in range(3)])
        assert p.primary_pattern == PatternType.INSUFFICIENT_DATA
        assert p.can_coach is False
        assert p.evidence_points == ("Only 3 check-ins in last 7 days",)

    def test_insufficient_even_with_high_lifetime(self):
        p = _classify([_day(i) for i in range(3)], lifetime=500)
        assert p.primary_pattern == PatternType.INSUFFICIENT_DATA

    def test_gap_fill_days_do_not_count_as_real(self):
        records = [_day(i) for i in range(3)] + [
            _day(i, checkin_type="gap_fill", gap_resolved=True) for i in range(3, 7)
        ]
        assert _classify(records).primary_pattern == PatternType.INSUFFICIENT_DATA

    def test_low_lifetime_is_building_foundation(self):
        p = _classify([_day(i) for i in range(5)], lifetime=9)
        assert p.primary_pattern == PatternType.BUILDING_FOUNDATION
        assert p.can_coach is False
        assert p.evidence_points == ("Total check-ins: 9", "Week check-ins: 5/7")

    def test_lifetime_of_ten_is_coachable(self):
        p = _classify([_day(i) for i in range(7)], lifetime=10)
        assert p.can_coach is True


class TestRules:
    def test_unresolved_gap(self):
        records = [_day(i) for i in range(6)] + [_day(6, checkin_type="gap_fill", gap_resolved=False)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.GAP_DISRUPTION
        assert p.evidence_points == ("1 unresolved gap in last 7 days", "Real check-ins: 6/7")

    def test_resolved_gap_is_not_disruption(self):
        records = [_day(i) for i in range(6)] + [_day(6, checkin_type="gap_fill", gap_resolved=True)]
        assert _classify(records).primary_pattern != PatternType.GAP_DISRUPTION

    def test_commitment_misaligned_scenario(self):
        grades = _grades(nutrition_pattern=50, energy_balance=50)
        records = [_day(i, grades, exercise=i != 0, momentum=60) for i in range(6)]
        records.append(_day(6, grades, exercise=True, momentum=45))
        p = _classify(records)
        assert p.primary_pattern == PatternType.COMMITMENT_MISALIGNED
        assert p.evidence_points == (
            "Exercise: 6/7 days",
            "Momentum: 45%",
            "Nutrition average: 50%",
            "Energy balance average: 50%",
        )

    def test_recovery_deficit(self):
        low = _grades(sleep=50, mindset=50)
        records = [_day(i, low if i < 3 else None, exercise=i < 3) for i in range(7)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.RECOVERY_DEFICIT
        assert p.evidence_points == (
            "Sleep average: 67%",
            "Mindset average: 67%",
            "Low recovery days: 3/7",
        )

    def test_missing_sleep_counts_as_zero_for_recovery(self):
        no_sleep = tuple(bg for bg in _grades() if bg.name not in ("sleep", "mindset"))
        records = [_day(i, no_sleep if i < 3 else None) for i in range(7)]
        assert _classify(records).primary_pattern == PatternType.RECOVERY_DEFICIT

    def test_effort_inconsistent(self):
        grades = _grades(default=0, sleep=80, mindset=80, movement=80)
        records = [_day(i, grades, exercise=i != 0, momentum=70) for i in range(7)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.EFFORT_INCONSISTENT
        assert p.evidence_points == (
            "Exercise: 6/7 days",
            "Other behaviors average: 27%",
            "Nutrition: 0%",
            "Sleep: 80%",
        )

    def test_variance_high(self):
        grades = _grades(default=100, nutrition_pattern=0, energy_balance=0, hydration=0)
        records = [_day(i, grades, exercise=i < 2, daily_score=40 + i * 5) for i in range(6)]
        records.append(_day(6, grades, daily_score=90))
        p = _classify(records)
        assert p.primary_pattern == PatternType.VARIANCE_HIGH
        assert p.evidence_points[0] == "Behavior variance: 49%"
        assert p.evidence_points[1] == "Check-ins: 7/7"
        assert p.evidence_points[2] == "Daily score range: 40-90"

    def test_momentum_decline(self):
        grades = _grades(default=50, sleep=100, mindset=100, movement=100)
        momentum = [80, 80, 78, 75, 70, 62, 60]
        records = [_day(i, grades, momentum=m) for i, m in enumerate(momentum)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.MOMENTUM_DECLINE
        assert p.evidence_points == (
            "Momentum dropped from 80% to 60%",
            "Variance: 25%",
            "Check-ins: 7/7",
        )

    def test_plateau_is_default(self):
        records = [_day(i, exercise=i % 2 == 0) for i in range(7)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.MOMENTUM_PLATEAU
        assert p.evidence_points == (
            "Check-ins: 7/7",
            "Momentum: 72%",
            "Momentum trend: flat",
            "Exercise: 4/7 days",
        )

    def test_plateau_upward_trend(self):
        records = [_day(i, momentum=60 + i * 4) for i in range(7)]
        p = _classify(records)
        assert p.primary_pattern == PatternType.MOMENTUM_PLATEAU
        assert "Momentum trend: upward" in p.evidence_points


class TestProperties:
    def test_deterministic(self):
        records = [_day(i, exercise=i < 4, momentum=70 + i) for i in range(7)]
        assert _classify(records) == _classify(records)

    def test_input_order_does_not_matter(self):
        records = [_day(i, momentum=70 + i) for i in range(7)]
        assert _classify(records) == _classify(list(reversed(records)))

    def test_always_one_known_label(self):
        rng = random.Random(7)
        for _ in range(200):
            records = [
                _day(
                    i,
                    tuple(BehaviorGrade(n, rng.choice((0, 50, 80, 100))) for n in ALL_BEHAVIORS),
                    exercise=rng.random() < 0.6,
                    momentum=rng.randint(0, 100),
                    checkin_type=rng.choice(("real", "real", "real", "gap_fill")),
                    gap_resolved=rng.choice((True, False, None)),
                )
                for i in range(7)
            ]
            p = _classify(records, lifetime=rng.randint(0, 40))
            assert p.primary_pattern in ALL_PATTERNS
            assert p.days_analyzed == 7

    def test_building_momentum_never_emitted(self):
        records = [_day(i, _grades(default=100), exercise=True, momentum=60 + i * 5) for i in range(7)]
        assert _classify(records).primary_pattern != PatternType.BUILDING_MOMENTUM

    def test_to_dict_uses_camel_case(self):
        d = _classify([_day(i) for i in range(7)]).to_dict()
        assert d["primaryPattern"] == PatternType.MOMENTUM_PLATEAU
        assert d["dateRange"] == {"start": "2026-02-02", "end": "2026-02-08"}
        assert d["realCheckInsThisWeek"] == 7
        assert d["totalLifetimeCheckIns"] == 30


# ---------------------------------------------------------------------------
# DB-backed detection
# ---------------------------------------------------------------------------

class TestWindow:
    def test_window_ends_yesterday_without_checkin_today(self, db):
        today = date(2091, 3, 10)
        window = compute_window(CheckinStore(db), "window-a@example.com", today)
        assert window.end == date(2091, 3, 9)
        assert window.start == date(2091, 3, 3)

    def test_window_ends_today_with_real_checkin(self, db):
        email = "window-b@example.com"
        today = date(2091, 3, 10)
        _seed(db, email, today)
        window = compute_window(CheckinStore(db), email, today)
        assert window.end == today

    def test_gap_fill_today_does_not_extend_window(self, db):
        email = "window-c@example.com"
        today = date(2091, 3, 10)
        _seed(db, email, today, checkinType="gap_fill", gapResolved=False)
        window = compute_window(CheckinStore(db), email, today)
        assert window.end == date(2091, 3, 9)


class TestDetectWeeklyPattern:
    def test_plateau_from_stored_checkins(self, db):
        email = "detect-a@example.com"
        today = date(2091, 4, 8)
        for i in range(1, 8):
            _seed(db, email, today - timedelta(days=i), totalRealCheckIns=40 - i)
        p = detect_weekly_pattern(CheckinStore(db), email, "2091-W14", today=today)
        assert p.primary_pattern == PatternType.MOMENTUM_PLATEAU
        assert p.total_lifetime_checkins == 39
        assert p.date_range.end == today - timedelta(days=1)
        assert p.week_id == "2091-W14"

    def test_lifetime_fallback_searches_before_window(self, db):
        email = "detect-b@example.com"
        today = date(2091, 5, 20)
        for i in range(1, 8):
            _seed(db, email, today - timedelta(days=i))
        _seed(db, email, today - timedelta(days=20), totalRealCheckIns=25)
        p = detect_weekly_pattern(CheckinStore(db), email, "2091-W20", today=today)
        assert p.total_lifetime_checkins == 25
        assert p.primary_pattern == PatternType.MOMENTUM_PLATEAU

    def test_no_lifetime_counter_anywhere_is_building_foundation(self, db):
        email = "detect-c@example.com"
        today = date(2091, 6, 20)
        for i in range(1, 8):
            _seed(db, email, today - timedelta(days=i))
        p = detect_weekly_pattern(CheckinStore(db), email, "2091-W25", today=today)
        assert p.total_lifetime_checkins == 0
        assert p.primary_pattern == PatternType.BUILDING_FOUNDATION

    def test_no_checkins_is_insufficient(self, db):
        p = detect_weekly_pattern(CheckinStore(db), "nobody@example.com", "2091-W30", today=date(2091, 7, 30))
        assert p.primary_pattern == PatternType.INSUFFICIENT_DATA
        assert p.real_checkins_this_week == 0

    @pytest.mark.parametrize("count", [4, 7])
    def test_real_count_reported(self, db, count):
        email = f"detect-count-{count}@example.com"
        today = date(2091, 8, 20)
        for i in range(1, count + 1):
            _seed(db, email, today - timedelta(days=i), totalRealCheckIns=50)
        p = detect_weekly_pattern(CheckinStore(db), email, "2091-W34", today=today)
        assert p.real_checkins_this_week == count
