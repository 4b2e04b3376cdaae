"""
Pattern fixtures — one realistic WeeklyPattern per pattern type.

Used by `useFixture` on POST /generate-weekly-coaching to exercise prompt
generation, validation and persistence without any stored check-ins.
`building_momentum` is only reachable through this table.
"""
from __future__ import annotations

import dataclasses
from datetime import date

from weekly_coach.services.pattern_classifier import (
    DAYS_ANALYZED,
    UNCOACHABLE_PATTERNS,
    DateRange,
    PatternType,
    WeeklyPattern,
)

FIXTURE_WEEK_ID = "2026-W04"
FIXTURE_RANGE = DateRange(start=date(2026, 1, 20), end=date(2026, 1, 26))


def _fixture(pattern: str, evidence: list[str], real: int, lifetime: int) -> WeeklyPattern:
    return WeeklyPattern(
        primary_pattern=pattern,
        evidence_points=tuple(evidence),
        week_id=FIXTURE_WEEK_ID,
        date_range=FIXTURE_RANGE,
        can_coach=pattern not in UNCOACHABLE_PATTERNS,
        days_analyzed=DAYS_ANALYZED,
        real_checkins_this_week=real,
        total_lifetime_checkins=lifetime,
    )


PATTERN_FIXTURES: dict[str, WeeklyPattern] = {
    PatternType.INSUFFICIENT_DATA: _fixture(
        PatternType.INSUFFICIENT_DATA,
        ["Check-ins: 3/7 days", "Insufficient data for pattern detection", "Lifetime check-ins: 8"],
        real=3, lifetime=8,
    ),
    PatternType.BUILDING_FOUNDATION: _fixture(
        PatternType.BUILDING_FOUNDATION,
        ["Check-ins: 5/7 days", "Lifetime check-ins: 9", "Early baseline period"],
        real=5, lifetime=9,
    ),
    PatternType.GAP_DISRUPTION: _fixture(
        PatternType.GAP_DISRUPTION,
        ["Check-ins: 4/7 days", "Unresolved gaps: 2 days", "Momentum: 58%"],
        real=4, lifetime=18,
    ),
    PatternType.COMMITMENT_MISALIGNED: _fixture(
        PatternType.COMMITMENT_MISALIGNED,
        [
            "Check-ins: 6/7 days",
            "Exercise: 6 days Solid or better",
            "Momentum: 64%",
            "Foundation behaviors inconsistent",
        ],
        real=6, lifetime=22,
    ),
    PatternType.RECOVERY_DEFICIT: _fixture(
        PatternType.RECOVERY_DEFICIT,
        [
            "Check-ins: 7/7 days",
            "Sleep average: 2.1 (below Solid)",
            "Mindset average: 2.3 (below Solid)",
            "Momentum: 68%",
        ],
        real=7, lifetime=31,
    ),
    PatternType.EFFORT_INCONSISTENT: _fixture(
        PatternType.EFFORT_INCONSISTENT,
        ["Check-ins: 6/7 days", "Exercise average: 3.2", "Other behaviors average: 2.2", "Momentum: 61%"],
        real=6, lifetime=27,
    ),
    PatternType.VARIANCE_HIGH: _fixture(
        PatternType.VARIANCE_HIGH,
        [
            "Check-ins: 7/7 days",
            "Behavior variance: 1.3 (high swings)",
            "Nutrition: range 1-4",
            "Momentum: 66%",
        ],
        real=7, lifetime=25,
    ),
    PatternType.MOMENTUM_DECLINE: _fixture(
        PatternType.MOMENTUM_DECLINE,
        ["Momentum dropped from 81% to 59%", "Variance: 28%", "Check-ins: 6/7"],
        real=6, lifetime=14,
    ),
    PatternType.BUILDING_MOMENTUM: _fixture(
        PatternType.BUILDING_MOMENTUM,
        ["Check-ins: 6/7 days", "Momentum: 81% (upward trend)", "Lifetime check-ins: 11"],
        real=6, lifetime=11,
    ),
    PatternType.MOMENTUM_PLATEAU: _fixture(
        PatternType.MOMENTUM_PLATEAU,
        ["Check-ins: 7/7 days", "Momentum: 72% (stable)", "All behaviors consistently Solid"],
        real=7, lifetime=28,
    ),
}


def get_fixture(name: str, week_id: str | None = None) -> WeeklyPattern | None:
    """Fixture for `name`, re-keyed to `week_id` when given. None if unknown."""
    fixture = PATTERN_FIXTURES.get(name)
    if fixture is None or week_id is None:
        return fixture
    return dataclasses.replace(fixture, week_id=week_id)
