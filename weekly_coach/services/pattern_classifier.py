"""
Pattern Classifier — assigns exactly one behavioral pattern to a week.

Window
------
  end   = today if today has a real check-in, else yesterday
  start = end - 6 days            (7 completed days)

Lifetime check-ins
------------------
  1. totalRealCheckIns on the most recent in-window real record carrying it
  2. else: most recent real record carrying it in the 30 days before `end`
     (at most 10 records inspected, newest first)
  3. else: 0

Rules (ordered; first matching guard wins)
------------------------------------------
  1. insufficient_data      real check-ins < 4                      (not coachable)
  2. building_foundation    lifetime check-ins < 10                 (not coachable)
  3. gap_disruption         any gap_fill day with gapResolved False
  4. commitment_misaligned  exercise days >= 5 and momentum < 50
  5. recovery_deficit       >= 3 real days with (sleep+mindset)/2 < 60
  6. effort_inconsistent    exercise days >= 5 and non-exercise avg < 60
  7. variance_high          population std-dev of real-day grades > 25
  8. momentum_decline       drop from window high >= 15, momentum < 65, variance > 20
  9. momentum_plateau       default

`building_momentum` is part of the vocabulary (fixtures) but no rule emits it.

Public API
----------
  classify_week(records, lifetime, week_id, start, end) -> WeeklyPattern   (pure)
  detect_weekly_pattern(store, email, week_id, today=None) -> WeeklyPattern
"""
from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from weekly_coach.services.behaviors import (
    Behavior,
    CheckinType,
    DailyRecord,
    NON_EXERCISE_BEHAVIORS,
    behavior_average,
    exercise_days,
    mean,
    round_half_up,
)
from weekly_coach.services.record_source import CheckinStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pattern type constants
# ---------------------------------------------------------------------------

class PatternType:
    INSUFFICIENT_DATA     = "insufficient_data"
    BUILDING_FOUNDATION   = "building_foundation"
    GAP_DISRUPTION        = "gap_disruption"
    COMMITMENT_MISALIGNED = "commitment_misaligned"
    RECOVERY_DEFICIT      = "recovery_deficit"
    EFFORT_INCONSISTENT   = "effort_inconsistent"
    VARIANCE_HIGH         = "variance_high"
    MOMENTUM_DECLINE      = "momentum_decline"
    BUILDING_MOMENTUM     = "building_momentum"
    MOMENTUM_PLATEAU      = "momentum_plateau"


ALL_PATTERNS: tuple[str, ...] = (
    PatternType.INSUFFICIENT_DATA,
    PatternType.BUILDING_FOUNDATION,
    PatternType.GAP_DISRUPTION,
    PatternType.COMMITMENT_MISALIGNED,
    PatternType.RECOVERY_DEFICIT,
    PatternType.EFFORT_INCONSISTENT,
    PatternType.VARIANCE_HIGH,
    PatternType.MOMENTUM_DECLINE,
    PatternType.BUILDING_MOMENTUM,
    PatternType.MOMENTUM_PLATEAU,
)

UNCOACHABLE_PATTERNS = frozenset({
    PatternType.INSUFFICIENT_DATA,
    PatternType.BUILDING_FOUNDATION,
})

DAYS_ANALYZED = 7

# Thresholds
_MIN_REAL_CHECKINS        = 4
_MIN_LIFETIME_CHECKINS    = 10
_HIGH_EXERCISE_DAYS       = 5
_MISALIGNED_MOMENTUM      = 50
_LOW_RECOVERY_SCORE       = 60
_LOW_RECOVERY_DAYS        = 3
_LOW_NON_EXERCISE_AVG     = 60
_HIGH_VARIANCE            = 25
_DECLINE_DROP             = 15
_DECLINE_MOMENTUM_CEILING = 65
_DECLINE_VARIANCE         = 20
_TREND_BAND               = 5
_LIFETIME_LOOKBACK_DAYS   = 30
_LIFETIME_LOOKBACK_LIMIT  = 10


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class WeeklyPattern:
    primary_pattern: str
    evidence_points: tuple[str, ...]
    week_id: str
    date_range: DateRange
    can_coach: bool
    days_analyzed: int
    real_checkins_this_week: int
    total_lifetime_checkins: int

    def to_dict(self) -> dict:
        return {
            "primaryPattern": self.primary_pattern,
            "evidencePoints": list(self.evidence_points),
            "weekId": self.week_id,
            "dateRange": self.date_range.to_dict(),
            "canCoach": self.can_coach,
            "daysAnalyzed": self.days_analyzed,
            "realCheckInsThisWeek": self.real_checkins_this_week,
            "totalLifetimeCheckIns": self.total_lifetime_checkins,
        }


@dataclass(frozen=True)
class WeekStats:
    """Aggregates computed once per window and shared by every rule."""
    days: tuple[DailyRecord, ...]          # newest first
    real: tuple[DailyRecord, ...]          # newest first
    lifetime: int
    exercise_days: int
    current_momentum: float
    recent_high: float
    averages: dict[str, float]
    variance: float
    unresolved_gaps: int
    low_recovery_days: int
    non_exercise_avg: float
    momentum_trend: str

    @property
    def real_count(self) -> int:
        return len(self.real)


# ---------------------------------------------------------------------------
# Aggregation helpers
# ---------------------------------------------------------------------------

def _grade_std_dev(records: Sequence[DailyRecord]) -> float:
    all_grades = [bg.grade for r in records for bg in r.behavior_grades]
    if not all_grades:
        return 0.0
    return statistics.pstdev(all_grades)


def _momentum_trend(days_oldest_first: Sequence[DailyRecord]) -> str:
    """Compare mean momentum of the older half with the newer half."""
    if len(days_oldest_first) < 3:
        return "stable"
    half = len(days_oldest_first) // 2
    older = mean(d.momentum_score for d in days_oldest_first[:half])
    newer = mean(d.momentum_score for d in days_oldest_first[half:])
    diff = newer - older
    if diff > _TREND_BAND:
        return "upward"
    if diff < -_TREND_BAND:
        return "downward"
    return "flat"


def _is_low_recovery(record: DailyRecord) -> bool:
    sleep = record.grade_or_zero(Behavior.SLEEP)
    mindset = record.grade_or_zero(Behavior.MINDSET)
    return (sleep + mindset) / 2 < _LOW_RECOVERY_SCORE


def compute_week_stats(records: Sequence[DailyRecord], lifetime: int) -> WeekStats:
    days = tuple(sorted(records, key=lambda r: r.day, reverse=True))
    real = tuple(r for r in days if r.checkin_type == CheckinType.REAL)
    averages = {name: behavior_average(real, name) for name in NON_EXERCISE_BEHAVIORS + (Behavior.MOVEMENT,)}
    return WeekStats(
        days=days,
        real=real,
        lifetime=lifetime,
        exercise_days=exercise_days(days),
        current_momentum=days[0].momentum_score if days else 0.0,
        recent_high=max((d.momentum_score for d in days), default=0.0),
        averages=averages,
        variance=_grade_std_dev(real),
        unresolved_gaps=sum(
            1 for d in days
            if d.checkin_type == CheckinType.GAP_FILL and d.gap_resolved is False
        ),
        low_recovery_days=sum(1 for d in real if _is_low_recovery(d)),
        non_exercise_avg=mean(averages[name] for name in NON_EXERCISE_BEHAVIORS),
        momentum_trend=_momentum_trend(tuple(reversed(days))),
    )


def _pct(value: float) -> str:
    return f"{round_half_up(value)}%"


# ---------------------------------------------------------------------------
# Rules: (name, predicate, evidence builder)
# ---------------------------------------------------------------------------

def _evidence_insufficient(s: WeekStats) -> list[str]:
    return [f"Only {s.real_count} check-ins in last 7 days"]


def _evidence_foundation(s: WeekStats) -> list[str]:
    return [
        f"Total check-ins: {s.lifetime}",
        f"Week check-ins: {s.real_count}/7",
    ]


def _evidence_gap(s: WeekStats) -> list[str]:
    plural = "s" if s.unresolved_gaps > 1 else ""
    return [
        f"{s.unresolved_gaps} unresolved gap{plural} in last 7 days",
        f"Real check-ins: {s.real_count}/7",
    ]


def _evidence_misaligned(s: WeekStats) -> list[str]:
    return [
        f"Exercise: {s.exercise_days}/7 days",
        f"Momentum: {_pct(s.current_momentum)}",
        f"Nutrition average: {_pct(s.averages[Behavior.NUTRITION_PATTERN])}",
        f"Energy balance average: {_pct(s.averages[Behavior.ENERGY_BALANCE])}",
    ]


def _evidence_recovery(s: WeekStats) -> list[str]:
    return [
        f"Sleep average: {_pct(s.averages[Behavior.SLEEP])}",
        f"Mindset average: {_pct(s.averages[Behavior.MINDSET])}",
        f"Low recovery days: {s.low_recovery_days}/7",
    ]


def _evidence_effort(s: WeekStats) -> list[str]:
    return [
        f"Exercise: {s.exercise_days}/7 days",
        f"Other behaviors average: {_pct(s.non_exercise_avg)}",
        f"Nutrition: {_pct(s.averages[Behavior.NUTRITION_PATTERN])}",
        f"Sleep: {_pct(s.averages[Behavior.SLEEP])}",
    ]


def _evidence_variance(s: WeekStats) -> list[str]:
    scores = [d.daily_score for d in s.real] or [0.0]
    return [
        f"Behavior variance: {_pct(s.variance)}",
        f"Check-ins: {s.real_count}/7",
        f"Daily score range: {round_half_up(min(scores))}-{round_half_up(max(scores))}",
    ]


def _evidence_decline(s: WeekStats) -> list[str]:
    return [
        f"Momentum dropped from {_pct(s.recent_high)} to {_pct(s.current_momentum)}",
        f"Variance: {_pct(s.variance)}",
        f"Check-ins: {s.real_count}/7",
    ]


def _evidence_plateau(s: WeekStats) -> list[str]:
    return [
        f"Check-ins: {s.real_count}/7",
        f"Momentum: {_pct(s.current_momentum)}",
        f"Momentum trend: {s.momentum_trend}",
        f"Exercise: {s.exercise_days}/7 days",
    ]


Rule = tuple[str, Callable[[WeekStats], bool], Callable[[WeekStats], list[str]]]

PATTERN_RULES: tuple[Rule, ...] = (
    (
        PatternType.INSUFFICIENT_DATA,
        lambda s: s.real_count < _MIN_REAL_CHECKINS,
        _evidence_insufficient,
    ),
    (
        PatternType.BUILDING_FOUNDATION,
        lambda s: s.lifetime < _MIN_LIFETIME_CHECKINS,
        _evidence_foundation,
    ),
    (
        PatternType.GAP_DISRUPTION,
        lambda s: s.unresolved_gaps > 0,
        _evidence_gap,
    ),
    (
        PatternType.COMMITMENT_MISALIGNED,
        lambda s: s.exercise_days >= _HIGH_EXERCISE_DAYS
        and s.current_momentum < _MISALIGNED_MOMENTUM,
        _evidence_misaligned,
    ),
    (
        PatternType.RECOVERY_DEFICIT,
        lambda s: s.low_recovery_days >= _LOW_RECOVERY_DAYS,
        _evidence_recovery,
    ),
    (
        PatternType.EFFORT_INCONSISTENT,
        lambda s: s.exercise_days >= _HIGH_EXERCISE_DAYS
        and s.non_exercise_avg < _LOW_NON_EXERCISE_AVG,
        _evidence_effort,
    ),
    (
        PatternType.VARIANCE_HIGH,
        lambda s: s.variance > _HIGH_VARIANCE,
        _evidence_variance,
    ),
    (
        PatternType.MOMENTUM_DECLINE,
        lambda s: s.recent_high - s.current_momentum >= _DECLINE_DROP
        and s.current_momentum < _DECLINE_MOMENTUM_CEILING
        and s.variance > _DECLINE_VARIANCE,
        _evidence_decline,
    ),
)

_DEFAULT_RULE: Rule = (PatternType.MOMENTUM_PLATEAU, lambda s: True, _evidence_plateau)


# ---------------------------------------------------------------------------
# Public: pure classification
# ---------------------------------------------------------------------------

def classify_week(
    records: Sequence[DailyRecord],
    lifetime_checkins: int,
    week_id: str,
    start: date,
    end: date,
) -> WeeklyPattern:
    """
    Pure version: classify pre-loaded records. Deterministic for identical input.
    Always returns exactly one pattern (momentum_plateau when nothing else fits).
    """
    stats = compute_week_stats(records, lifetime_checkins)

    for name, predicate, evidence in PATTERN_RULES + (_DEFAULT_RULE,):
        if predicate(stats):
            return WeeklyPattern(
                primary_pattern=name,
                evidence_points=tuple(evidence(stats)),
                week_id=week_id,
                date_range=DateRange(start=start, end=end),
                can_coach=name not in UNCOACHABLE_PATTERNS,
                days_analyzed=DAYS_ANALYZED,
                real_checkins_this_week=stats.real_count,
                total_lifetime_checkins=lifetime_checkins,
            )

    raise AssertionError("default rule must always match")  # pragma: no cover


# ---------------------------------------------------------------------------
# Public: DB-backed detection
# ---------------------------------------------------------------------------

def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def compute_window(store: CheckinStore, email: str, today: date) -> DateRange:
    todays = store.get(email, today)
    end = today if todays is not None and todays.is_real else today - timedelta(days=1)
    return DateRange(start=end - timedelta(days=DAYS_ANALYZED - 1), end=end)


def resolve_lifetime_checkins(
    store: CheckinStore,
    email: str,
    window_days: Sequence[DailyRecord],
    window_end: date,
) -> int:
    """In-window counter first, then a bounded backward search, else 0."""
    in_window = sorted(
        (d for d in window_days if d.is_real and d.total_real_checkins is not None),
        key=lambda d: d.day,
        reverse=True,
    )
    if in_window:
        return in_window[0].total_real_checkins  # type: ignore[return-value]

    logger.info("No lifetime counter in window for %s; searching backward", email)
    fallback = store.query(
        email,
        start=window_end - timedelta(days=_LIFETIME_LOOKBACK_DAYS),
        end=window_end,
        checkin_type=CheckinType.REAL,
        descending=True,
        limit=_LIFETIME_LOOKBACK_LIMIT,
    )
    for record in fallback:
        if record.total_real_checkins is not None:
            return record.total_real_checkins

    logger.warning("No lifetime counter found for %s; treating as 0", email)
    return 0


def detect_weekly_pattern(
    store: CheckinStore,
    email: str,
    week_id: str,
    today: Optional[date] = None,
) -> WeeklyPattern:
    today = today or _today()
    window = compute_window(store, email, today)
    days = store.query(email, window.start, window.end, descending=True)
    lifetime = resolve_lifetime_checkins(store, email, days, window.end)

    pattern = classify_week(days, lifetime, week_id, window.start, window.end)
    logger.info(
        "Pattern for %s %s (%s..%s): %s real=%d lifetime=%d",
        email, week_id, window.start, window.end,
        pattern.primary_pattern, pattern.real_checkins_this_week, lifetime,
    )
    return pattern
