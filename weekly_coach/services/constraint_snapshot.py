"""
Constraint Snapshot — qualitative read of current capacity, recovery and phase.

Derived fresh from a 7–14 day window of check-ins; never persisted. It
overrides (never blends with) any longer-lived profile data.

Threshold functions (independent of each other)
-----------------------------------------------
  time capacity     high          training rate >= 0.85 and avg behavior >= 70
                    moderate      training rate >= 0.5
                    low           otherwise

  recovery margin   ample         sleep consistency >= 0.85, training <= 5, avg >= 75
                    tight         (consistency >= 0.85 and training >= 6)
                                  or (consistency >= 0.6 and training <= 5)
                    constrained   consistency < 0.6 and training >= 5
                    deficit       otherwise

  phase signal      building      momentum trend > 5 and avg >= 70
                    holding       |trend| <= 5 and avg >= 65
                    overreaching  trend < -5, training >= 5, avg >= 60
                    disrupted     otherwise

  dominant limiter  weakest of sleep / protein / nutrition / exercise consistency
                    sleep < 65 → recovery, protein|nutrition → nutrition,
                    exercise < 60 → consistency, all >= 70 → progression,
                    else recovery

No records → conservative defaults (moderate / tight / holding / recovery).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from weekly_coach.services.behaviors import Behavior, DailyRecord, mean, round_half_up
from weekly_coach.services.record_source import CheckinStore


class TimeCapacity:
    LOW      = "low"
    MODERATE = "moderate"
    HIGH     = "high"


class RecoveryMargin:
    AMPLE       = "ample"
    TIGHT       = "tight"
    CONSTRAINED = "constrained"
    DEFICIT     = "deficit"


class PhaseSignal:
    BUILDING     = "building"
    HOLDING      = "holding"
    OVERREACHING = "overreaching"
    DISRUPTED    = "disrupted"


class Limiter:
    TIME        = "time"
    RECOVERY    = "recovery"
    NUTRITION   = "nutrition"
    CONSISTENCY = "consistency"
    PROGRESSION = "progression"


DEFAULT_LOOKBACK_DAYS = 14
INSUFFICIENT_DATA = "insufficient data"

_NUTRITION_GRADES = (Behavior.NUTRITION_PATTERN, Behavior.ENERGY_BALANCE)


@dataclass(frozen=True)
class ConstraintSnapshot:
    time_capacity: str
    recovery_margin: str
    phase_signal: str
    dominant_limiter: str
    training_frequency: int
    avg_behavior_score: float
    sleep_consistency: float
    sleep_average: float
    nutrition_average: float
    protein_average: float
    hydration_average: float
    mindset_average: float
    momentum_trend: float
    derived_from: str
    generated_at: str

    def to_dict(self) -> dict:
        return {
            "timeCapacity": self.time_capacity,
            "recoveryMargin": self.recovery_margin,
            "phaseSignal": self.phase_signal,
            "dominantLimiter": self.dominant_limiter,
            "trainingFrequency": self.training_frequency,
            "avgBehaviorScore": self.avg_behavior_score,
            "sleepConsistency": self.sleep_consistency,
            "sleepAverage": self.sleep_average,
            "nutritionAverage": self.nutrition_average,
            "proteinAverage": self.protein_average,
            "hydrationAverage": self.hydration_average,
            "mindsetAverage": self.mindset_average,
            "momentumTrend": self.momentum_trend,
            "derivedFrom": self.derived_from,
            "generatedAt": self.generated_at,
        }


def _now_iso(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(tz=timezone.utc)).isoformat()


def default_snapshot(limiter: str = Limiter.RECOVERY, now: Optional[datetime] = None) -> ConstraintSnapshot:
    return ConstraintSnapshot(
        time_capacity=TimeCapacity.MODERATE,
        recovery_margin=RecoveryMargin.TIGHT,
        phase_signal=PhaseSignal.HOLDING,
        dominant_limiter=limiter,
        training_frequency=0,
        avg_behavior_score=0.0,
        sleep_consistency=0.0,
        sleep_average=0.0,
        nutrition_average=0.0,
        protein_average=0.0,
        hydration_average=0.0,
        mindset_average=0.0,
        momentum_trend=0.0,
        derived_from=INSUFFICIENT_DATA,
        generated_at=_now_iso(now),
    )


# ---------------------------------------------------------------------------
# Threshold functions
# ---------------------------------------------------------------------------

def time_capacity(training_frequency: int, avg_behavior: float, total_days: int) -> str:
    rate = training_frequency / total_days if total_days else 0.0
    if rate >= 0.85 and avg_behavior >= 70:
        return TimeCapacity.HIGH
    if rate >= 0.5:
        return TimeCapacity.MODERATE
    return TimeCapacity.LOW


def recovery_margin(sleep_consistency: float, training_frequency: int, avg_behavior: float) -> str:
    if sleep_consistency >= 0.85 and training_frequency <= 5 and avg_behavior >= 75:
        return RecoveryMargin.AMPLE
    if (sleep_consistency >= 0.85 and training_frequency >= 6) or (
        sleep_consistency >= 0.6 and training_frequency <= 5
    ):
        return RecoveryMargin.TIGHT
    if sleep_consistency < 0.6 and training_frequency >= 5:
        return RecoveryMargin.CONSTRAINED
    return RecoveryMargin.DEFICIT


def phase_signal(momentum_trend: float, training_frequency: int, avg_behavior: float) -> str:
    if momentum_trend > 5 and avg_behavior >= 70:
        return PhaseSignal.BUILDING
    if abs(momentum_trend) <= 5 and avg_behavior >= 65:
        return PhaseSignal.HOLDING
    if momentum_trend < -5 and training_frequency >= 5 and avg_behavior >= 60:
        return PhaseSignal.OVERREACHING
    return PhaseSignal.DISRUPTED


def category_scores(records: Sequence[DailyRecord]) -> dict[str, float]:
    """Average per limiter category. Order matters: ties go to the earlier key."""
    sleep = [bg.grade for r in records for bg in r.behavior_grades if bg.name == Behavior.SLEEP]
    protein = [bg.grade for r in records for bg in r.behavior_grades if bg.name == Behavior.PROTEIN]
    nutrition = [bg.grade for r in records for bg in r.behavior_grades if bg.name in _NUTRITION_GRADES]
    trained = sum(1 for r in records if r.exercise_completed)
    return {
        "sleep": mean(sleep),
        "protein": mean(protein),
        "nutrition": mean(nutrition),
        "exercise": 100 * trained / len(records) if records else 0.0,
    }


def dominant_limiter(records: Sequence[DailyRecord]) -> str:
    scores = category_scores(records)
    weakest = min(scores, key=lambda k: scores[k])  # min() keeps the first of equal keys
    low = scores[weakest]

    if weakest == "sleep" and low < 65:
        return Limiter.RECOVERY
    if weakest in ("protein", "nutrition"):
        return Limiter.NUTRITION
    if weakest == "exercise" and low < 60:
        return Limiter.CONSISTENCY
    if all(s >= 70 for s in scores.values()):
        return Limiter.PROGRESSION
    return Limiter.RECOVERY


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------

def _per_record(records: Sequence[DailyRecord], name: str) -> list[int]:
    return [r.grade_or_zero(name) for r in records]


def derive_snapshot(
    records: Sequence[DailyRecord],
    derived_from: str,
    now: Optional[datetime] = None,
) -> ConstraintSnapshot:
    """Pure: aggregate pre-loaded records into a snapshot."""
    if not records:
        return default_snapshot(now=now)

    ordered = sorted(records, key=lambda r: r.day)
    total = len(ordered)

    training = sum(1 for r in ordered if r.exercise_completed)
    sleep = _per_record(ordered, Behavior.SLEEP)
    nutrition = [bg.grade for r in ordered for bg in r.behavior_grades if bg.name in _NUTRITION_GRADES]

    avg_behavior = sum(
        mean(bg.grade for bg in r.behavior_grades) for r in ordered if r.behavior_grades
    ) / total
    momentum = [r.momentum_score for r in ordered]
    trend = momentum[-1] - momentum[0] if len(momentum) >= 2 else 0.0
    consistency = sum(1 for s in sleep if s >= 80) / total

    return ConstraintSnapshot(
        time_capacity=time_capacity(training, avg_behavior, total),
        recovery_margin=recovery_margin(consistency, training, avg_behavior),
        phase_signal=phase_signal(trend, training, avg_behavior),
        dominant_limiter=dominant_limiter(ordered),
        training_frequency=training,
        avg_behavior_score=avg_behavior,
        sleep_consistency=consistency,
        sleep_average=mean(sleep),
        nutrition_average=mean(nutrition),
        protein_average=mean(_per_record(ordered, Behavior.PROTEIN)),
        hydration_average=mean(_per_record(ordered, Behavior.HYDRATION)),
        mindset_average=mean(_per_record(ordered, Behavior.MINDSET)),
        momentum_trend=trend,
        derived_from=derived_from,
        generated_at=_now_iso(now),
    )


def derive_snapshot_for_range(store: CheckinStore, email: str, start: date, end: date) -> ConstraintSnapshot:
    """Analyze the exact dates the pattern classifier used."""
    records = store.query(email, start, end)
    return derive_snapshot(records, f"{start.isoformat()} to {end.isoformat()}")


def derive_snapshot_lookback(
    store: CheckinStore,
    email: str,
    days: int = DEFAULT_LOOKBACK_DAYS,
    today: Optional[date] = None,
) -> ConstraintSnapshot:
    today = today or datetime.now(tz=timezone.utc).date()
    start = today - timedelta(days=days)
    records = store.query(email, start, today, descending=True, limit=days)
    return derive_snapshot(records, f"{start.isoformat()} to {today.isoformat()}")


def format_snapshot_for_prompt(snapshot: ConstraintSnapshot) -> str:
    return "\n".join([
        f"Time capacity: {snapshot.time_capacity} (training {snapshot.training_frequency} days recently)",
        f"Recovery margin: {snapshot.recovery_margin} "
        f"(sleep {round_half_up(snapshot.sleep_consistency * 100)}% consistent)",
        f"Sleep average: {round_half_up(snapshot.sleep_average)}%",
        f"Nutrition average: {round_half_up(snapshot.nutrition_average)}% (pattern + energy balance combined)",
        f"Protein average: {round_half_up(snapshot.protein_average)}%",
        f"Hydration average: {round_half_up(snapshot.hydration_average)}%",
        f"Mindset average: {round_half_up(snapshot.mindset_average)}%",
        f"Current phase: {snapshot.phase_signal}",
        f"Primary constraint: {snapshot.dominant_limiter}",
    ])
