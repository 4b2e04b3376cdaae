"""
Data Scoper — narrows what the text generator sees to the dominant limiter.

  constraint_detail   numeric detail (averages, week-over-week deltas,
                      significant day patterns) for the limiter's behaviors
  background_summary  one qualitative word per other behavior; no digits
  filtered_notes      user notes that stay on topic
  dropped_notes       (note, reason) for notes that would reintroduce an
                      unscoped behavior

A generator that never receives sleep deltas, sleep day patterns or sleep
notes cannot build a causal chain through sleep. Topic-drift validation
catches whatever slips through.

Note filter (permissive): a note is dropped only when it mentions at least
one non-constraint keyword and no constraint keyword. General notes and
mixed notes are kept. Keywords match at the start of a word.

The `progression` limiter is not scoped: every behavior is visible.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from weekly_coach.services.constraint_snapshot import ConstraintSnapshot, Limiter
from weekly_coach.services.day_of_week import DayOfWeekAnalysis
from weekly_coach.services.week_over_week import BehaviorChange
from weekly_coach.services.behaviors import round_half_up

LIMITER_TO_BEHAVIORS: dict[str, tuple[str, ...]] = {
    Limiter.NUTRITION: ("nutrition", "nutrition pattern", "energy balance", "protein"),
    Limiter.RECOVERY: ("sleep",),
    Limiter.CONSISTENCY: ("movement", "exercise"),
    Limiter.TIME: ("movement", "exercise"),
    Limiter.PROGRESSION: (),
}

NOTE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "nutrition": (
        "food", "meal", "eat", "eating", "prep", "cook", "diet", "calories", "snack",
        "lunch", "dinner", "breakfast", "protein", "carbs", "fasting", "hunger", "hungry",
    ),
    "sleep": (
        "sleep", "bed", "bedtime", "phone", "screen", "wake", "woke", "tired", "rest",
        "nap", "insomnia", "night",
    ),
    "hydration": ("water", "hydrat", "drink", "drank", "thirst", "dehydrat"),
    "protein": ("protein", "shake", "supplement"),
    "movement": ("exercise", "workout", "gym", "walk", "run", "lift", "train", "movement", "steps"),
    "mindset": ("stress", "anxious", "anxiety", "mental", "mood", "mindset", "overwhelm"),
}

# Keyword categories that belong to each limiter
LIMITER_NOTE_CATEGORIES: dict[str, tuple[str, ...]] = {
    Limiter.NUTRITION: ("nutrition", "protein"),
    Limiter.RECOVERY: ("sleep",),
    Limiter.CONSISTENCY: ("movement",),
    Limiter.TIME: ("movement",),
}

FULL_SCOPE_SUMMARY = "All behaviors visible (progression limiter)"
IMPROVEMENT_CALLOUT = 15


@dataclass(frozen=True)
class DroppedNote:
    note: str
    reason: str


@dataclass(frozen=True)
class ScopedData:
    constraint_detail: str
    background_summary: str
    constraint_behavior: str
    filtered_notes: tuple[str, ...] = ()
    dropped_notes: tuple[DroppedNote, ...] = field(default_factory=tuple)


def qualitative_label(average: float) -> str:
    if average >= 80:
        return "strong"
    if average >= 65:
        return "adequate"
    if average >= 50:
        return "variable"
    return "needs attention"


def is_relevant(behavior_name: str, relevant: Sequence[str]) -> bool:
    lower = behavior_name.lower()
    return any(rb in lower for rb in relevant)


def _pct(value: float) -> str:
    return f"{round_half_up(value)}%"


# ---------------------------------------------------------------------------
# Constraint detail
# ---------------------------------------------------------------------------

def _constraint_averages(limiter: str, s: ConstraintSnapshot) -> list[str]:
    if limiter == Limiter.NUTRITION:
        return [
            f"Nutrition average: {_pct(s.nutrition_average)} (pattern + energy balance combined)",
            f"Protein average: {_pct(s.protein_average)}",
        ]
    if limiter == Limiter.RECOVERY:
        return [
            f"Sleep average: {_pct(s.sleep_average)}",
            f"Sleep consistency: {_pct(s.sleep_consistency * 100)} of days at Solid or better",
        ]
    if limiter in (Limiter.CONSISTENCY, Limiter.TIME):
        return [f"Training frequency: {s.training_frequency} days this week"]
    return []


def _constraint_detail(
    limiter: str,
    relevant: Sequence[str],
    snapshot: ConstraintSnapshot,
    changes: Sequence[BehaviorChange],
    day_patterns: Optional[DayOfWeekAnalysis],
) -> str:
    lines = _constraint_averages(limiter, snapshot)

    scoped_changes = [c for c in changes if is_relevant(c.behavior, relevant)]
    if scoped_changes:
        lines += ["", "Week-over-week change:"]
        lines += [f"  {c.describe()}" for c in scoped_changes]

    if day_patterns is not None:
        scoped_days = [p for p in day_patterns.significant_patterns if is_relevant(p.behavior, relevant)]
        if scoped_days:
            lines += ["", "Day-of-week patterns:"]
            for p in scoped_days:
                lines.append(f"  {p.behavior}: {p.pattern}")
                lines.append(f"    Weekday avg: {p.weekday_avg}, Weekend avg: {p.weekend_avg}")
                lines.append(
                    f"    Worst day: {p.worst_day} ({p.worst_day_avg}), "
                    f"Best day: {p.best_day} ({p.best_day_avg})"
                )

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Background summary
# ---------------------------------------------------------------------------

def _background_summary(
    limiter: str,
    relevant: Sequence[str],
    snapshot: ConstraintSnapshot,
    changes: Sequence[BehaviorChange],
) -> str:
    parts = []
    if limiter != Limiter.RECOVERY:
        parts.append(f"Sleep: {qualitative_label(snapshot.sleep_average)}")
    if limiter != Limiter.NUTRITION:
        parts.append(f"Nutrition: {qualitative_label(snapshot.nutrition_average)}")
        parts.append(f"Protein: {qualitative_label(snapshot.protein_average)}")
    parts.append(f"Hydration: {qualitative_label(snapshot.hydration_average)}")

    improved = [
        c.behavior for c in changes
        if c.direction == "up" and c.delta >= IMPROVEMENT_CALLOUT and not is_relevant(c.behavior, relevant)
    ]
    if improved:
        parts.append(f"Notable improvement: {', '.join(improved)}")

    return " · ".join(parts)


# ---------------------------------------------------------------------------
# Note filter
# ---------------------------------------------------------------------------

def _keyword_pattern(keywords: Sequence[str]) -> Optional[re.Pattern]:
    if not keywords:
        return None
    alternation = "|".join(re.escape(k) for k in sorted(set(keywords), key=len, reverse=True))
    return re.compile(rf"\b(?:{alternation})", re.IGNORECASE)


def _keywords_for(categories: Sequence[str]) -> list[str]:
    return [kw for cat in categories for kw in NOTE_KEYWORDS[cat]]


def _hits(pattern: Optional[re.Pattern], text: str) -> set[str]:
    if pattern is None:
        return set()
    return {m.group(0).lower() for m in pattern.finditer(text)}


def filter_notes(limiter: str, notes: Sequence[str]) -> tuple[list[str], list[DroppedNote]]:
    own = LIMITER_NOTE_CATEGORIES.get(limiter, ())
    constraint_kw = set(_keywords_for(own))
    # A keyword shared with the constraint (e.g. "protein") never counts against it.
    other_kw = [kw for kw in _keywords_for([c for c in NOTE_KEYWORDS if c not in own]) if kw not in constraint_kw]

    constraint_re = _keyword_pattern(sorted(constraint_kw))
    other_re = _keyword_pattern(other_kw)

    kept: list[str] = []
    dropped: list[DroppedNote] = []
    for note in notes:
        constraint_hits = _hits(constraint_re, note)
        other_hits = _hits(other_re, note)
        if other_hits and not constraint_hits:
            dropped.append(DroppedNote(
                note=note,
                reason=(
                    f"Discusses non-constraint behavior only ({', '.join(sorted(other_hits))}) "
                    f"with no {limiter} keywords"
                ),
            ))
        else:
            kept.append(note)
    return kept, dropped


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def _full_scope(
    snapshot: ConstraintSnapshot,
    changes: Sequence[BehaviorChange],
    notes: Sequence[str],
) -> ScopedData:
    lines = [
        f"Sleep average: {_pct(snapshot.sleep_average)}",
        f"Nutrition average: {_pct(snapshot.nutrition_average)}",
        f"Protein average: {_pct(snapshot.protein_average)}",
        f"Hydration average: {_pct(snapshot.hydration_average)}",
        f"Training: {snapshot.training_frequency} days",
    ]
    if changes:
        lines += ["", "Week-over-week:"]
        lines += [f"  {c.describe()}" for c in changes]
    return ScopedData(
        constraint_detail="\n".join(lines),
        background_summary=FULL_SCOPE_SUMMARY,
        constraint_behavior=Limiter.PROGRESSION,
        filtered_notes=tuple(notes),
    )


def scope_behavioral_data(
    limiter: str,
    snapshot: ConstraintSnapshot,
    changes: Optional[Sequence[BehaviorChange]] = None,
    day_patterns: Optional[DayOfWeekAnalysis] = None,
    notes: Optional[Sequence[str]] = None,
) -> ScopedData:
    limiter = limiter.lower()
    changes = list(changes or [])
    notes = list(notes or [])

    if limiter == Limiter.PROGRESSION:
        return _full_scope(snapshot, changes, notes)

    relevant = LIMITER_TO_BEHAVIORS.get(limiter, ())
    kept, dropped = filter_notes(limiter, notes)
    return ScopedData(
        constraint_detail=_constraint_detail(limiter, relevant, snapshot, changes, day_patterns),
        background_summary=_background_summary(limiter, relevant, snapshot, changes),
        constraint_behavior=limiter,
        filtered_notes=tuple(kept),
        dropped_notes=tuple(dropped),
    )
