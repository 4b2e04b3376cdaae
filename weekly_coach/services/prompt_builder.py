"""
Prompt builder — renders one coaching attempt as (system prompt, user message).

System prompt sections, in order:

  role                      who is speaking and to whom
  behavioral data           scoped constraint detail + qualitative background
  constraint lock           the dominant limiter is binding; no causal chains
  performance               Elite / Solid weeks to lead with
  encouragement             tone framework and forbidden harsh language
  progression               the derived type and its reason
  pattern language          PATTERN_LANGUAGE entry for the detected pattern
  user notes                notes that survived scoping
  previous errors           corrective feedback (retries only)
  detected pattern          type, evidence, window counts
  output structure          the JSON contract the validator enforces

Everything the generator may use is rendered here; nothing else reaches it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from weekly_coach.services.constraint_snapshot import ConstraintSnapshot, Limiter
from weekly_coach.services.data_scoper import LIMITER_TO_BEHAVIORS, ScopedData, is_relevant
from weekly_coach.services.language_enforcer import language_rule_for
from weekly_coach.services.pattern_classifier import WeeklyPattern
from weekly_coach.services.progression import ProgressionResult
from weekly_coach.services.week_over_week import BehaviorChange, StandoutPerformance, largest_drop

FIRST_ATTEMPT_MESSAGE = (
    "Generate coaching for this week based on the pattern and evidence provided in the "
    "system prompt. Respond with ONLY the JSON object, nothing else."
)
RETRY_MESSAGE = (
    "The previous output was rejected due to validation errors. Generate a corrected "
    "version following all coaching rules. Respond with ONLY the JSON object, nothing else."
)


@dataclass(frozen=True)
class AttemptContext:
    """One generation attempt. Never mutated; the next attempt is a new value."""
    attempt_number: int = 1
    previous_errors: tuple[str, ...] = ()

    @property
    def is_retry(self) -> bool:
        return self.attempt_number > 1

    def next_attempt(self, errors: Sequence[str]) -> "AttemptContext":
        return AttemptContext(attempt_number=self.attempt_number + 1, previous_errors=tuple(errors))


@dataclass(frozen=True)
class CoachingContext:
    """Everything gathered for one user-week before the first attempt."""
    pattern: WeeklyPattern
    snapshot: ConstraintSnapshot
    progression: ProgressionResult
    scoped: ScopedData
    standout: StandoutPerformance = field(default_factory=StandoutPerformance)
    changes: tuple[BehaviorChange, ...] = ()

    @property
    def limiter(self) -> str:
        return self.scoped.constraint_behavior


def user_message_for(attempt: AttemptContext) -> str:
    return RETRY_MESSAGE if attempt.is_retry else FIRST_ATTEMPT_MESSAGE


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _bullets(items: Sequence[str], prefix: str = "- ") -> str:
    return "\n".join(f"{prefix}{item}" for item in items)


def _numbered(items: Sequence[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _behavioral_data(ctx: CoachingContext) -> str:
    return (
        "# BEHAVIORAL DATA THIS WEEK (TRUST THIS FIRST)\n\n"
        f"{ctx.scoped.constraint_detail or 'No numeric detail available for this week.'}\n\n"
        f"Background conditions (non-causal state): {ctx.scoped.background_summary}"
    )


def _largest_scoped_drop(ctx: CoachingContext) -> str:
    if ctx.limiter == Limiter.PROGRESSION:
        visible = list(ctx.changes)
    else:
        relevant = LIMITER_TO_BEHAVIORS.get(ctx.limiter, ())
        visible = [c for c in ctx.changes if is_relevant(c.behavior, relevant)]
    drop = largest_drop(visible)
    if drop is None:
        return "none detected"
    return f"{drop.behavior} (dropped {abs(drop.delta)} points)"


def _constraint_lock(ctx: CoachingContext) -> str:
    return (
        "# CONSTRAINT AUTHORITY LOCK (NON-NEGOTIABLE)\n\n"
        f"PRIMARY CONSTRAINT: {ctx.limiter}\n"
        f"LARGEST NEGATIVE CHANGE: {_largest_scoped_drop(ctx)}\n\n"
        "The dominant limiter is binding.\n\n"
        "You must:\n"
        "- Describe the failing behavior directly\n"
        "- Not introduce other behaviors as causes\n"
        "- Not explain why the failure is happening\n"
        "- Not construct cross-behavior causal chains\n"
        '- Not use "because", "due to", "drives", "creates", "leads to" or "cascades" '
        "when referencing other behaviors\n\n"
        "Focus only on describing the constraint itself."
    )


def _performance(standout: StandoutPerformance, real_checkins: int) -> str:
    lines = ["# PERFORMANCE ACKNOWLEDGMENT", ""]
    if standout.elite_week:
        lines.append(f"ELITE all 7 days: {', '.join(standout.elite_week)}")
        lines.append("Name each Elite behavior in the first sentence of Pattern.")
    if standout.solid_week:
        lines.append(f"SOLID all week (80%+ is the target): {', '.join(standout.solid_week)}")
    if not standout.elite_week and not standout.solid_week:
        lines.append(
            f"No behavior held Solid all week. Acknowledge showing up: {real_checkins} check-ins this week."
        )
    return "\n".join(lines)


_ENCOURAGEMENT = """# ENCOURAGEMENT FRAMEWORK

You are coaching a capable adult running a behavioral experiment on themselves.

- Solid (80%) is success; Elite (100%) is exceptional, not expected
- Lead with what is working, then state the limitation as neutral data
- Frame limitations as solvable, never as character flaws

FORBIDDEN LANGUAGE (will cause rejection):
- Harsh: chaos, collapse, disaster, crisis, breaking down, falling apart
- Discouraging: still struggling, can't seem to, keeps failing
- Hedging: suggests, may indicate, appears to, could be, seems to
- System voice: the system, your system, the data, the pattern"""


def _progression(progression: ProgressionResult) -> str:
    kind = progression.type.upper()
    return (
        f"# WEEKLY PROGRESSION: {kind}\n\n"
        f"Reason: {progression.reason}\n\n"
        f'Set progression.type to "{progression.type}". Give ONE specific, actionable directive '
        "for the next 7 days in at most 280 characters. No hedging. No meta-language "
        "(system, pattern, data, metrics, momentum score)."
    )


def _pattern_language(pattern_type: str) -> str:
    rule = language_rule_for(pattern_type)
    parts = [f"# PATTERN-SPECIFIC LANGUAGE FOR: {pattern_type}"]
    if rule.special_instructions:
        parts.append(rule.special_instructions)
    if rule.banned_phrases:
        parts.append(
            "BANNED PHRASES (validation will reject if these appear):\n"
            + _bullets([f'"{p}"' for p in rule.banned_phrases])
        )
    if rule.approved_alternatives:
        parts.append("USE THESE APPROVED ALTERNATIVES:\n" + _bullets([f'"{a}"' for a in rule.approved_alternatives]))
    if rule.required_acknowledgments:
        parts.append("REQUIRED ACKNOWLEDGMENTS:\n" + _bullets(rule.required_acknowledgments))
    return "\n\n".join(parts)


def _notes(notes: Sequence[str]) -> str:
    if not notes:
        return ""
    return (
        "# USER NOTES (explanatory only, never override the numbers)\n\n"
        + _bullets([f'"{n}"' for n in notes])
    )


def _previous_errors(attempt: AttemptContext) -> str:
    if not attempt.previous_errors:
        return ""
    return (
        "# VALIDATION ERRORS FROM PREVIOUS ATTEMPT\n\n"
        + _bullets(attempt.previous_errors)
        + "\n\nYour previous output was rejected. Correct these specific violations."
    )


def _detected_pattern(pattern: WeeklyPattern) -> str:
    return (
        "# DETECTED PATTERN FOR THIS WEEK\n\n"
        f"Pattern Type: {pattern.primary_pattern}\n\n"
        f"Evidence:\n{_numbered(pattern.evidence_points)}\n\n"
        f"Week ID: {pattern.week_id}\n"
        f"Days Analyzed: {pattern.days_analyzed}\n"
        f"Real Check-Ins This Week: {pattern.real_checkins_this_week}\n\n"
        "Pattern must cite at least one exact number from the evidence above."
    )


_OUTPUT_STRUCTURE = """# OUTPUT STRUCTURE (REQUIRED)

Respond with valid JSON in exactly this structure, 200-300 words total:

{
  "pattern": "string (2-4 sentences: the win, then at least two averages)",
  "tension": "string (2-5 sentences, present tense, describes the limitation only)",
  "whyThisMatters": "string (4-6 sentences, stakes and what unlocks)",
  "progression": {
    "text": "string (one directive, max 280 characters)",
    "type": "advance" | "stabilize" | "simplify"
  }
}

Respond with ONLY the JSON object, no markdown code blocks, no preamble."""


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def build_system_prompt(ctx: CoachingContext, attempt: Optional[AttemptContext] = None) -> str:
    attempt = attempt or AttemptContext()
    sections = [
        "You are Nelson, an evidence-based personal health coach.",
        _behavioral_data(ctx),
        _constraint_lock(ctx),
        _performance(ctx.standout, ctx.pattern.real_checkins_this_week),
        _ENCOURAGEMENT,
        _progression(ctx.progression),
        _pattern_language(ctx.pattern.primary_pattern),
        _notes(ctx.scoped.filtered_notes),
        _previous_errors(attempt),
        _detected_pattern(ctx.pattern),
        _OUTPUT_STRUCTURE,
    ]
    return "\n\n".join(s for s in sections if s)
