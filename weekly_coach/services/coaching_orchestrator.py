"""
Generation orchestrator — one user-week from pattern to persisted summary.

    detect pattern (or load fixture)
        │
        ├── uncoachable ─────────────► persist `skipped`
        │
    gather context (progression, snapshot, day-of-week, week-over-week,
        │           standout performance, notes, scoping)
        │
    attempt loop, at most MAX_GENERATION_ATTEMPTS:
        cancelled? ──► GenerationCancelledError
        generate ──── GenerationError: retry, re-raise on the last attempt
        language enforcement ─┐
        content validation ───┼── failure: errors feed the next attempt
        topic drift ──────────┘
        │
        ├── passed ──────────────────► persist `generated`
        └── exhausted ───────────────► persist `rejected`, CoachingRejectedError

Attempts are sequential. AttemptContext is a value: each retry builds a new
one carrying the previous attempt's errors.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from weekly_coach.core.config import settings
from weekly_coach.core.errors import (
    CoachingRejectedError,
    GenerationCancelledError,
    GenerationError,
    InvalidFixtureError,
)
from weekly_coach.services.behaviors import CheckinType
from weekly_coach.services.constraint_snapshot import (
    Limiter,
    default_snapshot,
    derive_snapshot_for_range,
)
from weekly_coach.services.content_validator import ValidationIssue, error_summary, validate_coaching
from weekly_coach.services.data_scoper import scope_behavioral_data
from weekly_coach.services.day_of_week import analyze_day_of_week
from weekly_coach.services.fixtures import get_fixture
from weekly_coach.services.language_enforcer import check_language
from weekly_coach.services.pattern_classifier import WeeklyPattern, detect_weekly_pattern
from weekly_coach.services.progression import default_progression, derive_progression
from weekly_coach.services.prompt_builder import (
    AttemptContext,
    CoachingContext,
    build_system_prompt,
    user_message_for,
)
from weekly_coach.services.record_source import CheckinStore, SummaryStore
from weekly_coach.services.text_generator import ModelConfig, TextGenerator, model_config_from_settings
from weekly_coach.services.topic_drift import check_topic_drift
from weekly_coach.services.week_over_week import compare_weeks, detect_standout_performance

logger = logging.getLogger(__name__)

SKIPPED_MODEL_VERSION = "none"


class SummaryStatus:
    GENERATED = "generated"
    SKIPPED   = "skipped"
    REJECTED  = "rejected"


@dataclass(frozen=True)
class CoachingOutcome:
    status: str
    summary: dict[str, Any]
    attempts: int = 0


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

def gather_context(store: CheckinStore, email: str, pattern: WeeklyPattern) -> CoachingContext:
    start, end = pattern.date_range.start, pattern.date_range.end
    current = store.query(email, start, end, checkin_type=CheckinType.REAL)
    previous = store.query(
        email, start - timedelta(days=7), start - timedelta(days=1), checkin_type=CheckinType.REAL
    )

    progression = derive_progression(current, previous)
    snapshot = derive_snapshot_for_range(store, email, start, end)
    changes = compare_weeks(current, previous) if previous else []
    notes = [r.note.strip() for r in current if r.note and r.note.strip()]

    scoped = scope_behavioral_data(
        snapshot.dominant_limiter,
        snapshot,
        changes=changes,
        day_patterns=analyze_day_of_week(current),
        notes=notes,
    )
    for dropped in scoped.dropped_notes:
        logger.info("Dropped note for %s: %s", email, dropped.reason)

    logger.info(
        "Context for %s %s: limiter=%s progression=%s (%s)",
        email, pattern.week_id, snapshot.dominant_limiter, progression.type, progression.reason,
    )
    return CoachingContext(
        pattern=pattern,
        snapshot=snapshot,
        progression=progression,
        scoped=scoped,
        standout=detect_standout_performance(current),
        changes=tuple(changes),
    )


def fixture_context(pattern: WeeklyPattern) -> CoachingContext:
    """Fixture runs have no stored check-ins: default snapshot, default progression."""
    snapshot = default_snapshot(limiter=Limiter.PROGRESSION)
    return CoachingContext(
        pattern=pattern,
        snapshot=snapshot,
        progression=default_progression(),
        scoped=scope_behavioral_data(Limiter.PROGRESSION, snapshot),
    )


# ---------------------------------------------------------------------------
# Attempt evaluation
# ---------------------------------------------------------------------------

def evaluate_output(raw: str, ctx: CoachingContext) -> tuple[Optional[dict[str, Any]], list[ValidationIssue]]:
    """Language enforcement, then validation, then topic drift. First failing stage wins."""
    language = check_language(raw, ctx.pattern.primary_pattern)
    if not language.passed:
        return None, [ValidationIssue("language_enforcement", language.error or "Language violation")]

    result = validate_coaching(raw, ctx.pattern, expected_progression=ctx.progression.type)
    if not result.valid:
        return None, list(result.errors)

    drift = check_topic_drift(result.coaching or {}, ctx.limiter)
    if drift:
        return None, [ValidationIssue("topic_drift", message) for message in drift]

    return result.coaching, []


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def _base_document(pattern: WeeklyPattern, status: str, model_version: str) -> dict[str, Any]:
    return {
        "patternType": pattern.primary_pattern,
        "canCoach": pattern.can_coach,
        "evidencePoints": list(pattern.evidence_points),
        "modelVersion": model_version,
        "status": status,
        "generatedAt": datetime.now(tz=timezone.utc),
        "daysAnalyzed": pattern.days_analyzed,
        "realCheckInsThisWeek": pattern.real_checkins_this_week,
        "totalLifetimeCheckIns": pattern.total_lifetime_checkins,
    }


def _persist(summaries: SummaryStore, email: str, week_id: str, document: dict[str, Any]) -> dict[str, Any]:
    summaries.set(email, week_id, document)
    stored = summaries.get(email, week_id)
    return stored if stored is not None else document


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def resolve_pattern(
    store: CheckinStore,
    email: str,
    week_id: str,
    use_fixture: Optional[str] = None,
    today: Optional[date] = None,
) -> WeeklyPattern:
    if use_fixture:
        pattern = get_fixture(use_fixture, week_id)
        if pattern is None:
            raise InvalidFixtureError(use_fixture)
        logger.info("Using fixture %s for %s %s", use_fixture, email, week_id)
        return pattern
    return detect_weekly_pattern(store, email, week_id, today=today)


def generate_weekly_coaching(
    db: Session,
    email: str,
    week_id: str,
    generator: TextGenerator,
    use_fixture: Optional[str] = None,
    today: Optional[date] = None,
    cancel_event: Optional[threading.Event] = None,
    config: Optional[ModelConfig] = None,
    max_attempts: Optional[int] = None,
) -> CoachingOutcome:
    """
    Run the whole pipeline for one user-week and persist the result.

    Returns the outcome for `generated` and `skipped`. Raises
    CoachingRejectedError after exhausted retries (the rejection is stored
    first), GenerationError when the final attempt cannot reach the
    generator, and GenerationCancelledError when `cancel_event` is set.
    """
    config = config or model_config_from_settings()
    max_attempts = max_attempts or settings.MAX_GENERATION_ATTEMPTS
    store = CheckinStore(db)
    summaries = SummaryStore(db)

    pattern = resolve_pattern(store, email, week_id, use_fixture, today)

    if not pattern.can_coach:
        document = _base_document(pattern, SummaryStatus.SKIPPED, SKIPPED_MODEL_VERSION)
        document["skipReason"] = pattern.primary_pattern
        logger.info("Skipping coaching for %s %s: %s", email, week_id, pattern.primary_pattern)
        return CoachingOutcome(status=SummaryStatus.SKIPPED, summary=_persist(summaries, email, week_id, document))

    ctx = fixture_context(pattern) if use_fixture else gather_context(store, email, pattern)

    attempt = AttemptContext()
    last_raw = ""
    last_errors: list[ValidationIssue] = []
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError(attempt.attempt_number)

        logger.info("Generation attempt %d/%d for %s %s", attempt.attempt_number, max_attempts, email, week_id)
        try:
            raw = generator.generate(build_system_prompt(ctx, attempt), user_message_for(attempt), config)
        except GenerationError as exc:
            if attempt.attempt_number >= max_attempts:
                raise
            logger.warning("Attempt %d failed to generate: %s", attempt.attempt_number, exc.message)
            attempt = attempt.next_attempt([f"Generation failed: {exc.message}"])
            continue

        coaching, errors = evaluate_output(raw, ctx)
        if coaching is not None:
            document = _base_document(pattern, SummaryStatus.GENERATED, config.model)
            document["coaching"] = coaching
            logger.info("Coaching generated for %s %s on attempt %d", email, week_id, attempt.attempt_number)
            return CoachingOutcome(
                status=SummaryStatus.GENERATED,
                summary=_persist(summaries, email, week_id, document),
                attempts=attempt.attempt_number,
            )

        last_raw, last_errors = raw, errors
        logger.warning("Attempt %d rejected: %s", attempt.attempt_number, error_summary(errors))
        if attempt.attempt_number >= max_attempts:
            break
        attempt = attempt.next_attempt([str(e) for e in errors])

    document = _base_document(pattern, SummaryStatus.REJECTED, config.model)
    document["rejectionReason"] = error_summary(last_errors)
    document["rawOutput"] = last_raw
    _persist(summaries, email, week_id, document)
    logger.error("Coaching rejected for %s %s after %d attempts", email, week_id, max_attempts)
    raise CoachingRejectedError(max_attempts, [e.to_dict() for e in last_errors])
