"""
Weekly batch run — coaching for every eligible user for the previous ISO week.

    previous_week(today)          → (week_id, monday, sunday)
    run_weekly_batch(db, gen)     → BatchResult

Eligibility: at least CRON_MIN_CHECKINS check-ins (any type) between that
Monday and Sunday. One user's failure never stops the run; it is counted
and reported per user.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from weekly_coach.core.config import settings
from weekly_coach.core.errors import CoachingException, CoachingRejectedError
from weekly_coach.services.coaching_orchestrator import SummaryStatus, generate_weekly_coaching
from weekly_coach.services.record_source import CheckinStore
from weekly_coach.services.text_generator import TextGenerator

logger = logging.getLogger(__name__)


@dataclass
class UserResult:
    email: str
    check_ins: int
    status: str  # generated | skipped | rejected | failed | insufficient
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "email": self.email,
            "checkIns": self.check_ins,
            "status": self.status,
            "generated": self.status == SummaryStatus.GENERATED,
        }
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class BatchResult:
    week_id: str
    results: list[UserResult] = field(default_factory=list)
    duration_ms: int = 0

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    def summary(self) -> dict[str, int]:
        return {
            "totalUsers": len(self.results),
            "generated": self.count(SummaryStatus.GENERATED),
            "skipped": self.count(SummaryStatus.SKIPPED),
            "rejected": self.count(SummaryStatus.REJECTED),
            "failed": self.count("failed"),
            "insufficientCheckIns": self.count("insufficient"),
            "durationMs": self.duration_ms,
        }


def previous_week(today: date) -> tuple[str, date, date]:
    """ISO week before the one containing `today`."""
    monday = today - timedelta(days=today.weekday() + 7)
    sunday = monday + timedelta(days=6)
    iso_year, iso_week, _ = monday.isocalendar()
    return f"{iso_year}-W{iso_week:02d}", monday, sunday


def _run_one(db: Session, email: str, week_id: str, generator: TextGenerator, today: date) -> tuple[str, Optional[str]]:
    try:
        outcome = generate_weekly_coaching(db, email, week_id, generator, today=today)
    except CoachingRejectedError as exc:
        return SummaryStatus.REJECTED, exc.message
    except CoachingException as exc:
        logger.error("Batch coaching failed for %s: [%s] %s", email, exc.code, exc.message)
        db.rollback()
        return "failed", exc.message
    except Exception as exc:
        logger.exception("Unexpected batch failure for %s", email)
        db.rollback()
        return "failed", str(exc)
    return outcome.status, None


def run_weekly_batch(
    db: Session,
    generator: TextGenerator,
    today: Optional[date] = None,
    min_checkins: Optional[int] = None,
) -> BatchResult:
    started = time.monotonic()
    today = today or datetime.now(tz=timezone.utc).date()
    min_checkins = settings.CRON_MIN_CHECKINS if min_checkins is None else min_checkins
    week_id, monday, sunday = previous_week(today)

    store = CheckinStore(db)
    counts = dict(store.users_with_checkins(monday, sunday))
    users = store.known_users()
    logger.info("Weekly batch for %s (%s..%s): %d users", week_id, monday, sunday, len(users))

    result = BatchResult(week_id=week_id)
    for email in users:
        check_ins = counts.get(email, 0)
        if check_ins < min_checkins:
            result.results.append(UserResult(
                email, check_ins, "insufficient", f"Insufficient check-ins (need {min_checkins}+)"
            ))
            continue
        status, error = _run_one(db, email, week_id, generator, today)
        result.results.append(UserResult(email, check_ins, status, error))

    result.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Weekly batch %s complete: %s", week_id, result.summary())
    return result
