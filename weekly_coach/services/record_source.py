"""
Record source — the data-store collaborator behind every classifier.

Two stores, both thin wrappers over a SQLAlchemy Session:

  CheckinStore   per-day check-ins (read by the classifiers)
                 query(email, start, end, checkin_type?, descending?, limit?)
                 get(email, day)
                 upsert(email, document)
                 users_with_checkins(start, end, min_count=1)

  SummaryStore   one coaching summary per (user, week_id)
                 set(email, week_id, document, merge=False)
                 get(email, week_id)

Rows are parsed into DailyRecord through CheckinDocument. A stored row
that fails validation is logged and skipped, never handed to a classifier.
Summary documents use the camelCase keys of the HTTP contract.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from weekly_coach.models.daily_checkin import DailyCheckin
from weekly_coach.models.weekly_summary import WeeklySummary
from weekly_coach.schemas.checkin import CheckinDocument
from weekly_coach.services.behaviors import DailyRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------

def _load_grades(raw: Optional[str]) -> Any:
    if not raw:
        return []
    return json.loads(raw)


def row_to_record(row: DailyCheckin) -> Optional[DailyRecord]:
    """Parse one stored row. Returns None (and logs) when the row is malformed."""
    try:
        doc = CheckinDocument.model_validate({
            "date": row.day,
            "checkinType": row.checkin_type,
            "exerciseCompleted": row.exercise_completed,
            "behaviorGrades": _load_grades(row.behavior_grades),
            "momentumScore": row.momentum_score,
            "dailyScore": row.daily_score,
            "gapResolved": row.gap_resolved,
            "totalRealCheckIns": row.total_real_checkins,
            "note": row.note,
        })
    except (ValidationError, ValueError) as exc:
        logger.warning(
            "Skipping malformed check-in for %s on %s: %s", row.user_email, row.day, exc
        )
        return None
    return doc.to_record()


class CheckinStore:
    def __init__(self, db: Session):
        self.db = db

    def query(
        self,
        email: str,
        start: date,
        end: date,
        checkin_type: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[DailyRecord]:
        """Check-ins with start <= day <= end, ordered by day."""
        q = self.db.query(DailyCheckin).filter(
            DailyCheckin.user_email == email,
            DailyCheckin.day >= start,
            DailyCheckin.day <= end,
        )
        if checkin_type:
            q = q.filter(DailyCheckin.checkin_type == checkin_type)
        order = DailyCheckin.day.desc() if descending else DailyCheckin.day.asc()
        q = q.order_by(order)
        if limit is not None:
            q = q.limit(limit)

        records = []
        for row in q.all():
            record = row_to_record(row)
            if record is not None:
                records.append(record)
        return records

    def get(self, email: str, day: date) -> Optional[DailyRecord]:
        row = (
            self.db.query(DailyCheckin)
            .filter(DailyCheckin.user_email == email, DailyCheckin.day == day)
            .first()
        )
        return row_to_record(row) if row is not None else None

    def upsert(self, email: str, document: CheckinDocument) -> DailyCheckin:
        """Insert or replace the check-in for (email, document.day)."""
        row = (
            self.db.query(DailyCheckin)
            .filter(DailyCheckin.user_email == email, DailyCheckin.day == document.day)
            .first()
        )
        if row is None:
            row = DailyCheckin(user_email=email, day=document.day)
            self.db.add(row)

        row.checkin_type = document.checkin_type
        row.exercise_completed = document.exercise_completed
        row.behavior_grades = json.dumps([
            {"name": bg.name, "grade": int(bg.grade)} for bg in document.behavior_grades
        ])
        row.momentum_score = document.momentum_score
        row.daily_score = document.daily_score
        row.gap_resolved = document.gap_resolved
        row.total_real_checkins = document.total_real_checkins
        row.note = document.note

        self.db.commit()
        self.db.refresh(row)
        return row

    def users_with_checkins(self, start: date, end: date, min_count: int = 1) -> list[tuple[str, int]]:
        """(email, check-in count) for users with at least `min_count` check-ins in range."""
        count = func.count(DailyCheckin.id)
        rows = (
            self.db.query(DailyCheckin.user_email, count)
            .filter(DailyCheckin.day >= start, DailyCheckin.day <= end)
            .group_by(DailyCheckin.user_email)
            .having(count >= min_count)
            .order_by(DailyCheckin.user_email.asc())
            .all()
        )
        return [(email, int(count)) for email, count in rows]

    def known_users(self) -> list[str]:
        rows = (
            self.db.query(DailyCheckin.user_email)
            .distinct()
            .order_by(DailyCheckin.user_email.asc())
            .all()
        )
        return [r[0] for r in rows]


# ---------------------------------------------------------------------------
# Weekly summaries
# ---------------------------------------------------------------------------

# document key → (column, is_json)
_SUMMARY_FIELDS: dict[str, tuple[str, bool]] = {
    "patternType":           ("pattern_type", False),
    "canCoach":              ("can_coach", False),
    "skipReason":            ("skip_reason", False),
    "evidencePoints":        ("evidence_points", True),
    "modelVersion":          ("model_version", False),
    "status":                ("status", False),
    "coaching":              ("coaching", True),
    "rejectionReason":       ("rejection_reason", False),
    "rawOutput":             ("raw_output", False),
    "generatedAt":           ("generated_at", False),
    "daysAnalyzed":          ("days_analyzed", False),
    "realCheckInsThisWeek":  ("real_checkins_this_week", False),
    "totalLifetimeCheckIns": ("total_lifetime_checkins", False),
}

# Cleared on a full overwrite when the new document omits them
_OPTIONAL_SUMMARY_FIELDS = ("skipReason", "coaching", "rejectionReason", "rawOutput")


def _parse_generated_at(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return datetime.now(tz=timezone.utc)


def summary_to_dict(row: WeeklySummary) -> dict[str, Any]:
    out: dict[str, Any] = {"weekId": row.week_id}
    for key, (column, is_json) in _SUMMARY_FIELDS.items():
        value = getattr(row, column)
        if is_json and value is not None:
            value = json.loads(value)
        if key == "generatedAt" and value is not None:
            value = value.isoformat()
        out[key] = value
    return out


class SummaryStore:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, email: str, week_id: str) -> Optional[WeeklySummary]:
        return (
            self.db.query(WeeklySummary)
            .filter(WeeklySummary.user_email == email, WeeklySummary.week_id == week_id)
            .first()
        )

    def _apply(self, row: WeeklySummary, document: dict[str, Any], merge: bool) -> None:
        values = dict(document)
        if not merge:
            for key in _OPTIONAL_SUMMARY_FIELDS:
                values.setdefault(key, None)
        for key, value in values.items():
            if key == "weekId":
                continue
            mapping = _SUMMARY_FIELDS.get(key)
            if mapping is None:
                logger.debug("Ignoring unknown summary field %r", key)
                continue
            column, is_json = mapping
            if key == "generatedAt":
                value = _parse_generated_at(value)
            elif is_json and value is not None:
                value = json.dumps(value, default=str)
            setattr(row, column, value)

    def set(
        self,
        email: str,
        week_id: str,
        document: dict[str, Any],
        merge: bool = False,
    ) -> WeeklySummary:
        """
        Write the summary for (email, week_id).

        merge=False replaces the stored document (omitted optional fields are
        cleared); merge=True only touches the keys present in `document`.
        Concurrent writers are not coordinated: last writer wins.
        """
        row = self._find(email, week_id)
        if row is None:
            row = WeeklySummary(user_email=email, week_id=week_id)
            self._apply(row, document, merge=False)
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request inserted the same week first; overwrite it.
                self.db.rollback()
                row = self._find(email, week_id)
                if row is None:
                    raise
                self._apply(row, document, merge)
                self.db.commit()
        else:
            self._apply(row, document, merge)
            self.db.commit()

        self.db.refresh(row)
        logger.info("Stored weekly summary %s/%s status=%s", email, week_id, row.status)
        return row

    def get(self, email: str, week_id: str) -> Optional[dict[str, Any]]:
        row = self._find(email, week_id)
        return summary_to_dict(row) if row is not None else None
