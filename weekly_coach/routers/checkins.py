"""
Check-in router.

POST /checkins   — insert or replace one day's check-in for a user
"""
import json

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from weekly_coach.db.base import get_db
from weekly_coach.models.daily_checkin import DailyCheckin
from weekly_coach.schemas.checkin import CheckinResponse, CheckinUpsertRequest
from weekly_coach.schemas.common import ErrorResponse
from weekly_coach.services.record_source import CheckinStore

router = APIRouter(prefix="/checkins", tags=["checkins"])


def _to_response(row: DailyCheckin) -> CheckinResponse:
    return CheckinResponse(
        email=row.user_email,
        date=str(row.day),
        checkin_type=row.checkin_type,
        exercise_completed=row.exercise_completed,
        behavior_grades=json.loads(row.behavior_grades) if row.behavior_grades else [],
        momentum_score=row.momentum_score,
        daily_score=row.daily_score,
        gap_resolved=row.gap_resolved,
        total_real_checkins=row.total_real_checkins,
        note=row.note,
    )


@router.post(
    "",
    response_model=CheckinResponse,
    summary="Record a daily check-in",
    responses={
        200: {"description": "Check-in stored (replaces any existing one for that day)."},
        422: {"model": ErrorResponse, "description": "Malformed check-in (bad date, grade or type)."},
    },
)
def upsert_checkin(payload: CheckinUpsertRequest, db: Session = Depends(get_db)):
    """
    Store one day's check-in. Grades off the 0/50/80/100 scale are snapped
    to the nearest allowed grade before they are written.
    """
    row = CheckinStore(db).upsert(payload.email, payload)
    return _to_response(row)
