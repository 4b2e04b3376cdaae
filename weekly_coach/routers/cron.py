"""
Cron router.

POST /cron/generate-weekly-coaching   — weekly batch for the previous ISO week

Authorization: Bearer <CRON_SECRET>. With no CRON_SECRET configured every
request is refused.
"""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from weekly_coach.core.config import settings
from weekly_coach.core.errors import UnauthorizedError
from weekly_coach.db.base import get_db
from weekly_coach.routers.coaching import get_text_generator
from weekly_coach.schemas.coaching import CronRunResponse, CronSummary
from weekly_coach.schemas.common import ErrorResponse
from weekly_coach.services.text_generator import TextGenerator
from weekly_coach.services.weekly_batch import run_weekly_batch

router = APIRouter(prefix="/cron", tags=["cron"])


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    secret = settings.CRON_SECRET
    if not secret or not authorization:
        raise UnauthorizedError()
    if not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise UnauthorizedError()


@router.post(
    "/generate-weekly-coaching",
    response_model=CronRunResponse,
    summary="Generate coaching for every eligible user (previous week)",
    responses={401: {"model": ErrorResponse, "description": "Missing or wrong cron secret."}},
    dependencies=[Depends(require_cron_secret)],
)
def run_cron(
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
):
    """Users need CRON_MIN_CHECKINS check-ins in the previous week to be coached."""
    result = run_weekly_batch(db, generator)
    return CronRunResponse(
        weekId=result.week_id,
        summary=CronSummary(**result.summary()),
        results=[r.to_dict() for r in result.results],
    )
