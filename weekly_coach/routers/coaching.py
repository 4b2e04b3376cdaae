"""
Coaching router.

POST /generate-weekly-coaching               — run the pipeline for one user-week
GET  /weekly-summaries/{email}/{week_id}     — read a persisted summary
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from weekly_coach.core.errors import (
    CoachingException,
    CoachingPipelineError,
    MissingFieldsError,
    SummaryNotFoundError,
)
from weekly_coach.db.base import get_db
from weekly_coach.schemas.coaching import CoachingResponse, GenerateCoachingRequest, WeeklySummaryOut
from weekly_coach.schemas.common import ErrorResponse
from weekly_coach.services.coaching_orchestrator import generate_weekly_coaching
from weekly_coach.services.record_source import SummaryStore
from weekly_coach.services.text_generator import AnthropicTextGenerator, TextGenerator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["coaching"])

_generator = AnthropicTextGenerator()


def get_text_generator() -> TextGenerator:
    """Process-wide generator. Overridden in tests."""
    return _generator


@router.post(
    "/generate-weekly-coaching",
    response_model=CoachingResponse,
    summary="Generate (or skip) weekly coaching for a user",
    responses={
        200: {"description": "Coaching generated, or the week was skipped as uncoachable."},
        400: {"model": ErrorResponse, "description": "Missing email/weekId, or unknown fixture."},
        422: {"model": ErrorResponse, "description": "Every generation attempt failed validation."},
        500: {"model": ErrorResponse, "description": "Generator or pipeline failure."},
    },
)
def generate_coaching(
    payload: Optional[GenerateCoachingRequest] = None,
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
):
    """
    Detect the week's pattern, then generate, validate and persist coaching.

    Uncoachable weeks (`insufficient_data`, `building_foundation`) are stored
    as `skipped` and still return 200. A rejected week is stored before the
    422 is returned.
    """
    payload = payload or GenerateCoachingRequest()
    missing = payload.missing_fields()
    if missing:
        raise MissingFieldsError(missing)

    email = payload.email.lower()
    try:
        outcome = generate_weekly_coaching(
            db, email, payload.week_id, generator, use_fixture=payload.use_fixture
        )
    except CoachingException:
        raise
    except Exception as exc:
        logger.exception("Coaching pipeline failed for %s %s", email, payload.week_id)
        raise CoachingPipelineError(str(exc) or exc.__class__.__name__) from exc

    return CoachingResponse(summary=WeeklySummaryOut(**outcome.summary))


@router.get(
    "/weekly-summaries/{email}/{week_id}",
    response_model=WeeklySummaryOut,
    summary="Fetch a persisted weekly summary",
    responses={404: {"model": ErrorResponse, "description": "No summary for that user and week."}},
)
def get_weekly_summary(email: str, week_id: str, db: Session = Depends(get_db)):
    email = email.strip().lower()
    summary = SummaryStore(db).get(email, week_id)
    if summary is None:
        raise SummaryNotFoundError(email, week_id)
    return WeeklySummaryOut(**summary)
