import logging

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from weekly_coach.core.config import settings
from weekly_coach.core.errors import (
    CoachingException,
    coaching_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from weekly_coach.core.logging import setup_logging
from weekly_coach.db.base import get_db
from weekly_coach.routers import checkins as checkins_router
from weekly_coach.routers import coaching as coaching_router
from weekly_coach.routers import cron as cron_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Weekly Coach API",
    description=(
        "**Weekly behavioral coaching**\n\n"
        "Classifies a user's week of check-ins into one pattern, derives the "
        "dominant constraint and a progression directive, and generates validated "
        "coaching text.\n\n"
        "All error responses follow the `{success, code, error, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CoachingException, coaching_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(coaching_router.router)
app.include_router(checkins_router.router)
app.include_router(cron_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        logger.exception("Health check could not reach the database")
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
