"""
Custom exception hierarchy for the weekly coaching service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages. Every error body
carries `success: false` and a human-readable `error`.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CoachingException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "success": False,
            "code": self.code,
            "error": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class MissingFieldsError(CoachingException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "MISSING_FIELDS"

    def __init__(self, fields: list[str]):
        super().__init__(
            message=f"Missing required fields: {', '.join(fields)}",
            details={"fields": fields},
        )


class InvalidFixtureError(CoachingException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "INVALID_FIXTURE"

    def __init__(self, fixture: str):
        super().__init__(
            message=f"Invalid fixture: {fixture}",
            details={"fixture": fixture},
        )


class UnauthorizedError(CoachingException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self):
        super().__init__(message="Unauthorized")


class SummaryNotFoundError(CoachingException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SUMMARY_NOT_FOUND"

    def __init__(self, email: str, week_id: str):
        super().__init__(
            message=f"No weekly summary for {email} in {week_id}.",
            details={"email": email, "week_id": week_id},
        )


class CoachingRejectedError(CoachingException):
    """All generation attempts failed validation. The rejection is already persisted."""
    http_status = 422
    code = "COACHING_REJECTED"

    def __init__(self, attempts: int, validation_errors: list[dict[str, Any]]):
        self.validation_errors = validation_errors
        super().__init__(
            message=f"Validation failed after {attempts} attempts",
            details={"attempts": attempts},
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["validationErrors"] = self.validation_errors
        return payload


class CoachingPipelineError(CoachingException):
    """Unexpected failure inside the coaching pipeline (store, parsing, bug)."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "COACHING_FAILED"

    def __init__(self, message: str):
        super().__init__(message=message)


class GenerationError(CoachingException):
    """The external text generator failed (network, API or empty response)."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "GENERATION_FAILED"

    def __init__(self, message: str):
        super().__init__(message=message)


class GenerationTimeoutError(GenerationError):
    code = "GENERATION_TIMEOUT"

    def __init__(self, timeout_s: float):
        super().__init__(message=f"Text generation exceeded {timeout_s:g}s timeout.")
        self.details = {"timeout_s": timeout_s}


class GenerationCancelledError(CoachingException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "GENERATION_CANCELLED"

    def __init__(self, attempt_number: int):
        super().__init__(
            message=f"Generation cancelled before attempt {attempt_number}.",
            details={"attempt_number": attempt_number},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def coaching_exception_handler(request: Request, exc: CoachingException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "error": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "code": "INTERNAL_ERROR",
            "error": "An unexpected error occurred.",
        },
    )
