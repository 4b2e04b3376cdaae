"""
Weekly coaching schemas.

POST /generate-weekly-coaching        → GenerateCoachingRequest → CoachingResponse
GET  /weekly-summaries/{email}/{week} → WeeklySummaryOut
POST /cron/generate-weekly-coaching   → CronRunResponse

`email` and `weekId` are optional at the schema level: their absence is a
400 MISSING_FIELDS raised by the router, not a 422 schema error.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerateCoachingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(default=None, examples=["user@example.com"])
    week_id: Optional[str] = Field(default=None, alias="weekId", examples=["2026-W06"])
    use_fixture: Optional[str] = Field(
        default=None,
        alias="useFixture",
        description="Pattern type whose fixture replaces detection (testing aid).",
        examples=["momentum_plateau"],
    )

    @field_validator("email", "week_id", "use_fixture")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.email:
            missing.append("email")
        if not self.week_id:
            missing.append("weekId")
        return missing


class CoachingOutput(BaseModel):
    pattern: str
    tension: str
    whyThisMatters: str
    progression: dict[str, str]


class WeeklySummaryOut(BaseModel):
    weekId: str
    patternType: str
    canCoach: bool
    skipReason: Optional[str] = None
    evidencePoints: list[str] = Field(default_factory=list)
    modelVersion: str
    status: str
    coaching: Optional[CoachingOutput] = None
    rejectionReason: Optional[str] = None
    rawOutput: Optional[str] = None
    generatedAt: Optional[datetime] = None
    daysAnalyzed: int
    realCheckInsThisWeek: int
    totalLifetimeCheckIns: int


class CoachingResponse(BaseModel):
    success: bool = True
    summary: WeeklySummaryOut


class CronSummary(BaseModel):
    totalUsers: int
    generated: int
    skipped: int
    rejected: int
    failed: int
    insufficientCheckIns: int
    durationMs: int


class CronRunResponse(BaseModel):
    success: bool = True
    weekId: str
    summary: CronSummary
    results: list[dict[str, Any]]
