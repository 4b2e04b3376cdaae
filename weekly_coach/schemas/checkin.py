"""
Check-in document schemas.

CheckinDocument is the single boundary between untyped stored/posted
check-ins and the typed DailyRecord used by the classifiers:

  - missing behaviorGrades       → []
  - entry without a name         → rejected
  - non-numeric grade            → rejected
  - grade outside 0–100          → rejected
  - grade off the ordinal set    → snapped to the nearest of 0/50/80/100

POST /checkins → CheckinUpsertRequest / CheckinResponse
"""
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from weekly_coach.services.behaviors import GRADES, BehaviorGrade, DailyRecord


class BehaviorGradeIn(BaseModel):
    name: str = Field(min_length=1, examples=["sleep"])
    grade: float = Field(ge=0, le=100, description="0 Off, 50 Not Great, 80 Solid, 100 Elite")

    @field_validator("name")
    @classmethod
    def name_normalized(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("behavior name must not be blank")
        return v

    @field_validator("grade")
    @classmethod
    def snap_to_ordinal(cls, v: float) -> int:
        # Nearest allowed grade; ties go to the lower grade.
        return min(GRADES, key=lambda g: (abs(g - v), g))


class CheckinDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(alias="date", examples=["2026-02-09"])
    checkin_type: Literal["real", "gap_fill"] = Field(default="real", alias="checkinType")
    exercise_completed: bool = Field(default=False, alias="exerciseCompleted")
    behavior_grades: list[BehaviorGradeIn] = Field(default_factory=list, alias="behaviorGrades")
    momentum_score: float = Field(default=0, ge=0, le=100, alias="momentumScore")
    daily_score: float = Field(default=0, alias="dailyScore")
    gap_resolved: Optional[bool] = Field(default=None, alias="gapResolved")
    total_real_checkins: Optional[int] = Field(default=None, ge=0, alias="totalRealCheckIns")
    note: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("behavior_grades", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return [] if v is None else v

    @field_validator("momentum_score", "daily_score", mode="before")
    @classmethod
    def none_is_zero(cls, v):
        return 0 if v is None else v

    def to_record(self) -> DailyRecord:
        return DailyRecord(
            day=self.day,
            checkin_type=self.checkin_type,
            exercise_completed=self.exercise_completed,
            behavior_grades=tuple(
                BehaviorGrade(name=bg.name, grade=int(bg.grade)) for bg in self.behavior_grades
            ),
            momentum_score=self.momentum_score,
            daily_score=self.daily_score,
            gap_resolved=self.gap_resolved,
            total_real_checkins=self.total_real_checkins,
            note=self.note.strip() if self.note and self.note.strip() else None,
        )


class CheckinUpsertRequest(CheckinDocument):
    email: str = Field(min_length=3, examples=["user@example.com"])

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return v.strip().lower()


class CheckinResponse(BaseModel):
    email: str
    date: str
    checkin_type: str
    exercise_completed: bool
    behavior_grades: list[dict]
    momentum_score: float
    daily_score: float
    gap_resolved: Optional[bool] = None
    total_real_checkins: Optional[int] = None
    note: Optional[str] = None
