"""
DailyCheckin — one behavior check-in per (user, day).

Rows are written upstream (check-in flow, gap reconciliation) and read by
the pattern classifier. Momentum and lifetime counters are computed
upstream; this service only consumes them.

checkin_type values:
  "real"      — the user checked in
  "gap_fill"  — placeholder for a missed day; gap_resolved flips to True
                once the user back-fills it

behavior_grades: JSON-encoded list of {"name": str, "grade": int} stored
as Text, grade ∈ {0, 50, 80, 100}.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Boolean, Float, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from weekly_coach.db.base import Base


class DailyCheckin(Base):
    __tablename__ = "daily_checkins"
    __table_args__ = (
        UniqueConstraint("user_email", "day", name="uq_daily_checkin_user_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    checkin_type: Mapped[str] = mapped_column(String(16), nullable=False, default="real")
    exercise_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    behavior_grades: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of {name, grade} objects",
    )
    momentum_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    daily_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    gap_resolved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    total_real_checkins: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
        comment="Lifetime count of real check-ins as of this day (upstream counter)",
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
