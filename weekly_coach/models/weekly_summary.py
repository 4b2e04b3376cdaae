"""
WeeklySummary — the persisted outcome of one coaching generation.

At most one row per (user_email, week_id). Regenerating a week overwrites
the row (last writer wins).

status values:
  "generated" — coaching passed every check; `coaching` holds the JSON output
  "skipped"   — pattern not coachable; `skip_reason` holds the pattern name
  "rejected"  — all attempts failed; `rejection_reason` + `raw_output` kept for audit

evidence_points / coaching: JSON-encoded Text.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Boolean, DateTime, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from weekly_coach.db.base import Base


class WeeklySummary(Base):
    __tablename__ = "weekly_summaries"
    __table_args__ = (
        UniqueConstraint("user_email", "week_id", name="uq_weekly_summary_user_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    week_id: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    pattern_type: Mapped[str] = mapped_column(String(32), nullable=False)
    can_coach: Mapped[bool] = mapped_column(Boolean, nullable=False)
    skip_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    evidence_points: Mapped[str] = mapped_column(
        Text, nullable=False, default="[]",
        comment="JSON array of evidence strings",
    )
    model_version: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    coaching: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON object: pattern, tension, whyThisMatters, progression",
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_output: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    days_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    real_checkins_this_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lifetime_checkins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
