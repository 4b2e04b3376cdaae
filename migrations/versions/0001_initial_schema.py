"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-02-09 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- daily_checkins ---
    op.create_table(
        "daily_checkins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("checkin_type", sa.String(16), nullable=False, server_default="real"),
        sa.Column("exercise_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("behavior_grades", sa.Text(), nullable=True,
                  comment="JSON array of {name, grade} objects"),
        sa.Column("momentum_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("daily_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("gap_resolved", sa.Boolean(), nullable=True),
        sa.Column("total_real_checkins", sa.Integer(), nullable=True,
                  comment="Lifetime count of real check-ins as of this day (upstream counter)"),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_email", "day", name="uq_daily_checkin_user_day"),
    )
    op.create_index("ix_daily_checkins_id", "daily_checkins", ["id"])
    op.create_index("ix_daily_checkins_user_email", "daily_checkins", ["user_email"])
    op.create_index("ix_daily_checkins_day", "daily_checkins", ["day"])

    # --- weekly_summaries ---
    op.create_table(
        "weekly_summaries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("week_id", sa.String(16), nullable=False),
        sa.Column("pattern_type", sa.String(32), nullable=False),
        sa.Column("can_coach", sa.Boolean(), nullable=False),
        sa.Column("skip_reason", sa.String(32), nullable=True),
        sa.Column("evidence_points", sa.Text(), nullable=False, server_default="[]",
                  comment="JSON array of evidence strings"),
        sa.Column("model_version", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("coaching", sa.Text(), nullable=True,
                  comment="JSON object: pattern, tension, whyThisMatters, progression"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("raw_output", sa.Text(), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("days_analyzed", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("real_checkins_this_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_lifetime_checkins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_email", "week_id", name="uq_weekly_summary_user_week"),
    )
    op.create_index("ix_weekly_summaries_id", "weekly_summaries", ["id"])
    op.create_index("ix_weekly_summaries_user_email", "weekly_summaries", ["user_email"])
    op.create_index("ix_weekly_summaries_week_id", "weekly_summaries", ["week_id"])
    op.create_index("ix_weekly_summaries_status", "weekly_summaries", ["status"])


def downgrade() -> None:
    op.drop_table("weekly_summaries")
    op.drop_table("daily_checkins")
