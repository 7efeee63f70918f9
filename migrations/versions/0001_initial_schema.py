"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- day_stats ---
    op.create_table(
        "day_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("offline_minutes", sa.Float(), nullable=False, server_default="0"),
        sa.Column("session_count", sa.Integer(), nullable=True),
        sa.Column("xp_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("achievements_unlocked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_day", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("day", name="uq_day_stats_day"),
    )
    op.create_index("ix_day_stats_id", "day_stats", ["id"])
    op.create_index("ix_day_stats_day", "day_stats", ["day"])

    # --- session_notes ---
    op.create_table(
        "session_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Float(), nullable=False, server_default="0"),
        sa.Column("goal_id", sa.String(64), nullable=True),
        sa.Column("mood", sa.String(32), nullable=True),
        sa.Column("activities", sa.Text(), nullable=True),
        sa.Column("goal_achieved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_notes_id", "session_notes", ["id"])
    op.create_index("ix_session_notes_day", "session_notes", ["day"])

    # --- streak_state (single row) ---
    op.create_table(
        "streak_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- personal_bests (one row per category) ---
    op.create_table(
        "personal_bests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("record_id", sa.String(64), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("achieved_on", sa.Date(), nullable=False),
        sa.Column("previous_value", sa.Float(), nullable=True),
        sa.Column("previous_achieved_on", sa.Date(), nullable=True),
        sa.Column("improvement", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category", name="uq_personal_bests_category"),
    )
    op.create_index("ix_personal_bests_id", "personal_bests", ["id"])


def downgrade() -> None:
    op.drop_index("ix_personal_bests_id", table_name="personal_bests")
    op.drop_table("personal_bests")
    op.drop_table("streak_state")
    op.drop_index("ix_session_notes_day", table_name="session_notes")
    op.drop_index("ix_session_notes_id", table_name="session_notes")
    op.drop_table("session_notes")
    op.drop_index("ix_day_stats_day", table_name="day_stats")
    op.drop_index("ix_day_stats_id", table_name="day_stats")
    op.drop_table("day_stats")
