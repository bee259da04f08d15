"""Offline dataset cache and user progress."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250101_01_offline_cache"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cache_entries",
        sa.Column("key", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )

    op.create_table(
        "user_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("total_searches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discovered_entity_ids", sa.JSON(), nullable=False),
        sa.Column("quiz_correct_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quiz_total_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("badges", sa.JSON(), nullable=False),
        sa.Column("current_streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_active_date", sa.String(length=10), nullable=False, server_default=""),
    )


def downgrade() -> None:
    op.drop_table("user_progress")
    op.drop_table("cache_entries")
