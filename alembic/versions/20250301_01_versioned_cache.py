"""Version tags, size and expiry on cache entries; quiz review codes on progress."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20250301_01_versioned_cache"
down_revision = "20250101_02_user_settings"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("cache_entries") as batch:
        batch.add_column(sa.Column("data_version", sa.String(length=128), nullable=True))
        batch.add_column(sa.Column("build_hash", sa.String(length=128), nullable=True))
        batch.add_column(sa.Column("size", sa.Integer(), nullable=False, server_default="0"))
        batch.add_column(sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True))

    with op.batch_alter_table("user_progress") as batch:
        batch.add_column(sa.Column("quiz_error_codes", sa.JSON(), nullable=True))
        batch.add_column(sa.Column("quiz_corrected_codes", sa.JSON(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("user_progress") as batch:
        batch.drop_column("quiz_corrected_codes")
        batch.drop_column("quiz_error_codes")

    with op.batch_alter_table("cache_entries") as batch:
        batch.drop_column("expires_at")
        batch.drop_column("size")
        batch.drop_column("build_hash")
        batch.drop_column("data_version")
