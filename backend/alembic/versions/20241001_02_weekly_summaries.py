"""Create weekly summaries cache table.

Revision ID: 20241001_02
Revises: 20241001_01
Create Date: 2024-10-01 00:10:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20241001_02"
down_revision = "20241001_01"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "weekly_summaries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("range_label", sa.String(length=32), nullable=False),
        sa.Column("entries_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("top_mood", sa.String(length=16), nullable=True),
        sa.Column("avg_score", sa.Float(), nullable=True),
        sa.Column("grade", sa.String(length=2), nullable=True),
        sa.Column("trend", sa.String(length=16), nullable=True),
        sa.Column("positive_tags", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("negative_tags", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("best_day", sa.String(length=16), nullable=True),
        sa.Column("worst_day", sa.String(length=16), nullable=True),
        sa.Column("computed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_weekly_summaries_week_start", "weekly_summaries", ["week_start"], unique=True)
    op.create_index("ix_weekly_summaries_computed_at", "weekly_summaries", ["computed_at"])


def downgrade() -> None:
    op.drop_index("ix_weekly_summaries_computed_at", table_name="weekly_summaries")
    op.drop_index("ix_weekly_summaries_week_start", table_name="weekly_summaries")
    op.drop_table("weekly_summaries")
