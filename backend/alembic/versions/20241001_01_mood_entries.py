"""Create mood entries and settings tables.

Revision ID: 20241001_01
Revises:
Create Date: 2024-10-01 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20241001_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "mood_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("mood", sa.String(length=16), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("tags", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("weather_temp_c", sa.Float(), nullable=True),
        sa.Column("weather_humidity", sa.Float(), nullable=True),
        sa.Column("weather_condition", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_mood_entries_day", "mood_entries", ["day"], unique=True)
    op.create_index("ix_mood_entries_mood", "mood_entries", ["mood"])
    op.create_index("ix_mood_entries_city", "mood_entries", ["city"])

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_settings_key", "settings", ["key"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_settings_key", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_mood_entries_city", table_name="mood_entries")
    op.drop_index("ix_mood_entries_mood", table_name="mood_entries")
    op.drop_index("ix_mood_entries_day", table_name="mood_entries")
    op.drop_table("mood_entries")
