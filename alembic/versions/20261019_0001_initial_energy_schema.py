"""Initial energy tier schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the four energy tables:
- hourly_energy: one averaged row per flush window
- daily_energy: one row per local date
- weekly_energy: one row per ISO year/week
- monthly_energy: one row per calendar year/month
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "hourly_energy",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("energy_kwh", sa.Numeric(12, 4), nullable=False, server_default="0"),
        sa.Column("voltage", sa.Numeric(10, 2), nullable=False),
        sa.Column("current", sa.Numeric(10, 2), nullable=False),
        sa.Column("power_factor", sa.Numeric(10, 2), nullable=False),
        sa.Column("frequency", sa.Numeric(10, 2), nullable=False),
        sa.Column("sample_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_hourly_energy_timestamp", "hourly_energy", ["timestamp"])

    op.create_table(
        "daily_energy",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("total_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("avg_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("max_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("min_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("hour_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("date", name="uq_daily_energy_date"),
    )

    op.create_table(
        "weekly_energy",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("week", sa.Integer, nullable=False),
        sa.Column("week_start", sa.Date, nullable=False),
        sa.Column("week_end", sa.Date, nullable=False),
        sa.Column("total_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("avg_daily_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("peak_date", sa.Date, nullable=True),
        sa.Column("peak_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("day_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("year", "week", name="uq_weekly_energy_year_week"),
    )

    op.create_table(
        "monthly_energy",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("total_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("avg_daily_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("peak_date", sa.Date, nullable=True),
        sa.Column("peak_energy", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("day_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("source", sa.String(10), nullable=False, server_default="daily"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("year", "month", name="uq_monthly_energy_year_month"),
    )


def downgrade() -> None:
    op.drop_table("monthly_energy")
    op.drop_table("weekly_energy")
    op.drop_table("daily_energy")
    op.drop_index("idx_hourly_energy_timestamp", table_name="hourly_energy")
    op.drop_table("hourly_energy")
