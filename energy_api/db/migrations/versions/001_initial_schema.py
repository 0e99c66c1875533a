"""
Initial schema: energy_readings hypertable and meter_assignments table.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the TimescaleDB extension, both tables and the hypertable.

    Steps:
        1. Enable timescaledb extension (idempotent).
        2. Create energy_readings with composite PK (device_id, ts).
        3. Convert energy_readings to a hypertable on ts.
        4. Create meter_assignments with composite PK (device_id, ts).
    """
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb")

    op.create_table(
        "energy_readings",
        sa.Column("device_id", sa.Text(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("energy", sa.Double(), nullable=False),
        sa.PrimaryKeyConstraint("device_id", "ts"),
    )
    op.execute(
        "SELECT create_hypertable('energy_readings', 'ts', if_not_exists => TRUE)"
    )

    op.create_table(
        "meter_assignments",
        sa.Column("device_id", sa.Text(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("room_id", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("device_id", "ts"),
    )


def downgrade() -> None:
    """Drop both tables (the timescaledb extension is left in place)."""
    op.drop_table("meter_assignments")
    op.drop_table("energy_readings")
