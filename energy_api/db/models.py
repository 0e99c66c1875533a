"""
SQLAlchemy ORM models for the TimescaleDB storage backend.

Defines the raw cumulative-energy sample table and the meter-to-room
assignment table read by the TimescaleDB adapter.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import datetime

from sqlalchemy import DateTime, Double, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models."""

    pass


class EnergySample(Base):
    """Cumulative energy sample reported by a room or supply meter.

    Stored in the energy_readings hypertable with a composite primary key
    on (device_id, ts).

    Attributes:
        device_id: Meter MAC address as reported (display form).
        ts: Measurement timestamp in UTC.
        energy: Cumulative energy counter in kWh.
    """

    __tablename__ = "energy_readings"

    device_id: Mapped[str] = mapped_column(
        Text, primary_key=True, nullable=False,
    )
    ts: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False,
    )
    energy: Mapped[float] = mapped_column(Double, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of the EnergySample."""
        return (
            f"EnergySample(device_id={self.device_id!r}, ts={self.ts!r}, "
            f"energy={self.energy!r})"
        )


class MeterAssignment(Base):
    """Room assignment of a meter, valid from ``ts`` onwards.

    Rows are append-only; the most recent row per device is authoritative.
    """

    __tablename__ = "meter_assignments"

    device_id: Mapped[str] = mapped_column(
        Text, primary_key=True, nullable=False,
    )
    ts: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False,
    )
    room_id: Mapped[str] = mapped_column(Text, nullable=False)
