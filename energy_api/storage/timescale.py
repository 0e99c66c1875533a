"""
TimescaleDB storage adapter.

Reads raw samples from the energy_readings hypertable and the latest room
assignment per device from meter_assignments, through an async SQLAlchemy
session factory.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from energy_api.db.models import EnergySample
from energy_api.exceptions import StorageQueryError
from energy_api.storage.base import EnergyReading, RoomAssignment, room_id_text

logger = logging.getLogger(__name__)

# Latest assignment per device; DISTINCT ON keeps the first row of each
# device_id group, so ordering by ts DESC keeps the most recent one.
_LATEST_ASSIGNMENTS_SQL = text(
    "SELECT DISTINCT ON (device_id) device_id, room_id, ts "
    "FROM meter_assignments "
    "ORDER BY device_id, ts DESC"
)


class TimescaleStorage:
    """EnergyStorage backed by PostgreSQL/TimescaleDB.

    Args:
        session_factory: Factory yielding AsyncSession instances.
        engine: Engine to dispose on :meth:`aclose`, if owned by the adapter.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    async def query_energy_samples(
        self,
        start: datetime,
        end: datetime,
        device_ids: Sequence[str] | None = None,
    ) -> list[EnergyReading]:
        """Return energy samples in ``[start, end)``, optionally per device."""
        stmt = select(
            EnergySample.device_id, EnergySample.energy, EnergySample.ts,
        ).where(EnergySample.ts >= start, EnergySample.ts < end)
        if device_ids is not None:
            stmt = stmt.where(EnergySample.device_id.in_(list(device_ids)))

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageQueryError(
                f"energy_readings query failed for {start.isoformat()}"
            ) from exc

        return [
            EnergyReading(
                device_id=row.device_id,
                value=float(row.energy),
                timestamp=row.ts,
            )
            for row in rows
        ]

    async def query_room_assignments(self) -> list[RoomAssignment]:
        """Return the latest room assignment of every device."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(_LATEST_ASSIGNMENTS_SQL)
                rows = result.all()
        except (SQLAlchemyError, OSError) as exc:
            raise StorageQueryError("meter_assignments query failed") from exc

        return [
            RoomAssignment(
                device_id=row.device_id,
                room_id=room_id_text(row.room_id),
                timestamp=row.ts,
            )
            for row in rows
        ]

    async def ping(self) -> bool:
        """Probe the database with SELECT 1."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.warning("TimescaleDB probe failed", exc_info=True)
            return False

    async def aclose(self) -> None:
        """Dispose the owned engine, if any."""
        if self._engine is not None:
            await self._engine.dispose()
