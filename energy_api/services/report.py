"""
Energy report assembly and orchestration.

:class:`EnergyReportService` owns the storage adapter and the device
mapping cache and turns one request (granularity, optional room, local
date) into an ordered, gap-free report: one row per calendar bucket, even
when a bucket has no readings.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from energy_api.cache.mapping_cache import MappingCache
from energy_api.services.aggregation import (
    DEFAULT_BATCH_SIZE,
    EnergyTotals,
    aggregate_energy,
    fetch_periods,
)
from energy_api.services.periods import CalendarPeriod, generate_periods
from energy_api.storage.base import EnergyStorage

logger = logging.getLogger(__name__)

NO_METERS_MESSAGE = "No meters found for the selected room."


@dataclass(frozen=True)
class PeriodAggregate:
    """Aggregated energy of one bucket, ready for display."""

    label: str
    timestamp: datetime
    sort_key: int
    consumption_kwh: float
    supply_kwh: float
    utc_start: datetime
    utc_end: datetime


@dataclass
class ReportMeta:
    """Informational request metadata attached to a report."""

    period: str
    room: str | None
    local_date: date
    timezone: str
    total_records: int
    available_rooms: list[str] | None = None
    mac_mapping_count: int | None = None


@dataclass
class EnergyReport:
    """Ordered bucket rows plus metadata, and a message for empty rooms."""

    data: list[PeriodAggregate]
    meta: ReportMeta
    message: str | None = None


def assemble_report(
    periods: Sequence[CalendarPeriod],
    totals: Sequence[EnergyTotals],
) -> list[PeriodAggregate]:
    """Pair each bucket with its totals and order the rows by sort key."""
    rows = [
        PeriodAggregate(
            label=period.label,
            timestamp=period.representative_instant,
            sort_key=period.sort_key,
            consumption_kwh=total.consumption_kwh,
            supply_kwh=total.supply_kwh,
            utc_start=period.utc_start,
            utc_end=period.utc_end,
        )
        for period, total in zip(periods, totals, strict=True)
    ]
    return sorted(rows, key=lambda row: row.sort_key)


class EnergyReportService:
    """Builds energy reports from a storage backend.

    Args:
        storage: Storage adapter for readings and room assignments.
        timezone: IANA name of the local calendar timezone.
        supply_mac: Identifier of the grid supply meter.
        year_floor: First local day of the yearly view.
        mapping_cache: Device mapping cache; built over *storage* when
            omitted.
        batch_size: Concurrent bucket queries per batch.
    """

    def __init__(
        self,
        storage: EnergyStorage,
        timezone: str = "Asia/Shanghai",
        supply_mac: str | None = None,
        year_floor: date = date(2023, 1, 1),
        mapping_cache: MappingCache | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.storage = storage
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.supply_mac = supply_mac
        self.year_floor = year_floor
        self.mapping_cache = mapping_cache or MappingCache(storage)
        self.batch_size = batch_size

    async def list_rooms(self) -> list[str]:
        """Return the known room ids."""
        snapshot = await self.mapping_cache.get()
        return snapshot.rooms

    async def build_report(
        self,
        period: str,
        local_date: date,
        room: str | None = None,
    ) -> EnergyReport:
        """Build the report for one request.

        Args:
            period: Validated granularity (hour, day, month, year).
            local_date: Requested local date.
            room: Room id to restrict to, or None for all rooms.

        Returns:
            EnergyReport: One row per bucket. For a room without mapped
            devices, an empty report with an explanatory message.

        Raises:
            InvalidInputError: If *period* is not supported.
            StorageQueryError: If any bucket query fails.
        """
        snapshot = await self.mapping_cache.get()
        periods = generate_periods(period, local_date, self.tz, self.year_floor)

        device_filter = None
        if room is not None:
            devices = snapshot.devices_for_room(room)
            if not devices:
                logger.info("No meters mapped to room %s", room)
                return EnergyReport(
                    data=[],
                    meta=ReportMeta(
                        period=period,
                        room=room,
                        local_date=local_date,
                        timezone=self.timezone,
                        total_records=0,
                        available_rooms=snapshot.rooms,
                    ),
                    message=NO_METERS_MESSAGE,
                )
            device_filter = [device.display for device in devices]

        readings = await fetch_periods(
            self.storage, periods, device_filter, batch_size=self.batch_size,
        )
        totals = [
            aggregate_energy(bucket, snapshot, self.supply_mac, room)
            for bucket in readings
        ]
        rows = assemble_report(periods, totals)

        meta = ReportMeta(
            period=period,
            room=room,
            local_date=local_date,
            timezone=self.timezone,
            total_records=len(rows),
        )
        if room is None:
            meta.available_rooms = snapshot.rooms
            meta.mac_mapping_count = len(snapshot)
        return EnergyReport(data=rows, meta=meta)

    async def aclose(self) -> None:
        """Release the storage adapter."""
        await self.storage.aclose()
