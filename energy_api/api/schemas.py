"""
Pydantic response schemas for the energy report API.

Field names are snake_case in Python and serialized with the camelCase
aliases the dashboard reads (``fullTimestamp``, ``totalRecords``, ...).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from energy_api.services.report import EnergyReport, PeriodAggregate, ReportMeta


class EnergyDataPoint(BaseModel):
    """One bucket of the energy chart.

    Attributes:
        timestamp: Display label of the bucket (e.g. "09:00", "Jun 16").
        full_timestamp: Local start instant of the bucket.
        period: Calendar sort key (hour, day of month, 0-based month, year).
        consumption: Room consumption in kWh.
        supply: Grid supply in kWh.
        utc_start: Inclusive UTC query bound.
        utc_end: Exclusive UTC query bound.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    full_timestamp: datetime = Field(alias="fullTimestamp")
    period: int
    consumption: float
    supply: float
    utc_start: datetime = Field(alias="utcStart")
    utc_end: datetime = Field(alias="utcEnd")

    @classmethod
    def from_aggregate(cls, row: PeriodAggregate) -> "EnergyDataPoint":
        return cls(
            timestamp=row.label,
            full_timestamp=row.timestamp,
            period=row.sort_key,
            consumption=row.consumption_kwh,
            supply=row.supply_kwh,
            utc_start=row.utc_start,
            utc_end=row.utc_end,
        )


class EnergyMeta(BaseModel):
    """Request metadata; informational only."""

    model_config = ConfigDict(populate_by_name=True)

    period: str
    room: str | None = None
    local_date: date = Field(alias="date")
    timezone: str
    total_records: int = Field(alias="totalRecords")
    available_rooms: list[str] | None = Field(default=None, alias="availableRooms")
    mac_mapping_count: int | None = Field(default=None, alias="macMappingCount")

    @classmethod
    def from_meta(cls, meta: ReportMeta) -> "EnergyMeta":
        return cls(
            period=meta.period,
            room=meta.room,
            local_date=meta.local_date,
            timezone=meta.timezone,
            total_records=meta.total_records,
            available_rooms=meta.available_rooms,
            mac_mapping_count=meta.mac_mapping_count,
        )


class EnergyDataResponse(BaseModel):
    """Response of GET /api/data."""

    data: list[EnergyDataPoint]
    meta: EnergyMeta
    message: str | None = None

    @classmethod
    def from_report(cls, report: EnergyReport) -> "EnergyDataResponse":
        return cls(
            data=[EnergyDataPoint.from_aggregate(row) for row in report.data],
            meta=EnergyMeta.from_meta(report.meta),
            message=report.message,
        )


class RoomsResponse(BaseModel):
    """Response of GET /api/rooms."""

    rooms: list[str]
