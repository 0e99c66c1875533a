"""
Storage adapter interface shared by all energy reading backends.

The aggregation core only talks to an :class:`EnergyStorage`; each backend
(TimescaleDB, InfluxDB, Elasticsearch) keeps its own query syntax behind
it and wraps driver errors in :class:`StorageQueryError`.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class EnergyReading:
    """One raw cumulative-energy sample.

    Attributes:
        device_id: Device MAC address as stored (display form).
        value: Cumulative energy in kWh.
        timestamp: Sample instant (timezone-aware, UTC).
    """

    device_id: str
    value: float
    timestamp: datetime


@dataclass(frozen=True)
class RoomAssignment:
    """One stored device-to-room assignment row."""

    device_id: str
    room_id: str
    timestamp: datetime | None = None


class EnergyStorage(Protocol):
    """Queryable collaborator returning raw readings and room assignments."""

    async def query_energy_samples(
        self,
        start: datetime,
        end: datetime,
        device_ids: Sequence[str] | None = None,
    ) -> list[EnergyReading]:
        """Return samples with ``start <= timestamp < end``.

        When *device_ids* is given, only samples of those (display-form)
        identifiers are returned.
        """
        ...

    async def query_room_assignments(self) -> list[RoomAssignment]:
        """Return room assignment rows; the latest row per device wins."""
        ...

    async def ping(self) -> bool:
        """Return True when the backend answers."""
        ...

    async def aclose(self) -> None:
        """Release connections held by the adapter."""
        ...


def room_id_text(value: object) -> str:
    """Render a stored room identifier as the string rooms are compared by.

    Numeric backends may return ``5.0`` for room ``5``; integral floats are
    rendered without the fractional part.
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
