"""
InfluxDB 2.x storage adapter.

Runs Flux queries through the influxdb-client async API. Energy samples are
read from ENERGY_MEASUREMENT/ENERGY_FIELD and room assignments from
MAPPING_MEASUREMENT/MAPPING_FIELD; the device MAC is a tag on both.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-20: Wrap in-stream Flux errors in StorageQueryError

TODO:
- None
"""

import asyncio
import json
import logging
from collections.abc import Sequence
from datetime import datetime

import aiohttp
from influxdb_client.client.flux_csv_parser import FluxCsvParserException, FluxQueryException
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException

from energy_api.exceptions import StorageQueryError
from energy_api.storage.base import EnergyReading, RoomAssignment, room_id_text

logger = logging.getLogger(__name__)

# Flux errors reported inside the result stream surface as FluxQueryException.
_QUERY_ERRORS = (
    ApiException,
    FluxQueryException,
    FluxCsvParserException,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
)


def _flux_string(value: str) -> str:
    """Quote *value* as a Flux string literal."""
    return json.dumps(value)


def build_energy_flux(
    device_tag: str,
    device_ids: Sequence[str] | None = None,
) -> str:
    """Build the Flux query selecting raw energy samples.

    Bucket, time bounds, measurement and field are bound through query
    parameters; the device tag and device set are inlined as literals.
    """
    tag = _flux_string(device_tag)
    lines = [
        "from(bucket: params.bucket)",
        "  |> range(start: params.start, stop: params.stop)",
        "  |> filter(fn: (r) => r._measurement == params.measurement"
        " and r._field == params.field)",
    ]
    if device_ids is not None:
        device_set = json.dumps(list(device_ids))
        lines.append(
            f"  |> filter(fn: (r) => contains(value: r[{tag}], set: {device_set}))"
        )
    lines.append(f'  |> keep(columns: ["_time", "_value", {tag}])')
    return "\n".join(lines)


def build_mapping_flux(device_tag: str) -> str:
    """Build the Flux query selecting the latest room per device."""
    tag = _flux_string(device_tag)
    return "\n".join([
        "from(bucket: params.bucket)",
        "  |> range(start: 0)",
        "  |> filter(fn: (r) => r._measurement == params.measurement"
        " and r._field == params.field)",
        "  |> last()",
        f'  |> keep(columns: ["_time", "_value", {tag}])',
    ])


class InfluxStorage:
    """EnergyStorage backed by InfluxDB 2.x.

    Args:
        client: Async InfluxDB client.
        bucket: Bucket holding both measurements.
        device_tag: Tag carrying the device MAC address.
        energy_measurement: Measurement of cumulative energy samples.
        energy_field: Field of the cumulative energy value.
        mapping_measurement: Measurement of room assignments.
        mapping_field: Field of the room identifier.
    """

    def __init__(
        self,
        client: InfluxDBClientAsync,
        bucket: str,
        device_tag: str = "mac_address",
        energy_measurement: str = "pzem",
        energy_field: str = "energy",
        mapping_measurement: str = "meters",
        mapping_field: str = "room_id",
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._device_tag = device_tag
        self._energy_measurement = energy_measurement
        self._energy_field = energy_field
        self._mapping_measurement = mapping_measurement
        self._mapping_field = mapping_field

    async def _query(self, flux: str, params: dict) -> list:
        try:
            return await self._client.query_api().query(flux, params=params)
        except _QUERY_ERRORS as exc:
            raise StorageQueryError(f"Flux query failed: {exc.__class__.__name__}") from exc

    async def query_energy_samples(
        self,
        start: datetime,
        end: datetime,
        device_ids: Sequence[str] | None = None,
    ) -> list[EnergyReading]:
        """Return energy samples in ``[start, end)``, optionally per device."""
        tables = await self._query(
            build_energy_flux(self._device_tag, device_ids),
            {
                "bucket": self._bucket,
                "start": start,
                "stop": end,
                "measurement": self._energy_measurement,
                "field": self._energy_field,
            },
        )
        readings = []
        for table in tables:
            for record in table.records:
                device_id = record.values.get(self._device_tag)
                value = record.get_value()
                if device_id is None or value is None:
                    continue
                readings.append(
                    EnergyReading(
                        device_id=str(device_id),
                        value=float(value),
                        timestamp=record.get_time(),
                    )
                )
        return readings

    async def query_room_assignments(self) -> list[RoomAssignment]:
        """Return the last room_id value of every device series."""
        tables = await self._query(
            build_mapping_flux(self._device_tag),
            {
                "bucket": self._bucket,
                "measurement": self._mapping_measurement,
                "field": self._mapping_field,
            },
        )
        assignments = []
        for table in tables:
            for record in table.records:
                device_id = record.values.get(self._device_tag)
                room_id = record.get_value()
                if device_id is None or room_id is None:
                    continue
                assignments.append(
                    RoomAssignment(
                        device_id=str(device_id),
                        room_id=room_id_text(room_id),
                        timestamp=record.get_time(),
                    )
                )
        return assignments

    async def ping(self) -> bool:
        """Probe the InfluxDB /ping endpoint."""
        try:
            return await self._client.ping()
        except Exception:
            logger.warning("InfluxDB probe failed", exc_info=True)
            return False

    async def aclose(self) -> None:
        """Close the underlying client session."""
        await self._client.close()
