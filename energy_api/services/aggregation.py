"""
Delta-based energy aggregation per calendar bucket.

Meters report a cumulative energy counter. The energy used by a device in a
bucket is its last reading minus its first reading in that bucket; the
deltas are then split into grid supply (the configured supply meter) and
room consumption (meters mapped to a room).

Bucket queries are issued in fixed-size batches: all buckets of a batch run
concurrently, batches run one after another. A failed bucket query fails
the whole report and cancels the remaining queries of its batch.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-20: Cancel sibling bucket queries when one fails

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from energy_api.cache.mapping_cache import MappingSnapshot
from energy_api.services.mac import normalize_mac
from energy_api.services.periods import CalendarPeriod
from energy_api.storage.base import EnergyReading, EnergyStorage

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass(frozen=True)
class EnergyTotals:
    """Consumption and supply of one bucket, in kWh."""

    consumption_kwh: float = 0.0
    supply_kwh: float = 0.0


async def fetch_periods(
    storage: EnergyStorage,
    periods: Sequence[CalendarPeriod],
    device_filter: Sequence[str] | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[list[EnergyReading]]:
    """Query raw readings for every bucket, in bounded-concurrency batches.

    Args:
        storage: Storage adapter to query.
        periods: Buckets to query, in order.
        device_filter: Display-form identifiers to restrict to, or None
            for every device.
        batch_size: Number of bucket queries in flight at once.

    Returns:
        One list of readings per bucket, in the order of *periods*.

    Raises:
        StorageQueryError: If any bucket query fails.
    """
    results: list[list[EnergyReading]] = []
    for offset in range(0, len(periods), batch_size):
        batch = periods[offset:offset + batch_size]
        tasks = [
            asyncio.create_task(
                storage.query_energy_samples(
                    period.utc_start, period.utc_end, device_filter,
                )
            )
            for period in batch
        ]
        try:
            batch_results = await asyncio.gather(*tasks)
        except BaseException:
            # One failed bucket fails the report; stop the rest of the batch.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        results.extend(batch_results)
    return results


def _group_by_device(readings: Sequence[EnergyReading]) -> dict[str, list[EnergyReading]]:
    groups: dict[str, list[EnergyReading]] = {}
    for reading in readings:
        normalized = normalize_mac(reading.device_id)
        if normalized is None:
            continue
        groups.setdefault(normalized, []).append(reading)
    return groups


def aggregate_energy(
    readings: Sequence[EnergyReading],
    mapping: MappingSnapshot,
    supply_mac: str | None,
    room: str | None = None,
) -> EnergyTotals:
    """Compute consumption and supply of one bucket from raw readings.

    Per device: readings are sorted by time and the delta is last minus
    first; intermediate values are ignored. Devices with fewer than two
    readings contribute nothing. Classification, first match wins:

    1. the supply meter adds to supply, whatever its mapping says;
    2. with a room filter, devices mapped to that room add to consumption;
    3. without one, every mapped device adds to consumption.

    Unmapped devices are ignored. Each total is rounded to 3 decimals and
    clamped at zero separately; individual negative deltas are not clamped.

    Args:
        readings: Raw readings of the bucket.
        mapping: Device mapping snapshot.
        supply_mac: Supply meter identifier (any textual form).
        room: Room id to restrict consumption to, or None for all rooms.

    Returns:
        EnergyTotals: The bucket's consumption and supply.
    """
    supply_normalized = normalize_mac(supply_mac)
    room_filter = str(room).strip() if room is not None else None

    consumption = 0.0
    supply = 0.0
    for device, group in _group_by_device(readings).items():
        if len(group) < 2:
            logger.debug("Skipping %s: %d reading(s) in bucket", device, len(group))
            continue

        ordered = sorted(group, key=lambda r: r.timestamp)
        delta = ordered[-1].value - ordered[0].value

        if device == supply_normalized:
            supply += delta
            continue

        mapped_room = mapping.room_of(device)
        if mapped_room is None:
            continue
        if room_filter is None or mapped_room == room_filter:
            consumption += delta

    return EnergyTotals(
        consumption_kwh=max(0.0, round(consumption, 3)),
        supply_kwh=max(0.0, round(supply, 3)),
    )
