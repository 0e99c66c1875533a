"""
In-process cache of the device-to-room mapping.

The mapping is loaded in bulk from storage and kept as an immutable
:class:`MappingSnapshot` for ``ttl_s`` seconds. A refresh replaces the
whole snapshot in one assignment, so concurrent readers see either the old
or the new snapshot, never a half-built one.

Refresh is best-effort: if the storage query fails, the error is logged
and the previous snapshot (or an empty one) is served instead. Storage is
not queried again until ``retry_backoff_s`` has passed, and callers that
hold an expired snapshot never wait behind an in-flight refresh.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-20: Serve stale snapshot during refresh; back off after failures

TODO:
- None
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from energy_api.services.mac import normalize_mac
from energy_api.storage.base import EnergyStorage, RoomAssignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceRef:
    """A mapped device in both identifier forms."""

    normalized: str
    display: str


def _room_sort_key(room_id: str) -> tuple[int, float, str]:
    """Order numeric room ids numerically, ahead of non-numeric ones."""
    try:
        return (0, float(room_id), room_id)
    except ValueError:
        return (1, 0.0, room_id)


@dataclass(frozen=True)
class MappingSnapshot:
    """Immutable device mapping as of one successful load.

    Attributes:
        mac_to_room: Normalized MAC -> room id.
        room_devices: Room id -> mapped devices of that room.
        loaded_at: Clock reading at load time, or None for the empty default.
    """

    mac_to_room: dict[str, str] = field(default_factory=dict)
    room_devices: dict[str, tuple[DeviceRef, ...]] = field(default_factory=dict)
    loaded_at: float | None = None

    def room_of(self, mac: str | None) -> str | None:
        """Return the room of *mac* (any textual form), or None if unmapped."""
        normalized = normalize_mac(mac)
        if normalized is None:
            return None
        return self.mac_to_room.get(normalized)

    def devices_for_room(self, room: str) -> tuple[DeviceRef, ...]:
        """Return the devices mapped to *room* (string comparison)."""
        return self.room_devices.get(str(room).strip(), ())

    @property
    def rooms(self) -> list[str]:
        """Known room ids, numeric ones in numeric order."""
        return sorted(self.room_devices, key=_room_sort_key)

    def __len__(self) -> int:
        return len(self.mac_to_room)


def build_snapshot(rows: list[RoomAssignment], loaded_at: float) -> MappingSnapshot:
    """Reduce raw assignment rows into a snapshot.

    The latest row per device wins: rows with a timestamp are ordered by
    it, rows without one keep storage order (later rows win). Rows whose
    identifier or room is empty are skipped.
    """
    latest: dict[str, tuple[datetime | None, int, RoomAssignment]] = {}
    for position, row in enumerate(rows):
        normalized = normalize_mac(row.device_id)
        if normalized is None or not row.room_id:
            continue
        current = latest.get(normalized)
        if current is not None:
            current_ts = current[0]
            if (
                row.timestamp is not None
                and current_ts is not None
                and row.timestamp < current_ts
            ):
                continue
        latest[normalized] = (row.timestamp, position, row)

    mac_to_room: dict[str, str] = {}
    grouped: dict[str, list[DeviceRef]] = {}
    for normalized, (_, _, row) in latest.items():
        mac_to_room[normalized] = row.room_id
        grouped.setdefault(row.room_id, []).append(
            DeviceRef(normalized=normalized, display=row.device_id.strip())
        )

    return MappingSnapshot(
        mac_to_room=mac_to_room,
        room_devices={room: tuple(devices) for room, devices in grouped.items()},
        loaded_at=loaded_at,
    )


class MappingCache:
    """TTL cache of the device mapping, owned by the report service.

    Args:
        storage: Storage adapter providing room assignments.
        ttl_s: Validity window of a loaded snapshot in seconds.
        retry_backoff_s: Delay after a failed refresh before storage is
            queried again; the previous snapshot is served meanwhile.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        storage: EnergyStorage,
        ttl_s: float = 300.0,
        retry_backoff_s: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._storage = storage
        self._ttl_s = ttl_s
        self._retry_backoff_s = retry_backoff_s
        self._clock = clock
        self._snapshot: MappingSnapshot | None = None
        self._retry_after: float | None = None
        self._lock = asyncio.Lock()

    def _is_fresh(self, snapshot: MappingSnapshot | None) -> bool:
        return (
            snapshot is not None
            and snapshot.loaded_at is not None
            and self._clock() - snapshot.loaded_at < self._ttl_s
        )

    def _backing_off(self) -> bool:
        return self._retry_after is not None and self._clock() < self._retry_after

    async def get(self) -> MappingSnapshot:
        """Return a valid snapshot, refreshing from storage when expired.

        Never raises on storage failure: the last known-good snapshot is
        returned, or an empty snapshot when nothing was ever loaded. While
        a refresh is in flight, callers holding an expired snapshot get it
        immediately instead of waiting for the refresh.
        """
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            return snapshot
        if self._backing_off():
            return snapshot if snapshot is not None else MappingSnapshot()
        if snapshot is not None and self._lock.locked():
            return snapshot

        async with self._lock:
            # Another caller may have refreshed (or failed to) while we waited.
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                return snapshot
            if self._backing_off():
                return snapshot if snapshot is not None else MappingSnapshot()

            try:
                rows = await self._storage.query_room_assignments()
            except Exception:
                self._retry_after = self._clock() + self._retry_backoff_s
                logger.warning(
                    "Device mapping refresh failed; serving %s",
                    "empty mapping" if snapshot is None else "last known-good mapping",
                    exc_info=True,
                )
                return snapshot if snapshot is not None else MappingSnapshot()

            fresh = build_snapshot(rows, loaded_at=self._clock())
            self._snapshot = fresh
            self._retry_after = None
            logger.info(
                "Device mapping refreshed: %d devices in %d rooms",
                len(fresh), len(fresh.room_devices),
            )
            return fresh

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next get() reloads from storage.

        The dropped snapshot is no longer available as a fallback, and any
        pending retry backoff is cleared.
        """
        self._snapshot = None
        self._retry_after = None
