"""
Tests for the device mapping cache.

Validates TTL behaviour with an injected clock, last-value-wins reduction,
identifier normalization, the reverse room index, fail-open refresh and
single-flight refresh under concurrent callers.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-20: Stale reads during refresh and retry backoff after failures

TODO:
- None
"""

import asyncio

import pytest
from conftest import MAC_A, MAC_B, SUPPLY_MAC, FakeStorage, utc

from energy_api.cache.mapping_cache import MappingCache, MappingSnapshot, build_snapshot
from energy_api.exceptions import StorageQueryError
from energy_api.storage.base import RoomAssignment


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# build_snapshot
# ---------------------------------------------------------------------------


class TestBuildSnapshot:
    """Raw assignment rows are reduced into a forward map and room index."""

    def test_keys_are_normalized(self, assignments) -> None:
        snapshot = build_snapshot(assignments, loaded_at=0.0)

        assert snapshot.mac_to_room == {
            "aabbccddee01": "1",
            "aabbccddee02": "2",
            "08f9e07364db": "supply",
        }

    def test_room_index_keeps_display_form(self, assignments) -> None:
        snapshot = build_snapshot(assignments, loaded_at=0.0)

        (device,) = snapshot.devices_for_room("1")
        assert device.normalized == "aabbccddee01"
        assert device.display == MAC_A

    def test_latest_row_per_device_wins(self) -> None:
        rows = [
            RoomAssignment(device_id=MAC_A, room_id="3", timestamp=utc(2025, 5, 1)),
            RoomAssignment(device_id=MAC_A.lower(), room_id="1", timestamp=utc(2025, 1, 1)),
        ]
        snapshot = build_snapshot(rows, loaded_at=0.0)

        assert snapshot.mac_to_room == {"aabbccddee01": "3"}
        assert snapshot.devices_for_room("1") == ()
        assert len(snapshot.devices_for_room("3")) == 1

    def test_untimestamped_rows_later_wins(self) -> None:
        rows = [
            RoomAssignment(device_id=MAC_A, room_id="1"),
            RoomAssignment(device_id=MAC_A, room_id="4"),
        ]

        assert build_snapshot(rows, loaded_at=0.0).room_of(MAC_A) == "4"

    def test_rows_without_identifier_or_room_are_skipped(self) -> None:
        rows = [
            RoomAssignment(device_id="", room_id="1"),
            RoomAssignment(device_id=MAC_B, room_id=""),
            RoomAssignment(device_id=MAC_A, room_id="1"),
        ]
        snapshot = build_snapshot(rows, loaded_at=0.0)

        assert len(snapshot) == 1

    def test_rooms_sorted_numerically(self) -> None:
        rows = [
            RoomAssignment(device_id=f"00:00:00:00:00:0{i}", room_id=room)
            for i, room in enumerate(["10", "2", "lab", "1"])
        ]

        assert build_snapshot(rows, loaded_at=0.0).rooms == ["1", "2", "10", "lab"]

    def test_room_lookup_is_string_compared(self, assignments) -> None:
        snapshot = build_snapshot(assignments, loaded_at=0.0)

        assert snapshot.devices_for_room(" 2 ") == snapshot.devices_for_room("2")
        assert snapshot.room_of("aa-bb-cc-dd-ee-02") == "2"
        assert snapshot.room_of(None) is None


# ---------------------------------------------------------------------------
# MappingCache
# ---------------------------------------------------------------------------


class TestMappingCacheTtl:
    """Snapshots are reused inside the TTL and reloaded after it."""

    @pytest.mark.asyncio()
    async def test_first_get_loads_from_storage(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)

        snapshot = await cache.get()

        assert storage.assignment_calls == 1
        assert len(snapshot) == 3
        assert snapshot.loaded_at == clock.now

    @pytest.mark.asyncio()
    async def test_valid_cache_skips_storage(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)
        first = await cache.get()
        clock.now += 299

        second = await cache.get()

        assert storage.assignment_calls == 1
        assert second is first

    @pytest.mark.asyncio()
    async def test_expired_cache_reloads(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)
        await cache.get()
        clock.now += 300
        storage.assignments.append(
            RoomAssignment(device_id="aa:bb:cc:dd:ee:09", room_id="9")
        )

        snapshot = await cache.get()

        assert storage.assignment_calls == 2
        assert snapshot.room_of("aabbccddee09") == "9"

    @pytest.mark.asyncio()
    async def test_invalidate_forces_reload(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)
        await cache.get()

        cache.invalidate()
        await cache.get()

        assert storage.assignment_calls == 2


class TestMappingCacheFailOpen:
    """Refresh failures never reach the caller."""

    @pytest.mark.asyncio()
    async def test_failure_without_previous_returns_empty(self, clock) -> None:
        storage = FakeStorage()
        storage.assignment_error = StorageQueryError("unreachable")
        cache = MappingCache(storage, ttl_s=300, clock=clock)

        snapshot = await cache.get()

        assert isinstance(snapshot, MappingSnapshot)
        assert len(snapshot) == 0
        assert snapshot.rooms == []

    @pytest.mark.asyncio()
    async def test_failure_serves_last_known_good(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)
        first = await cache.get()
        clock.now += 600
        storage.assignment_error = StorageQueryError("unreachable")

        snapshot = await cache.get()

        assert snapshot is first
        assert snapshot.room_of(SUPPLY_MAC) == "supply"

    @pytest.mark.asyncio()
    async def test_failure_is_logged(self, storage, clock, caplog) -> None:
        storage.assignment_error = RuntimeError("boom")
        cache = MappingCache(storage, ttl_s=300, clock=clock)

        with caplog.at_level("WARNING"):
            await cache.get()

        assert "Device mapping refresh failed" in caplog.text

    @pytest.mark.asyncio()
    async def test_retries_after_backoff(self, storage, clock) -> None:
        storage.assignment_error = StorageQueryError("unreachable")
        cache = MappingCache(storage, ttl_s=300, retry_backoff_s=10, clock=clock)
        await cache.get()
        storage.assignment_error = None
        clock.now += 10

        snapshot = await cache.get()

        assert storage.assignment_calls == 2
        assert len(snapshot) == 3

    @pytest.mark.asyncio()
    async def test_no_retry_during_backoff(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, retry_backoff_s=10, clock=clock)
        first = await cache.get()
        clock.now += 300
        storage.assignment_error = StorageQueryError("unreachable")
        await cache.get()
        clock.now += 9

        snapshot = await cache.get()

        assert storage.assignment_calls == 2
        assert snapshot is first

    @pytest.mark.asyncio()
    async def test_invalidate_clears_backoff(self, storage, clock) -> None:
        storage.assignment_error = StorageQueryError("unreachable")
        cache = MappingCache(storage, ttl_s=300, retry_backoff_s=10, clock=clock)
        await cache.get()
        storage.assignment_error = None

        cache.invalidate()
        snapshot = await cache.get()

        assert storage.assignment_calls == 2
        assert len(snapshot) == 3


class TestMappingCacheConcurrency:
    """Concurrent callers share one refresh."""

    @pytest.mark.asyncio()
    async def test_concurrent_gets_query_storage_once(self, assignments, clock) -> None:
        storage = FakeStorage(assignments=assignments, delay=0.01)
        cache = MappingCache(storage, ttl_s=300, clock=clock)

        snapshots = await asyncio.gather(*(cache.get() for _ in range(5)))

        assert storage.assignment_calls == 1
        assert all(s is snapshots[0] for s in snapshots)

    @pytest.mark.asyncio()
    async def test_stale_snapshot_served_while_refresh_in_flight(self, storage, clock) -> None:
        cache = MappingCache(storage, ttl_s=300, clock=clock)
        first = await cache.get()
        clock.now += 301
        storage.delay = 0.2
        storage.assignment_error = OSError("mapping store down")

        snapshots = await asyncio.gather(*(cache.get() for _ in range(5)))

        assert storage.assignment_calls == 2
        assert all(s is first for s in snapshots)

    @pytest.mark.asyncio()
    async def test_waiters_without_snapshot_do_not_retry_failed_load(
        self, assignments, clock,
    ) -> None:
        storage = FakeStorage(assignments=assignments, delay=0.01)
        storage.assignment_error = StorageQueryError("unreachable")
        cache = MappingCache(storage, ttl_s=300, clock=clock)

        snapshots = await asyncio.gather(*(cache.get() for _ in range(5)))

        assert storage.assignment_calls == 1
        assert all(len(s) == 0 for s in snapshots)
