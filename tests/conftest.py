"""
Shared test fixtures for the energy report API tests.

Provides an in-memory storage adapter, a report service built on it, and a
TestClient wired to that service through dependency overrides.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio
from collections.abc import Sequence
from datetime import UTC, date, datetime

import pytest
from fastapi.testclient import TestClient

from energy_api.api.deps import get_report_service
from energy_api.cache.mapping_cache import MappingCache
from energy_api.main import app
from energy_api.services.report import EnergyReportService
from energy_api.storage.base import EnergyReading, RoomAssignment

SUPPLY_MAC = "08:F9:E0:73:64:DB"
MAC_A = "AA:BB:CC:DD:EE:01"
MAC_B = "AA:BB:CC:DD:EE:02"

# Every Settings environment variable name, used for cleanup.
_ALL_ENV_VARS = (
    "STORAGE_BACKEND",
    "DATABASE_URL",
    "INFLUX_URL",
    "INFLUX_TOKEN",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
    "ES_NODE",
    "ES_USERNAME",
    "ES_PASSWORD",
    "TIMEZONE",
    "SUPPLY_MAC",
    "YEAR_FLOOR",
    "MAPPING_CACHE_TTL_S",
    "MAPPING_RETRY_BACKOFF_S",
    "QUERY_BATCH_SIZE",
    "CORS_ORIGINS",
    "LOG_LEVEL",
)


class FakeStorage:
    """In-memory EnergyStorage recording the queries it receives."""

    def __init__(
        self,
        samples: Sequence[EnergyReading] = (),
        assignments: Sequence[RoomAssignment] = (),
        delay: float = 0.0,
    ) -> None:
        self.samples = list(samples)
        self.assignments = list(assignments)
        self.delay = delay
        self.energy_calls: list[tuple[datetime, datetime, list[str] | None]] = []
        self.assignment_calls = 0
        self.energy_error: Exception | None = None
        self.assignment_error: Exception | None = None
        self.healthy = True
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def query_energy_samples(self, start, end, device_ids=None):
        self.energy_calls.append(
            (start, end, list(device_ids) if device_ids is not None else None)
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if self.energy_error is not None:
                raise self.energy_error
            return [
                s for s in self.samples
                if start <= s.timestamp < end
                and (device_ids is None or s.device_id in device_ids)
            ]
        finally:
            self.in_flight -= 1

    async def query_room_assignments(self):
        self.assignment_calls += 1
        await asyncio.sleep(self.delay)
        if self.assignment_error is not None:
            raise self.assignment_error
        return list(self.assignments)

    async def ping(self):
        return self.healthy

    async def aclose(self):
        self.closed = True


def utc(*args: int) -> datetime:
    """Shorthand for a UTC datetime."""
    return datetime(*args, tzinfo=UTC)


def reading(device_id: str, ts: datetime, value: float) -> EnergyReading:
    return EnergyReading(device_id=device_id, value=value, timestamp=ts)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Remove Settings env vars and isolate from .env files before each test."""
    for var in _ALL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def assignments() -> list[RoomAssignment]:
    """Two room meters and the supply meter (also listed in the meters table)."""
    return [
        RoomAssignment(device_id=MAC_A, room_id="1", timestamp=utc(2025, 1, 1)),
        RoomAssignment(device_id=MAC_B, room_id="2", timestamp=utc(2025, 1, 1)),
        RoomAssignment(device_id=SUPPLY_MAC, room_id="supply", timestamp=utc(2025, 1, 1)),
    ]


@pytest.fixture()
def samples() -> list[EnergyReading]:
    """Readings inside 2025-06-16 10:00-11:00 UTC (18:00 local, UTC+8)."""
    return [
        reading(MAC_A, utc(2025, 6, 16, 10, 0), 5.0),
        reading(MAC_A, utc(2025, 6, 16, 10, 59), 7.5),
        reading(SUPPLY_MAC, utc(2025, 6, 16, 10, 0), 50.0),
        reading(SUPPLY_MAC, utc(2025, 6, 16, 10, 59), 58.0),
    ]


@pytest.fixture()
def storage(samples, assignments) -> FakeStorage:
    return FakeStorage(samples=samples, assignments=assignments)


@pytest.fixture()
def service(storage: FakeStorage) -> EnergyReportService:
    """Report service over the fake storage with production defaults."""
    return EnergyReportService(
        storage,
        timezone="Asia/Shanghai",
        supply_mac=SUPPLY_MAC,
        year_floor=date(2023, 1, 1),
        mapping_cache=MappingCache(storage, ttl_s=300),
    )


@pytest.fixture()
def client(service: EnergyReportService) -> TestClient:
    """TestClient whose routes use the fake-storage report service."""
    app.dependency_overrides[get_report_service] = lambda: service

    yield TestClient(app)

    app.dependency_overrides.clear()
