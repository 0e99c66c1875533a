"""
Unit tests for the API settings.

Tests verify:
- Defaults for the single-building deployment.
- The connection setting of the selected backend is required.
- Backend names, timezones and numeric limits are validated.
- HTTP settings load without any backend configured.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from datetime import date

import pytest
from pydantic import ValidationError

from energy_api.config import HttpSettings, Settings

DB_URL = "postgresql+asyncpg://u:p@localhost/energy"


class TestSettingsDefaults:
    """Optional variables fall back to deployment defaults."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", DB_URL)

        settings = Settings()

        assert settings.STORAGE_BACKEND == "timescale"
        assert settings.TIMEZONE == "Asia/Shanghai"
        assert settings.SUPPLY_MAC == "08:f9:e0:73:64:db"
        assert settings.YEAR_FLOOR == date(2023, 1, 1)
        assert settings.MAPPING_CACHE_TTL_S == 300
        assert settings.MAPPING_RETRY_BACKOFF_S == 10.0
        assert settings.QUERY_BATCH_SIZE == 10
        assert settings.API_PORT == 3001

    def test_loads_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "InfluxDB")
        monkeypatch.setenv("INFLUX_URL", "http://influx:8086")
        monkeypatch.setenv("TIMEZONE", "Europe/Brussels")
        monkeypatch.setenv("YEAR_FLOOR", "2021-01-01")
        monkeypatch.setenv("QUERY_BATCH_SIZE", "4")

        settings = Settings()

        assert settings.STORAGE_BACKEND == "influxdb"
        assert settings.INFLUX_URL == "http://influx:8086"
        assert settings.TIMEZONE == "Europe/Brussels"
        assert settings.YEAR_FLOOR == date(2021, 1, 1)
        assert settings.QUERY_BATCH_SIZE == 4


class TestSettingsValidation:
    """Invalid configuration is rejected at load time."""

    @pytest.mark.parametrize(
        ("backend", "missing"),
        [
            ("timescale", "DATABASE_URL"),
            ("influxdb", "INFLUX_URL"),
            ("elasticsearch", "ES_NODE"),
        ],
    )
    def test_backend_connection_required(
        self, monkeypatch: pytest.MonkeyPatch, backend: str, missing: str,
    ) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", backend)

        with pytest.raises(ValidationError, match=missing):
            Settings()

    def test_unknown_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "mongodb")

        with pytest.raises(ValidationError, match="STORAGE_BACKEND must be one of"):
            Settings()

    def test_unknown_timezone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", DB_URL)
        monkeypatch.setenv("TIMEZONE", "Mars/Olympus_Mons")

        with pytest.raises(ValidationError, match="Unknown TIMEZONE"):
            Settings()

    @pytest.mark.parametrize("var", ["QUERY_BATCH_SIZE", "MAPPING_CACHE_TTL_S"])
    def test_non_positive_rejected(self, monkeypatch: pytest.MonkeyPatch, var: str) -> None:
        monkeypatch.setenv("DATABASE_URL", DB_URL)
        monkeypatch.setenv(var, "0")

        with pytest.raises(ValidationError):
            Settings()


class TestHttpSettings:
    """HTTP settings never require backend configuration."""

    def test_loads_without_backend(self) -> None:
        settings = HttpSettings()

        assert "http://localhost:5173" in settings.CORS_ORIGINS
        assert settings.LOG_LEVEL == "INFO"

    def test_cors_origins_from_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", '["https://dashboard.example.com"]')

        assert HttpSettings().CORS_ORIGINS == ["https://dashboard.example.com"]
