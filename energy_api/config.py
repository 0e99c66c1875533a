"""
Service configuration from environment variables using Pydantic BaseSettings.

All configuration values are loaded from environment variables (or a .env
file) at startup. No hardcoded hosts or credentials; the defaults describe
the single-building deployment the dashboard was built for.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from datetime import date
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

STORAGE_BACKENDS = ("timescale", "influxdb", "elasticsearch")


class HttpSettings(BaseSettings):
    """Settings of the HTTP surface, readable without any backend configured.

    Attributes:
        CORS_ORIGINS: Origins allowed to call the API from a browser.
        LOG_LEVEL: Root log level.
        API_HOST: Bind address for the bundled uvicorn runner.
        API_PORT: Bind port for the bundled uvicorn runner.
    """

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class Settings(HttpSettings):
    """Energy report API settings loaded from environment variables.

    Attributes:
        STORAGE_BACKEND: Which storage adapter serves readings
            (timescale, influxdb or elasticsearch).
        DATABASE_URL: PostgreSQL/TimescaleDB connection string (asyncpg).
        INFLUX_URL: InfluxDB 2.x base URL.
        INFLUX_TOKEN: InfluxDB API token.
        INFLUX_ORG: InfluxDB organisation.
        INFLUX_BUCKET: InfluxDB bucket holding both measurements.
        INFLUX_DEVICE_TAG: Tag carrying the device MAC address.
        ES_NODE: Elasticsearch base URL.
        ES_USERNAME: Elasticsearch basic-auth user (optional).
        ES_PASSWORD: Elasticsearch basic-auth password (optional).
        ES_ENERGY_INDEX: Index of raw energy samples.
        ES_METERS_INDEX: Index of meter-to-room assignments.
        ES_DEVICE_FIELD: Keyword field holding the sample's MAC address.
        ES_TIME_FIELD: Timestamp field of energy samples.
        ES_VALUE_FIELD: Cumulative energy field of energy samples.
        ENERGY_MEASUREMENT: Measurement name of cumulative energy samples.
        ENERGY_FIELD: Field name of the cumulative energy value.
        MAPPING_MEASUREMENT: Measurement name of room assignments.
        MAPPING_FIELD: Field name of the room identifier.
        TIMEZONE: IANA name of the local timezone used for calendar periods.
        SUPPLY_MAC: MAC address of the grid supply meter (any textual form).
        YEAR_FLOOR: First local day covered by the yearly view.
        MAPPING_CACHE_TTL_S: Validity window of the device mapping cache.
        MAPPING_RETRY_BACKOFF_S: Wait after a failed mapping refresh before
            storage is queried again.
        QUERY_BATCH_SIZE: Max concurrent bucket queries per batch.
        REQUEST_TIMEOUT_S: Timeout for HTTP-based storage backends.

    HTTP settings (CORS_ORIGINS, LOG_LEVEL, API_HOST, API_PORT) are
    inherited from :class:`HttpSettings`.
    """

    STORAGE_BACKEND: str = "timescale"

    DATABASE_URL: str = ""

    INFLUX_URL: str = ""
    INFLUX_TOKEN: str = ""
    INFLUX_ORG: str = ""
    INFLUX_BUCKET: str = "energy"
    INFLUX_DEVICE_TAG: str = "mac_address"

    ES_NODE: str = ""
    ES_USERNAME: str = ""
    ES_PASSWORD: str = ""
    ES_ENERGY_INDEX: str = "pzem_idx"
    ES_METERS_INDEX: str = "meters_idx"
    ES_DEVICE_FIELD: str = "mac_address.keyword"
    ES_TIME_FIELD: str = "log_datetime"
    ES_VALUE_FIELD: str = "energy"

    ENERGY_MEASUREMENT: str = "pzem"
    ENERGY_FIELD: str = "energy"
    MAPPING_MEASUREMENT: str = "meters"
    MAPPING_FIELD: str = "room_id"

    TIMEZONE: str = "Asia/Shanghai"
    SUPPLY_MAC: str = "08:f9:e0:73:64:db"
    YEAR_FLOOR: date = date(2023, 1, 1)
    MAPPING_CACHE_TTL_S: int = 300
    MAPPING_RETRY_BACKOFF_S: float = 10.0
    QUERY_BATCH_SIZE: int = 10
    REQUEST_TIMEOUT_S: float = 30.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def storage_backend_must_be_known(cls, v: str) -> str:
        """Validate the backend name against the bundled adapters."""
        v = v.lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of: {', '.join(STORAGE_BACKENDS)}"
            )
        return v

    @field_validator("TIMEZONE")
    @classmethod
    def timezone_must_resolve(cls, v: str) -> str:
        """Validate that TIMEZONE names a zone known to zoneinfo."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE: {v!r}") from exc
        return v

    @field_validator("QUERY_BATCH_SIZE", "MAPPING_CACHE_TTL_S")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Validate batch size and cache TTL are at least 1."""
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @model_validator(mode="after")
    def _backend_connection_present(self) -> "Settings":
        """Require the connection setting of the selected backend."""
        required = {
            "timescale": ("DATABASE_URL", self.DATABASE_URL),
            "influxdb": ("INFLUX_URL", self.INFLUX_URL),
            "elasticsearch": ("ES_NODE", self.ES_NODE),
        }
        name, value = required[self.STORAGE_BACKEND]
        if not value:
            raise ValueError(
                f"{name} must be set when STORAGE_BACKEND={self.STORAGE_BACKEND}"
            )
        return self


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Returns:
        Settings: Validated configuration from environment variables.
    """
    return Settings()


def get_http_settings() -> HttpSettings:
    """Create and return the HTTP-surface settings only."""
    return HttpSettings()
