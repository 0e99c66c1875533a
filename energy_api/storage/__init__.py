"""
Storage adapters for raw energy readings and room assignments.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import httpx

from energy_api.config import Settings
from energy_api.storage.base import EnergyReading, EnergyStorage, RoomAssignment


def create_storage(settings: Settings) -> EnergyStorage:
    """Build the storage adapter selected by ``STORAGE_BACKEND``.

    Driver imports are deferred to the selected branch so an installation
    only needs the client library of the backend it uses.

    Args:
        settings: Application settings.

    Returns:
        EnergyStorage: A connected (lazily, for pooled drivers) adapter.
    """
    if settings.STORAGE_BACKEND == "influxdb":
        from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

        from energy_api.storage.influx import InfluxStorage

        client = InfluxDBClientAsync(
            url=settings.INFLUX_URL,
            token=settings.INFLUX_TOKEN,
            org=settings.INFLUX_ORG,
            timeout=int(settings.REQUEST_TIMEOUT_S * 1000),
        )
        return InfluxStorage(
            client,
            bucket=settings.INFLUX_BUCKET,
            device_tag=settings.INFLUX_DEVICE_TAG,
            energy_measurement=settings.ENERGY_MEASUREMENT,
            energy_field=settings.ENERGY_FIELD,
            mapping_measurement=settings.MAPPING_MEASUREMENT,
            mapping_field=settings.MAPPING_FIELD,
        )

    if settings.STORAGE_BACKEND == "elasticsearch":
        from energy_api.storage.elastic import ElasticStorage

        auth = None
        if settings.ES_USERNAME:
            auth = httpx.BasicAuth(settings.ES_USERNAME, settings.ES_PASSWORD)
        client = httpx.AsyncClient(
            base_url=settings.ES_NODE.rstrip("/"),
            auth=auth,
            timeout=settings.REQUEST_TIMEOUT_S,
        )
        return ElasticStorage(
            client,
            energy_index=settings.ES_ENERGY_INDEX,
            meters_index=settings.ES_METERS_INDEX,
            device_field=settings.ES_DEVICE_FIELD,
            time_field=settings.ES_TIME_FIELD,
            value_field=settings.ES_VALUE_FIELD,
        )

    from energy_api.db.session import create_engine, create_session_factory
    from energy_api.storage.timescale import TimescaleStorage

    engine = create_engine(settings.DATABASE_URL)
    return TimescaleStorage(create_session_factory(engine), engine=engine)


__all__ = ["EnergyReading", "EnergyStorage", "RoomAssignment", "create_storage"]
