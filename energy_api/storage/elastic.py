"""
Elasticsearch storage adapter over the REST API.

Energy samples live in ES_ENERGY_INDEX; instead of paging every raw
document, each bucket query asks Elasticsearch for a ``terms`` aggregation
per device with the first and last sample (``top_hits`` sorted on the time
field). Only the endpoints of a device's samples affect its delta, so the
two endpoint readings are returned in place of the full series.

Room assignments are read from ES_METERS_INDEX (``meter_mac``/``room_id``).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- Page the meters index with search_after once it can exceed 10000 docs.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

import httpx

from energy_api.exceptions import StorageQueryError
from energy_api.storage.base import EnergyReading, RoomAssignment, room_id_text

logger = logging.getLogger(__name__)

# Upper bound of distinct meters returned per bucket.
_MAX_DEVICES = 1000
_MAX_ASSIGNMENTS = 10000


def _parse_time(value: str | int | float) -> datetime:
    """Parse an Elasticsearch date value (ISO string or epoch millis)."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _es_time(value: datetime) -> str:
    """Format a UTC instant with millisecond precision for range filters."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z",
    )


def build_energy_query(
    start: datetime,
    end: datetime,
    time_field: str,
    value_field: str,
    device_field: str,
    device_ids: Sequence[str] | None = None,
) -> dict:
    """Build the first/last-sample-per-device search body for one bucket."""
    filters: list[dict] = [
        {"range": {time_field: {"gte": _es_time(start), "lt": _es_time(end)}}},
    ]
    if device_ids is not None:
        filters.append({"terms": {device_field: list(device_ids)}})

    def endpoint(order: str) -> dict:
        return {
            "top_hits": {
                "sort": [{time_field: {"order": order}}],
                "_source": [value_field, time_field],
                "size": 1,
            }
        }

    return {
        "query": {"bool": {"filter": filters}},
        "aggs": {
            "by_mac": {
                "terms": {"field": device_field, "size": _MAX_DEVICES},
                "aggs": {
                    "first_energy": endpoint("asc"),
                    "last_energy": endpoint("desc"),
                },
            }
        },
        "size": 0,
    }


class ElasticStorage:
    """EnergyStorage backed by Elasticsearch.

    Args:
        client: Async HTTP client whose base_url is the Elasticsearch node.
        energy_index: Index of raw energy samples.
        meters_index: Index of meter-to-room assignments.
        device_field: Keyword field holding the sample's MAC address.
        time_field: Timestamp field of energy samples.
        value_field: Cumulative energy field of energy samples.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        energy_index: str = "pzem_idx",
        meters_index: str = "meters_idx",
        device_field: str = "mac_address.keyword",
        time_field: str = "log_datetime",
        value_field: str = "energy",
    ) -> None:
        self._client = client
        self._energy_index = energy_index
        self._meters_index = meters_index
        self._device_field = device_field
        self._time_field = time_field
        self._value_field = value_field

    async def _search(self, index: str, body: dict) -> dict:
        try:
            response = await self._client.post(f"/{index}/_search", json=body)
            response.raise_for_status()
        except (httpx.HTTPStatusError, httpx.TransportError) as exc:
            raise StorageQueryError(f"search on {index} failed: {exc}") from exc
        return response.json()

    def _endpoint_reading(self, device_id: str, agg: dict) -> EnergyReading | None:
        hits = agg.get("hits", {}).get("hits", [])
        if not hits:
            return None
        source = hits[0].get("_source", {})
        value = source.get(self._value_field)
        ts = source.get(self._time_field)
        if value is None or ts is None:
            return None
        return EnergyReading(
            device_id=device_id, value=float(value), timestamp=_parse_time(ts),
        )

    async def query_energy_samples(
        self,
        start: datetime,
        end: datetime,
        device_ids: Sequence[str] | None = None,
    ) -> list[EnergyReading]:
        """Return the first and last sample of each device in ``[start, end)``.

        A device with a single sample in the range yields one reading.
        """
        body = build_energy_query(
            start, end,
            self._time_field, self._value_field, self._device_field,
            device_ids,
        )
        payload = await self._search(self._energy_index, body)
        buckets = payload.get("aggregations", {}).get("by_mac", {}).get("buckets", [])

        readings = []
        for bucket in buckets:
            device_id = str(bucket["key"])
            first = self._endpoint_reading(device_id, bucket.get("first_energy", {}))
            if first is None:
                continue
            readings.append(first)
            if bucket.get("doc_count", 0) < 2:
                continue
            last = self._endpoint_reading(device_id, bucket.get("last_energy", {}))
            if last is not None:
                readings.append(last)
        return readings

    async def query_room_assignments(self) -> list[RoomAssignment]:
        """Return every meter document that carries both a MAC and a room."""
        payload = await self._search(
            self._meters_index,
            {
                "query": {"match_all": {}},
                "size": _MAX_ASSIGNMENTS,
                "_source": ["meter_mac", "room_id"],
            },
        )
        assignments = []
        for hit in payload.get("hits", {}).get("hits", []):
            source = hit.get("_source", {})
            meter_mac = source.get("meter_mac")
            room_id = source.get("room_id")
            if not meter_mac or room_id in (None, ""):
                continue
            assignments.append(
                RoomAssignment(device_id=str(meter_mac), room_id=room_id_text(room_id))
            )
        return assignments

    async def ping(self) -> bool:
        """Probe the cluster root endpoint."""
        try:
            response = await self._client.get("/")
            return response.is_success
        except httpx.HTTPError:
            logger.warning("Elasticsearch probe failed", exc_info=True)
            return False

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
