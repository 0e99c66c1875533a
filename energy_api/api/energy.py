"""
Energy report API endpoints for the dashboard.

Provides GET /api/data (bucketed consumption/supply report), GET /api/rooms
(known rooms) and GET /api/health (liveness).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging

from fastapi import APIRouter, HTTPException

from energy_api.api.deps import ReportService
from energy_api.api.schemas import EnergyDataResponse, RoomsResponse
from energy_api.exceptions import InvalidInputError, StorageQueryError
from energy_api.services.periods import parse_local_date, validate_granularity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["energy"])


@router.get("/health")
async def liveness() -> dict:
    """Liveness probe used by the dashboard to pick a reachable server."""
    return {"status": "ok", "message": "Server is healthy"}


@router.get(
    "/data",
    response_model=EnergyDataResponse,
    response_model_exclude_none=True,
)
async def get_energy_data(
    service: ReportService,
    period: str = "hour",
    room: str | None = None,
    date: str | None = None,
) -> EnergyDataResponse:
    """Return consumption and supply per calendar bucket.

    Args:
        service: Energy report service (injected).
        period: Bucket granularity: hour, day, month or year.
        room: Optional room id; all mapped rooms when omitted.
        date: Local date (YYYY-MM-DD) inside the requested span; today in
            the configured timezone when omitted.

    Returns:
        EnergyDataResponse: Ordered bucket rows plus metadata. A room with
        no mapped meters yields empty data and an explanatory message.

    Raises:
        HTTPException: 400 for an invalid period or date.
        HTTPException: 500 if a storage query fails.
    """
    logger.info("Energy data requested: period=%s room=%s date=%s", period, room, date)

    try:
        validate_granularity(period)
        local_date = parse_local_date(date, service.tz)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    room = room.strip() if room else None

    try:
        report = await service.build_report(period, local_date, room or None)
    except StorageQueryError as exc:
        logger.exception("Energy aggregation failed for period=%s room=%s", period, room)
        raise HTTPException(
            status_code=500,
            detail=f"Energy aggregation failed ({exc.__class__.__name__})",
        ) from exc

    return EnergyDataResponse.from_report(report)


@router.get("/rooms", response_model=RoomsResponse)
async def get_rooms(service: ReportService) -> RoomsResponse:
    """Return the room ids that have at least one mapped meter."""
    return RoomsResponse(rooms=await service.list_rooms())
