"""
Health check endpoint that probes storage connectivity.

Returns HTTP 200 when the configured storage backend answers, or HTTP 503
when it does not.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from energy_api.api.deps import ReportService
from energy_api.services.report import EnergyReportService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_storage(service: EnergyReportService) -> str:
    """Probe the storage backend.

    Returns:
        "ok" if the backend answers, "error" otherwise.
    """
    try:
        return "ok" if await service.storage.ping() else "error"
    except Exception:
        logger.warning("Health check: storage probe failed", exc_info=True)
        return "error"


@router.get("/health")
async def health_check(service: ReportService) -> JSONResponse:
    """Readiness check probing the storage backend.

    Returns:
        JSONResponse: JSON with status and storage fields.
            HTTP 200 when storage is ok, HTTP 503 when degraded.
    """
    storage_status = await _check_storage(service)
    ok = storage_status == "ok"

    return JSONResponse(
        status_code=200 if ok else 503,
        content={
            "status": "ok" if ok else "degraded",
            "storage": storage_status,
        },
    )
