"""
FastAPI dependency injection providers.

The report service is created once per application in the lifespan and
stored on ``app.state``; routes receive it through :data:`ReportService`.
Tests swap it out with ``app.dependency_overrides[get_report_service]``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from energy_api.services.report import EnergyReportService


def get_report_service(request: Request) -> EnergyReportService:
    """FastAPI dependency: the application's report service.

    Raises:
        HTTPException: 503 if the service was not initialized at startup.
    """
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Energy report service is not initialized.",
        )
    return service


# Annotated dependency for route signatures:
#   async def my_endpoint(service: ReportService): ...
ReportService = Annotated[EnergyReportService, Depends(get_report_service)]
