"""
FastAPI application entry point for the energy report API.

The lifespan loads settings, configures logging and builds the report
service (storage adapter plus mapping cache) for the application instance.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from energy_api.api.energy import router as energy_router
from energy_api.api.health import router as health_router
from energy_api.cache.mapping_cache import MappingCache
from energy_api.config import Settings, get_http_settings, get_settings
from energy_api.logging_config import setup_logging
from energy_api.services.report import EnergyReportService
from energy_api.storage import create_storage

logger = logging.getLogger(__name__)


def create_report_service(settings: Settings) -> EnergyReportService:
    """Build the report service described by *settings*."""
    storage = create_storage(settings)
    return EnergyReportService(
        storage,
        timezone=settings.TIMEZONE,
        supply_mac=settings.SUPPLY_MAC,
        year_floor=settings.YEAR_FLOOR,
        mapping_cache=MappingCache(
            storage,
            ttl_s=settings.MAPPING_CACHE_TTL_S,
            retry_backoff_s=settings.MAPPING_RETRY_BACKOFF_S,
        ),
        batch_size=settings.QUERY_BATCH_SIZE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the report service, close it on shutdown."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    service = create_report_service(settings)
    app.state.report_service = service
    logger.info(
        "Energy report API started: backend=%s timezone=%s",
        settings.STORAGE_BACKEND, settings.TIMEZONE,
    )
    try:
        yield
    finally:
        await service.aclose()
        app.state.report_service = None
        logger.info("Energy report API stopped")


app = FastAPI(
    title="Room Energy Report API",
    description="Room and supply energy consumption per calendar period.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_http_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(energy_router)
app.include_router(health_router)


@app.get("/")
async def root() -> dict:
    """Root endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
