"""Energy and CO2e estimate API."""
from __future__ import annotations

from fastapi import APIRouter, Query, Request

from hamdash import config
from hamdash.routers.analytics import MAX_DAYS
from hamdash.routers.cache import current_snapshot, run_service
from hamdash.services.carbon import (
    calculate_carbon,
    calculate_carbon_daily,
    calculate_carbon_files,
    calculate_carbon_sessions,
)

carbon_router = APIRouter(prefix="/api/carbon", tags=["carbon"])


@carbon_router.get("")
async def get_carbon(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    """Totals for actual versus naive-baseline energy and CO2e."""
    snapshot = await current_snapshot(request)
    return run_service("carbon", calculate_carbon, snapshot.sessions, days, snapshot.health)


@carbon_router.get("/daily")
async def get_carbon_daily(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service("carbon/daily", calculate_carbon_daily, snapshot.sessions, days, snapshot.health)


@carbon_router.get("/sessions")
async def get_carbon_sessions(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service(
        "carbon/sessions",
        calculate_carbon_sessions,
        snapshot.sessions,
        days,
        snapshot.projectPath,
        snapshot.health,
    )


@carbon_router.get("/files")
async def get_carbon_files(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    """Per context file load frequency and split/stale advice."""
    snapshot = await current_snapshot(request)
    return run_service(
        "carbon/files",
        calculate_carbon_files,
        snapshot.sessions,
        days,
        snapshot.projectPath,
        snapshot.health,
    )
