"""Session analytics, context health and insights API."""
from __future__ import annotations

from fastapi import APIRouter, Query, Request

from hamdash import config
from hamdash.parsers.frontmatter import read_ham_version
from hamdash.routers.cache import current_snapshot, run_service
from hamdash.services.insights import generate_insights, generate_structured_insights
from hamdash.services.metrics import calculate_daily, calculate_directories, calculate_stats, list_sessions

analytics_router = APIRouter(prefix="/api", tags=["analytics"])

MAX_DAYS = 3650
MAX_LIMIT = 500


@analytics_router.get("/stats")
async def get_stats(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    """Headline totals, HAM adoption, routing adoption and estimated savings."""
    snapshot = await current_snapshot(request)
    stats = run_service("stats", calculate_stats, snapshot.sessions, days)
    stats["projectName"] = snapshot.projectName
    stats["hamVersion"] = read_ham_version(config.SKILL_MD_PATH)
    return stats


@analytics_router.get("/daily")
async def get_daily(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service("daily", calculate_daily, snapshot.sessions, days)


@analytics_router.get("/directories")
async def get_directories(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service("directories", calculate_directories, snapshot.sessions, days)


@analytics_router.get("/sessions")
async def get_sessions(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
    limit: int = Query(config.DEFAULT_SESSION_LIMIT, ge=1, le=MAX_LIMIT),
):
    """Most recent sessions in the window, newest first."""
    snapshot = await current_snapshot(request)
    return run_service("sessions", list_sessions, snapshot.sessions, days, limit)


@analytics_router.get("/health")
async def get_context_health(request: Request):
    """Context-file health per source directory."""
    snapshot = await current_snapshot(request)
    return [entry.model_dump() for entry in snapshot.health]


@analytics_router.get("/insights")
async def get_insights(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    stats = run_service("insights", calculate_stats, snapshot.sessions, days)
    daily = run_service("insights", calculate_daily, snapshot.sessions, days)
    return run_service("insights", generate_insights, stats, snapshot.health, daily, days)


@analytics_router.get("/insights/structured")
async def get_structured_insights(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    stats = run_service("insights/structured", calculate_stats, snapshot.sessions, days)
    daily = run_service("insights/structured", calculate_daily, snapshot.sessions, days)
    return run_service("insights/structured", generate_structured_insights, stats, snapshot.health, daily, days)
