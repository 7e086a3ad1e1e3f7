"""Benchmark (baseline vs active task) API."""
from __future__ import annotations

from fastapi import APIRouter, Query, Request

from hamdash import config
from hamdash.routers.analytics import MAX_DAYS
from hamdash.routers.cache import current_snapshot, run_service
from hamdash.services.benchmark import (
    RECENT_TASK_LIMIT,
    calculate_benchmark_comparison,
    calculate_benchmark_summary,
    get_recent_tasks,
)

benchmark_router = APIRouter(prefix="/api/benchmark", tags=["benchmark"])


@benchmark_router.get("/state")
async def get_state(request: Request):
    """Benchmarking lifecycle mode and progress as persisted by the skill."""
    snapshot = await current_snapshot(request)
    return snapshot.benchmarkState.model_dump()


@benchmark_router.get("/summary")
async def get_summary(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service("benchmark/summary", calculate_benchmark_summary, snapshot.tasks, snapshot.sessions, days)


@benchmark_router.get("/comparison")
async def get_comparison(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
):
    snapshot = await current_snapshot(request)
    return run_service(
        "benchmark/comparison",
        calculate_benchmark_comparison,
        snapshot.tasks,
        snapshot.sessions,
        days,
    )


@benchmark_router.get("/tasks")
async def get_tasks(
    request: Request,
    days: int = Query(config.DEFAULT_DAYS, ge=1, le=MAX_DAYS),
    limit: int = Query(RECENT_TASK_LIMIT, ge=1, le=500),
):
    """Most recent tasks with correlated token usage."""
    snapshot = await current_snapshot(request)
    return run_service("benchmark/tasks", get_recent_tasks, snapshot.tasks, snapshot.sessions, limit, days)
