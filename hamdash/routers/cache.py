"""Snapshot refresh API plus the request helpers shared by the other routers."""
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, HTTPException, Request

from hamdash.observability import is_enabled as observability_enabled
from hamdash.snapshot import SessionSnapshot, SessionStore

logger = logging.getLogger("hamdash")

cache_router = APIRouter(prefix="/api", tags=["cache"])

T = TypeVar("T")


def get_session_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Session store not initialized")
    return store


async def current_snapshot(request: Request) -> SessionSnapshot:
    return await get_session_store(request).get_snapshot()


def run_service(name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call an aggregator, turning unexpected failures into a 500 with the message."""
    try:
        return fn(*args, **kwargs)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("API error (%s)", name)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


async def _refresh(request: Request) -> dict[str, Any]:
    store = get_session_store(request)
    try:
        snapshot = await store.refresh()
    except Exception as exc:
        logger.exception("Snapshot refresh failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {
        "refreshed": True,
        "sessionCount": len(snapshot.sessions),
        "taskCount": len(snapshot.tasks),
        "warnings": list(snapshot.warnings),
        "parsedAt": snapshot.parsedAt,
    }


@cache_router.post("/refresh")
async def refresh_snapshot(request: Request):
    """Re-parse transcripts, health and task logs, then swap the snapshot."""
    return await _refresh(request)


@cache_router.get("/refresh")
async def refresh_snapshot_get(request: Request):
    return await _refresh(request)


@cache_router.get("/status")
async def get_status(request: Request):
    """Server liveness and snapshot metadata."""
    snapshot = get_session_store(request).snapshot
    return {
        "status": "ok",
        "projectPath": snapshot.projectPath,
        "projectName": snapshot.projectName,
        "sessionDir": snapshot.sessionDir,
        "loaded": snapshot.is_loaded,
        "parsedAt": snapshot.parsedAt,
        "sessionCount": len(snapshot.sessions),
        "warningCount": len(snapshot.warnings),
        "observability": observability_enabled(),
    }
