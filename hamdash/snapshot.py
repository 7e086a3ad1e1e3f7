"""Immutable parsed-project snapshot and the store that swaps it on refresh."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hamdash import config
from hamdash.date_utils import format_iso, utc_now
from hamdash.models import BenchmarkState, ContextHealthEntry, RoutingEntry, Session, Task
from hamdash.observability import record_refresh, start_span
from hamdash.parsers.sessions import parse_sessions, resolve_project_path
from hamdash.parsers.tasks import get_benchmark_state
from hamdash.services.benchmark import load_all_tasks
from hamdash.services.context_health import check_context_health

logger = logging.getLogger("hamdash.snapshot")


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything the aggregators read, captured at one point in time."""

    projectPath: str
    sessions: tuple[Session, ...] = ()
    routingTable: tuple[RoutingEntry, ...] = ()
    health: tuple[ContextHealthEntry, ...] = ()
    tasks: tuple[Task, ...] = ()
    benchmarkState: BenchmarkState = field(default_factory=BenchmarkState)
    warnings: tuple[str, ...] = ()
    sessionDir: str = ""
    parsedAt: Optional[str] = None

    @property
    def projectName(self) -> str:
        return Path(self.projectPath).name

    @property
    def is_loaded(self) -> bool:
        return self.parsedAt is not None


def build_snapshot(
    project_path: Path | str,
    *,
    claude_home: Path | None = None,
    context_filename: str | None = None,
) -> SessionSnapshot:
    """Parse transcripts, scan health and read task logs for one project (blocking)."""
    project_path = resolve_project_path(project_path)
    parsed = parse_sessions(project_path, claude_home=claude_home, context_filename=context_filename)
    health = check_context_health(project_path, parsed.sessions, context_filename=context_filename)
    return SessionSnapshot(
        projectPath=str(project_path),
        sessions=tuple(parsed.sessions),
        routingTable=tuple(parsed.routingTable),
        health=tuple(health),
        tasks=tuple(load_all_tasks(project_path)),
        benchmarkState=get_benchmark_state(project_path),
        warnings=tuple(parsed.warnings),
        sessionDir=parsed.sessionDir,
        parsedAt=format_iso(utc_now()),
    )


class SessionStore:
    """Holds the current snapshot; a refresh replaces it in a single assignment.

    Concurrent refreshes are serialized. Readers never block and always see
    either the previous or the new snapshot in full.
    """

    def __init__(
        self,
        project_path: Path | str | None = None,
        *,
        claude_home: Path | None = None,
        context_filename: str | None = None,
    ) -> None:
        self.project_path = resolve_project_path(project_path or config.PROJECT_PATH)
        self.claude_home = claude_home
        self.context_filename = context_filename
        self._snapshot = SessionSnapshot(projectPath=str(self.project_path))
        self._refresh_lock: asyncio.Lock | None = None

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def _build(self) -> SessionSnapshot:
        started = time.perf_counter()
        with start_span("hamdash.refresh", {"project": self.project_path.name}):
            snapshot = build_snapshot(
                self.project_path,
                claude_home=self.claude_home,
                context_filename=self.context_filename,
            )
        elapsed_ms = (time.perf_counter() - started) * 1000
        record_refresh(elapsed_ms, project_id=self.project_path.name)
        logger.info(
            "Parsed %d sessions, %d tasks for %s in %.0fms (%d warnings)",
            len(snapshot.sessions),
            len(snapshot.tasks),
            self.project_path,
            elapsed_ms,
            len(snapshot.warnings),
        )
        return snapshot

    def refresh_sync(self) -> SessionSnapshot:
        self._snapshot = self._build()
        return self._snapshot

    async def refresh(self) -> SessionSnapshot:
        if self._refresh_lock is None:
            self._refresh_lock = asyncio.Lock()
        async with self._refresh_lock:
            logger.info("Refreshing session snapshot for %s", self.project_path)
            snapshot = await asyncio.to_thread(self._build)
            self._snapshot = snapshot
        return snapshot

    async def get_snapshot(self) -> SessionSnapshot:
        """Current snapshot, loading it first if nothing has been parsed yet."""
        if not self._snapshot.is_loaded:
            return await self.refresh()
        return self._snapshot
