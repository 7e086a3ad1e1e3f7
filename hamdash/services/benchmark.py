"""Baseline versus scoped-context task benchmarking."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from hamdash.date_utils import in_window, to_epoch_ms, window_cutoff
from hamdash.formatting import round2, round_int
from hamdash.models import Session, Task
from hamdash.parsers.tasks import read_active_tasks, read_baseline_tasks
from hamdash.services.metrics import filter_by_days

logger = logging.getLogger("hamdash.benchmark")

RECENT_TASK_LIMIT = 20


def load_all_tasks(project_path: Path | str) -> list[Task]:
    """Baseline tasks followed by active tasks, each in log order."""
    return [*read_baseline_tasks(project_path), *read_active_tasks(project_path)]


def filter_tasks_by_days(tasks: Sequence[Task], days: int, now: datetime | None = None) -> list[Task]:
    cutoff = window_cutoff(days, now)
    return [t for t in tasks if in_window(t.timestamp, cutoff)]


def _session_bounds(session: Session) -> tuple[float, float] | None:
    start = to_epoch_ms(session.startTime)
    if start is None:
        return None
    end = to_epoch_ms(session.endTime) if session.endTime else None
    if end is None:
        end = start + (session.durationMs or 0)
    return start, end


def find_containing_session(task: Task, sessions: Sequence[Session]) -> Optional[Session]:
    """First session whose [start, end] interval fully contains the task."""
    task_start = to_epoch_ms(task.timestamp)
    task_end = to_epoch_ms(task.endTimestamp)
    if task_start is None or task_end is None:
        return None
    for session in sessions:
        bounds = _session_bounds(session)
        if bounds is None:
            continue
        if bounds[0] <= task_start and task_end <= bounds[1]:
            return session
    return None


def correlate_tokens(task: Task, sessions: Sequence[Session]) -> int:
    """Apportion the containing session's tokens by wall-clock share.

    Falls back to the task's self-reported estimate when the task has no
    positive duration or no containing session with a positive duration.
    """
    if task.durationMs <= 0:
        return task.estimatedTokens
    session = find_containing_session(task, sessions)
    if session is None:
        return task.estimatedTokens
    bounds = _session_bounds(session)
    session_duration = bounds[1] - bounds[0] if bounds else 0
    if session_duration <= 0:
        return task.estimatedTokens
    return round_int(session.total_tokens * (task.durationMs / session_duration))


def get_cache_rate(task: Task, sessions: Sequence[Session]) -> float:
    """Cache-read share (percent) of the containing session's input; 0 without one."""
    session = find_containing_session(task, sessions)
    if session is None or session.inputTokens <= 0:
        return 0.0
    return round2(session.cacheReadTokens / session.inputTokens * 100)


def _summarize(tasks: Sequence[Task], sessions: Sequence[Session]) -> Optional[dict[str, Any]]:
    if not tasks:
        return None
    count = len(tasks)
    return {
        "count": count,
        "avgWallClockSec": round2(sum(t.durationSec for t in tasks) / count),
        "avgTokens": round_int(sum(correlate_tokens(t, sessions) for t in tasks) / count),
        "avgFilesRead": round2(sum(t.filesRead for t in tasks) / count),
        "avgCacheRate": round2(sum(get_cache_rate(t, sessions) for t in tasks) / count),
    }


def _summarize_group(tasks: Sequence[Task], sessions: Sequence[Session]) -> Optional[dict[str, Any]]:
    if not tasks:
        return None
    count = len(tasks)
    return {
        "count": count,
        "avgTimeSec": round2(sum(t.durationSec for t in tasks) / count),
        "avgTokens": round_int(sum(correlate_tokens(t, sessions) for t in tasks) / count),
        "avgCacheRate": round2(sum(get_cache_rate(t, sessions) for t in tasks) / count),
    }


def _split_by_mode(tasks: Sequence[Task]) -> tuple[list[Task], list[Task]]:
    return [t for t in tasks if t.isBaseline], [t for t in tasks if t.hamActive]


def calculate_benchmark_summary(
    tasks: Sequence[Task],
    sessions: Sequence[Session],
    days: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Overall and per-mode averages for tasks started inside the window."""
    window_tasks = filter_tasks_by_days(tasks, days, now)
    if not window_tasks:
        return {
            "totalTasks": 0,
            "avgWallClockSec": 0,
            "avgTokens": 0,
            "avgFilesRead": 0,
            "avgCacheRate": 0,
            "byMode": {"baseline": None, "active": None},
        }

    window_sessions = filter_by_days(sessions, days, now)
    overall = _summarize(window_tasks, window_sessions) or {}
    baseline_group, active_group = _split_by_mode(window_tasks)
    return {
        "totalTasks": overall["count"],
        "avgWallClockSec": overall["avgWallClockSec"],
        "avgTokens": overall["avgTokens"],
        "avgFilesRead": overall["avgFilesRead"],
        "avgCacheRate": overall["avgCacheRate"],
        "byMode": {
            "baseline": _summarize(baseline_group, window_sessions),
            "active": _summarize(active_group, window_sessions),
        },
    }


def compare_groups(
    baseline: Optional[dict[str, Any]],
    active: Optional[dict[str, Any]],
) -> Optional[dict[str, Any]]:
    """Delta statistics of active relative to baseline; ``None`` unless both exist."""
    if not baseline or not active:
        return None
    time_delta = round2(active["avgTimeSec"] - baseline["avgTimeSec"])
    time_pct = round2(time_delta / baseline["avgTimeSec"] * 100) if baseline["avgTimeSec"] > 0 else 0
    token_delta = active["avgTokens"] - baseline["avgTokens"]
    token_pct = round2(token_delta / baseline["avgTokens"] * 100) if baseline["avgTokens"] > 0 else 0
    return {
        "timeDelta": time_delta,
        "timePct": time_pct,
        "tokenDelta": token_delta,
        "tokenPct": token_pct,
        "cacheDelta": round2(active["avgCacheRate"] - baseline["avgCacheRate"]),
        "estimatedSavings": abs(token_delta) * active["count"] if token_delta < 0 else 0,
    }


def calculate_benchmark_comparison(
    tasks: Sequence[Task],
    sessions: Sequence[Session],
    days: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Baseline vs active comparison, overall and per model.

    Only tasks that started within the last ``days`` days are compared, so
    ``days`` narrows the task set as well as the sessions used for tokens.
    """
    window_tasks = filter_tasks_by_days(tasks, days, now)
    if not window_tasks:
        return {"hasData": False, "baseline": None, "active": None, "comparison": None, "byModel": {}}

    window_sessions = filter_by_days(sessions, days, now)
    baseline_tasks, active_tasks = _split_by_mode(window_tasks)
    baseline = _summarize_group(baseline_tasks, window_sessions)
    active = _summarize_group(active_tasks, window_sessions)

    by_model_tasks: dict[str, list[Task]] = {}
    for task in window_tasks:
        by_model_tasks.setdefault(task.model or "unknown", []).append(task)

    by_model: dict[str, Any] = {}
    for model, model_tasks in by_model_tasks.items():
        model_baseline, model_active = _split_by_mode(model_tasks)
        group_baseline = _summarize_group(model_baseline, window_sessions)
        group_active = _summarize_group(model_active, window_sessions)
        by_model[model] = {
            "total": len(model_tasks),
            "baseline": group_baseline,
            "active": group_active,
            "comparison": compare_groups(group_baseline, group_active),
        }

    return {
        "hasData": True,
        "baseline": baseline,
        "active": active,
        "comparison": compare_groups(baseline, active),
        "byModel": by_model,
    }


def get_recent_tasks(
    tasks: Sequence[Task],
    sessions: Sequence[Session],
    limit: int = RECENT_TASK_LIMIT,
    days: int = 30,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Newest tasks first, with correlated token counts and cache rates."""
    window_sessions = filter_by_days(sessions, days, now)
    ordered = sorted(tasks, key=lambda t: to_epoch_ms(t.timestamp) or 0.0, reverse=True)
    rows = []
    for task in ordered[: max(0, limit)]:
        rows.append({
            "id": task.id,
            "description": task.description,
            "timestamp": task.timestamp,
            "durationSec": task.durationSec,
            "tokens": correlate_tokens(task, window_sessions),
            "model": task.model,
            "hamActive": task.hamActive,
            "filesRead": task.filesRead,
            "cacheRate": get_cache_rate(task, window_sessions),
            "status": task.status,
        })
    return rows
