"""Read benchmark task-event logs and the benchmarking state blob."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from hamdash import config
from hamdash.date_utils import to_epoch_ms
from hamdash.formatting import round2
from hamdash.models import BenchmarkState, Task

logger = logging.getLogger("hamdash.benchmark")

_START_TYPES = {"start", "task_start"}
_END_TYPES = {"end", "task_end"}


def metrics_dir(project_path: Path | str) -> Path:
    return Path(str(project_path)) / config.METRICS_DIR


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def read_jsonl_file(path: Path) -> list[dict[str, Any]]:
    """Return every JSON object in ``path``; missing files and bad lines are skipped."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read task log %s: %s", path, exc)
        return []

    entries: list[dict[str, Any]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(parsed, dict):
            entries.append(parsed)
    return entries


def pair_task_entries(entries: Iterable[dict[str, Any]], *, default_ham_active: bool = True) -> list[Task]:
    """Pair start/end records by id into Tasks, in end-record order.

    Unmatched starts are dropped; a repeated start replaces the pending one.
    """
    pending: dict[str, dict[str, Any]] = {}
    tasks: list[Task] = []

    for entry in entries:
        entry_type = entry.get("type")
        task_id = entry.get("id")
        if task_id is None:
            continue
        task_id = str(task_id)

        if entry_type in _START_TYPES:
            pending[task_id] = entry
            continue
        if entry_type not in _END_TYPES or task_id not in pending:
            continue

        start = pending.pop(task_id)
        start_ts = str(start.get("timestamp") or "")
        end_ts = str(entry.get("timestamp") or "")
        start_ms = to_epoch_ms(start_ts)
        end_ms = to_epoch_ms(end_ts)
        duration_ms = (end_ms - start_ms) if start_ms is not None and end_ms is not None else 0.0

        ham_active = start.get("ham_active")
        tasks.append(
            Task(
                id=task_id,
                description=str(start.get("description") or ""),
                timestamp=start_ts,
                endTimestamp=end_ts,
                durationMs=duration_ms,
                durationSec=round2(duration_ms / 1000),
                hamActive=default_ham_active if ham_active is None else bool(ham_active),
                model=str(start.get("model") or "unknown"),
                filesRead=_coerce_int(start.get("files_read")),
                memoryFilesLoaded=_coerce_int(start.get("memory_files_loaded")),
                status=str(entry.get("status") or "completed"),
                estimatedTokens=_coerce_int(start.get("estimated_tokens")),
            )
        )

    return tasks


def read_task_entries(project_path: Path | str, filename: str) -> list[Task]:
    default_active = filename != config.BASELINE_LOG_NAME
    entries = read_jsonl_file(metrics_dir(project_path) / filename)
    return pair_task_entries(entries, default_ham_active=default_active)


def read_baseline_tasks(project_path: Path | str) -> list[Task]:
    return read_task_entries(project_path, config.BASELINE_LOG_NAME)


def read_active_tasks(project_path: Path | str) -> list[Task]:
    return read_task_entries(project_path, config.ACTIVE_LOG_NAME)


def get_benchmark_state(project_path: Path | str) -> BenchmarkState:
    """Load ``state.json``; a missing or invalid blob means mode ``none``."""
    state_path = metrics_dir(project_path) / config.STATE_FILE_NAME
    try:
        raw = json.loads(state_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return BenchmarkState()
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable benchmark state %s: %s", state_path, exc)
        return BenchmarkState()
    if not isinstance(raw, dict):
        return BenchmarkState()
    try:
        return BenchmarkState.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Ignoring invalid benchmark state %s: %s", state_path, exc)
        return BenchmarkState()
