"""Time-windowed session statistics: totals, adoption, savings, daily and per-directory."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from hamdash import config
from hamdash.date_utils import in_window, to_date_key, window_cutoff, window_date_keys
from hamdash.formatting import round2, round_int
from hamdash.models import Session
from hamdash.pricing import DEFAULT_PRICING_MODEL, calculate_cost

# Baseline derivation
MIN_BASELINE_SAMPLE = 3
HAM_ON_BASELINE_MULTIPLIER = 5
FALLBACK_TOKENS_PER_READ = 50_000

UNATTRIBUTED_DIRECTORY = "(unattributed)"


def filter_by_days(sessions: Sequence[Session], days: int, now: datetime | None = None) -> list[Session]:
    cutoff = window_cutoff(days, now)
    return [s for s in sessions if s.startTime and in_window(s.startTime, cutoff)]


def split_by_ham(sessions: Sequence[Session]) -> tuple[list[Session], list[Session]]:
    ham_on = [s for s in sessions if s.isHamOn]
    ham_off = [s for s in sessions if not s.isHamOn]
    return ham_on, ham_off


def _session_cost(session: Session) -> float:
    return calculate_cost(session.inputTokens, session.outputTokens, session.model or DEFAULT_PRICING_MODEL)


def _tokens_per_read(sessions: Sequence[Session]) -> float | None:
    total_tokens = 0
    total_reads = 0
    for s in sessions:
        reads = len(s.fileReads)
        if reads > 0:
            total_tokens += s.inputTokens
            total_reads += reads
    if total_reads == 0:
        return None
    return total_tokens / total_reads


def calculate_baseline(ham_on: Sequence[Session], ham_off: Sequence[Session]) -> dict[str, Any]:
    """Estimated input tokens per file read without scoped context.

    Prefers HAM-off sessions (needs at least three), then HAM-on sessions
    scaled up, then a conservative constant.
    """
    if len(ham_off) >= MIN_BASELINE_SAMPLE:
        per_read = _tokens_per_read(ham_off)
        if per_read is not None:
            return {"avgTokensPerRead": per_read, "sampleSize": len(ham_off), "source": "ham_off"}

    if ham_on:
        per_read = _tokens_per_read(ham_on)
        if per_read is not None:
            return {
                "avgTokensPerRead": per_read * HAM_ON_BASELINE_MULTIPLIER,
                "sampleSize": len(ham_on),
                "source": "ham_on_scaled",
            }

    return {"avgTokensPerRead": float(FALLBACK_TOKENS_PER_READ), "sampleSize": 0, "source": "default"}


def session_tokens_saved(session: Session, avg_tokens_per_read: float, context_filename: str | None = None) -> float:
    reads = session.non_context_read_count(context_filename or config.CONTEXT_FILENAME) or 1
    return max(0.0, reads * avg_tokens_per_read - session.inputTokens)


def _pct(part: int, whole: int) -> int:
    return round_int(part / whole * 100) if whole > 0 else 0


def calculate_stats(sessions: Sequence[Session], days: int = 30, now: datetime | None = None) -> dict[str, Any]:
    """Aggregate stats for the window; every rate is 0 when there are no sessions."""
    filtered = filter_by_days(sessions, days, now)
    ham_on, ham_off = split_by_ham(filtered)
    baseline = calculate_baseline(ham_on, ham_off)

    total_tokens_saved = 0.0
    total_cost_saved = 0.0
    for s in ham_on:
        saved = session_tokens_saved(s, baseline["avgTokensPerRead"])
        total_tokens_saved += saved
        total_cost_saved += calculate_cost(saved, 0, s.model or DEFAULT_PRICING_MODEL)

    total_sessions = len(filtered)
    routed_count = sum(1 for s in filtered if s.routingStatus == "routed")
    likely_count = sum(1 for s in filtered if s.routingStatus == "likely")
    unrouted_count = sum(1 for s in filtered if s.routingStatus == "unrouted")

    total_input = sum(s.inputTokens for s in filtered)
    total_output = sum(s.outputTokens for s in filtered)
    total_cost = sum(_session_cost(s) for s in filtered)
    total_reads = sum(len(s.fileReads) for s in filtered)

    return {
        "days": days,
        "totalSessions": total_sessions,
        "hamOnCount": len(ham_on),
        "hamOffCount": len(ham_off),
        "coveragePercent": _pct(len(ham_on), total_sessions),
        "routedCount": routed_count,
        "likelyRoutedCount": likely_count,
        "unroutedCount": unrouted_count,
        "routedPercent": _pct(routed_count + likely_count, total_sessions),
        "totalTokensSaved": round_int(total_tokens_saved),
        "totalCostSaved": round2(total_cost_saved),
        "totalInputTokens": total_input,
        "totalOutputTokens": total_output,
        "totalCacheRead": sum(s.cacheReadTokens for s in filtered),
        "totalCacheCreation": sum(s.cacheCreationTokens for s in filtered),
        "totalCost": round2(total_cost),
        "avgInputTokens": round_int(total_input / total_sessions) if total_sessions else 0,
        "avgCost": round2(total_cost / total_sessions) if total_sessions else 0.0,
        "avgFileReads": round_int(total_reads / total_sessions) if total_sessions else 0,
        "baseline": {
            "avgTokensPerRead": round_int(baseline["avgTokensPerRead"]),
            "sampleSize": baseline["sampleSize"],
            "source": baseline["source"],
        },
    }


def _empty_day(date_key: str) -> dict[str, Any]:
    return {
        "date": date_key,
        "sessions": 0,
        "hamOnSessions": 0,
        "inputTokens": 0,
        "outputTokens": 0,
        "cacheReadTokens": 0,
        "cost": 0.0,
        "fileReads": 0,
    }


def calculate_daily(sessions: Sequence[Session], days: int = 30, now: datetime | None = None) -> list[dict[str, Any]]:
    """One row per calendar day in the window, oldest first, zero-filled."""
    by_date: dict[str, dict[str, Any]] = {}
    for s in filter_by_days(sessions, days, now):
        key = to_date_key(s.startTime)
        day = by_date.setdefault(key, _empty_day(key))
        day["sessions"] += 1
        if s.isHamOn:
            day["hamOnSessions"] += 1
        day["inputTokens"] += s.inputTokens
        day["outputTokens"] += s.outputTokens
        day["cacheReadTokens"] += s.cacheReadTokens
        day["cost"] += _session_cost(s)
        day["fileReads"] += len(s.fileReads)

    result = []
    for key in window_date_keys(days, now):
        day = by_date.get(key) or _empty_day(key)
        result.append({**day, "cost": round2(day["cost"])})
    return result


def calculate_directories(sessions: Sequence[Session], days: int = 30, now: datetime | None = None) -> list[dict[str, Any]]:
    """Per primary-directory breakdown, busiest first. Empty directories are absent."""
    by_dir: dict[str, dict[str, Any]] = {}
    for s in filter_by_days(sessions, days, now):
        name = s.primaryDirectory or UNATTRIBUTED_DIRECTORY
        bucket = by_dir.setdefault(
            name,
            {
                "directory": name,
                "sessions": 0,
                "hamOnSessions": 0,
                "inputTokens": 0,
                "outputTokens": 0,
                "fileReads": 0,
                "cost": 0.0,
            },
        )
        bucket["sessions"] += 1
        if s.isHamOn:
            bucket["hamOnSessions"] += 1
        bucket["inputTokens"] += s.inputTokens
        bucket["outputTokens"] += s.outputTokens
        bucket["fileReads"] += len(s.fileReads)
        bucket["cost"] += _session_cost(s)

    rows = [{**bucket, "cost": round2(bucket["cost"])} for bucket in by_dir.values()]
    return sorted(rows, key=lambda row: row["sessions"], reverse=True)


def list_sessions(
    sessions: Sequence[Session],
    days: int = 30,
    limit: int = 50,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Session table rows (file reads as a count), newest first."""
    rows = []
    for s in filter_by_days(sessions, days, now)[: max(0, limit)]:
        row = s.model_dump(exclude={"fileReads", "contextFileReads", "sourceFile"})
        row["fileReads"] = len(s.fileReads)
        row["cost"] = round2(_session_cost(s))
        rows.append(row)
    return rows
