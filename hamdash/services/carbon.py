"""Parametric energy / CO2e estimates for sessions versus a naive full-context baseline.

Energy model (EcoLogits):

    E_gpu     = output * (ALPHA * active_params + BETA)
    E_prefill = input  * (ALPHA * active_params + BETA) / PP_TG_RATIO
    E_server  = (output / gen_speed) * (SERVER_POWER_W / 3600) * (gpus / 8)
    E_total   = (E_gpu + E_prefill + E_server) * PUE          [Wh]
    CO2e      = E_total * CARBON_INTENSITY                    [g]

The naive baseline assumes every request loads every context file in the
project, so its input is ``naive_baseline_tokens * prompts``.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, NamedTuple, Sequence

from hamdash import config
from hamdash.date_utils import format_iso, in_window, parse_iso, to_date_key, utc_now, window_date_keys
from hamdash.formatting import round2, round_half_up
from hamdash.models import ContextHealthEntry, Session
from hamdash.pricing import estimate_tokens, resolve_model_entry
from hamdash.services.metrics import filter_by_days

ALPHA = 8.91e-5           # GPU energy coefficient (Wh per token per B params)
BETA = 1.43e-3            # GPU energy intercept
PUE = 1.2                 # datacenter power usage effectiveness
CARBON_INTENSITY = 0.385  # kgCO2/kWh, US grid average
PP_TG_RATIO = 30          # prefill-to-decode speed ratio
SERVER_POWER_W = 1000     # non-GPU server power

DEFAULT_CARBON_MODEL = "default"

# active params (B), GPU count, generation speed (tokens/s)
MODEL_CARBON: dict[str, dict[str, float]] = {
    "claude-opus-4-6": {"activeParams": 60, "gpus": 4, "genSpeed": 30},
    "claude-sonnet-4-6": {"activeParams": 70, "gpus": 2, "genSpeed": 50},
    "claude-sonnet-4-5-20250514": {"activeParams": 70, "gpus": 2, "genSpeed": 50},
    "claude-haiku-4-5-20251001": {"activeParams": 20, "gpus": 1, "genSpeed": 100},
    "claude-3-5-sonnet-20241022": {"activeParams": 70, "gpus": 2, "genSpeed": 50},
    "claude-3-5-haiku-20241022": {"activeParams": 20, "gpus": 1, "genSpeed": 100},
    "claude-sonnet-4-20250514": {"activeParams": 70, "gpus": 2, "genSpeed": 50},
    DEFAULT_CARBON_MODEL: {"activeParams": 70, "gpus": 2, "genSpeed": 50},
}

# Per-file actionability thresholds
SPLIT_THIS_TOKEN_LOADS = 10_000
CONSIDER_SPLIT_MIN_TOKENS = 200
CONSIDER_SPLIT_LOADS_PER_DAY = 10
LOAD_WINDOW_DAYS = 7
STALE_WINDOW_DAYS = 14

RECENT_SESSION_LIMIT = 20


class Energy(NamedTuple):
    energy_wh: float
    co2e_grams: float


def get_model_carbon(model: str | None) -> dict[str, float]:
    return resolve_model_entry(model, MODEL_CARBON, DEFAULT_CARBON_MODEL)


def session_energy(input_tokens: float, output_tokens: float, model: str | None) -> Energy:
    params = get_model_carbon(model)
    per_token = ALPHA * params["activeParams"] + BETA

    e_gpu = output_tokens * per_token
    e_prefill = input_tokens * per_token / PP_TG_RATIO
    e_server = (output_tokens / params["genSpeed"]) * (SERVER_POWER_W / 3600) * (params["gpus"] / 8)
    e_total = (e_gpu + e_prefill + e_server) * PUE
    # Wh * kgCO2/kWh == gCO2
    return Energy(energy_wh=e_total, co2e_grams=e_total * CARBON_INTENSITY)


def naive_baseline_tokens(health_entries: Sequence[ContextHealthEntry]) -> int:
    """Estimated tokens of every context file in the project, loaded at once."""
    total_bytes = sum(e.fileSize for e in health_entries if e.hasContextFile and e.fileSize > 0)
    return estimate_tokens(total_bytes)


def _prompts(session: Session) -> int:
    return session.messageCount or 1


def _pair(session: Session, baseline_tokens: int) -> tuple[int, Energy, Energy]:
    baseline_input = baseline_tokens * _prompts(session)
    actual = session_energy(session.inputTokens, session.outputTokens, session.model)
    baseline = session_energy(baseline_input, session.outputTokens, session.model)
    return baseline_input, actual, baseline


def _savings_pct(actual_tokens: int, baseline_tokens: int) -> float:
    if baseline_tokens <= 0:
        return 0.0
    return round_half_up((1 - actual_tokens / baseline_tokens) * 100, 1)


def context_file_path(project_path: Path | str, entry: ContextHealthEntry, context_filename: str | None = None) -> str:
    """Absolute path of the context file a health entry describes."""
    filename = context_filename or config.CONTEXT_FILENAME
    return os.path.normpath(os.path.join(str(project_path), entry.path, filename))


def _context_reads(session: Session, project_path: Path | str) -> list[str]:
    return [
        os.path.normpath(fp if os.path.isabs(fp) else os.path.join(str(project_path), fp))
        for fp in session.contextFileReads
    ]


def calculate_carbon(
    sessions: Sequence[Session],
    days: int,
    health_entries: Sequence[ContextHealthEntry] = (),
    now: datetime | None = None,
) -> dict[str, Any]:
    filtered = filter_by_days(sessions, days, now)
    baseline_tokens = naive_baseline_tokens(health_entries)

    actual_wh = baseline_wh = actual_g = baseline_g = 0.0
    total_requests = 0
    actual_input = 0
    baseline_input_total = 0

    for s in filtered:
        total_requests += _prompts(s)
        baseline_input, actual, baseline = _pair(s, baseline_tokens)
        actual_wh += actual.energy_wh
        actual_g += actual.co2e_grams
        baseline_wh += baseline.energy_wh
        baseline_g += baseline.co2e_grams
        actual_input += s.inputTokens
        baseline_input_total += baseline_input

    starts = [parse_iso(s.startTime) for s in filtered]
    starts = [dt for dt in starts if dt is not None]
    tracking_since = format_iso(min(starts)) if starts else None

    return {
        "days": days,
        "totalSessions": len(filtered),
        "totalRequests": total_requests,
        "tokenEfficiency": _savings_pct(actual_input, baseline_input_total),
        "totalEnergy": {
            "actual_wh": round2(actual_wh),
            "baseline_wh": round2(baseline_wh),
            "saved_wh": round2(baseline_wh - actual_wh),
        },
        "totalCO2e": {
            "actual_grams": round2(actual_g),
            "baseline_grams": round2(baseline_g),
            "saved_grams": round2(baseline_g - actual_g),
        },
        "naiveBaselineTokens": baseline_tokens,
        "trackingSince": tracking_since,
    }


def _empty_carbon_day(date_key: str) -> dict[str, Any]:
    return {"date": date_key, "sessions": 0, "prompts": 0, "co2e_saved_grams": 0.0, "tokens_saved": 0}


def calculate_carbon_daily(
    sessions: Sequence[Session],
    days: int,
    health_entries: Sequence[ContextHealthEntry] = (),
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """CO2e and tokens saved per day, oldest first, zero-filled."""
    baseline_tokens = naive_baseline_tokens(health_entries)
    by_date: dict[str, dict[str, Any]] = {}

    for s in filter_by_days(sessions, days, now):
        key = to_date_key(s.startTime)
        day = by_date.setdefault(key, _empty_carbon_day(key))
        baseline_input, actual, baseline = _pair(s, baseline_tokens)
        day["sessions"] += 1
        day["prompts"] += _prompts(s)
        day["co2e_saved_grams"] += baseline.co2e_grams - actual.co2e_grams
        day["tokens_saved"] += max(0, baseline_input - s.inputTokens)

    rows = []
    for key in window_date_keys(days, now):
        day = by_date.get(key) or _empty_carbon_day(key)
        rows.append({**day, "co2e_saved_grams": round2(day["co2e_saved_grams"])})
    return rows


def calculate_carbon_sessions(
    sessions: Sequence[Session],
    days: int,
    project_path: Path | str,
    health_entries: Sequence[ContextHealthEntry] = (),
    now: datetime | None = None,
    *,
    context_filename: str | None = None,
) -> list[dict[str, Any]]:
    """Energy breakdown for the most recent sessions, with the context files each loaded."""
    baseline_tokens = naive_baseline_tokens(health_entries)
    file_tokens = {
        context_file_path(project_path, e, context_filename): estimate_tokens(e.fileSize)
        for e in health_entries
        if e.hasContextFile
    }

    rows = []
    for s in filter_by_days(sessions, days, now)[:RECENT_SESSION_LIMIT]:
        baseline_input, actual, baseline = _pair(s, baseline_tokens)

        loaded: dict[str, dict[str, Any]] = {}
        for fp in _context_reads(s, project_path):
            item = loaded.setdefault(fp, {"path": fp, "tokens": file_tokens.get(fp, 0), "loadCount": 0})
            item["loadCount"] += 1

        rows.append({
            "sessionId": s.sessionId,
            "startTime": s.startTime,
            "durationMs": s.durationMs,
            "model": s.model,
            "prompts": _prompts(s),
            "inputTokens": s.inputTokens,
            "outputTokens": s.outputTokens,
            "baselineTokens": baseline_input,
            "tokenSavingsPercent": _savings_pct(s.inputTokens, baseline_input),
            "energy_wh": round2(actual.energy_wh),
            "baseline_energy_wh": round2(baseline.energy_wh),
            "saved_wh": round2(baseline.energy_wh - actual.energy_wh),
            "co2e_grams": round2(actual.co2e_grams),
            "baseline_co2e_grams": round2(baseline.co2e_grams),
            "saved_grams": round2(baseline.co2e_grams - actual.co2e_grams),
            "filesLoaded": list(loaded.values()),
        })
    return rows


def classify_context_file(tokens: int, loads_per_day: float, loads_7d: int, loaded_recently: bool) -> str:
    if not loaded_recently and loads_7d == 0:
        return "stale"
    if tokens * loads_per_day > SPLIT_THIS_TOKEN_LOADS:
        return "split_this"
    if tokens > CONSIDER_SPLIT_MIN_TOKENS and loads_per_day > CONSIDER_SPLIT_LOADS_PER_DAY:
        return "consider_splitting"
    return "ok"


def calculate_carbon_files(
    sessions: Sequence[Session],
    days: int,
    project_path: Path | str,
    health_entries: Sequence[ContextHealthEntry] = (),
    now: datetime | None = None,
    *,
    context_filename: str | None = None,
) -> list[dict[str, Any]]:
    """Load frequency and actionability per context file, most loaded first."""
    anchor = now or utc_now()
    filtered = filter_by_days(sessions, days, anchor)
    load_cutoff = anchor - timedelta(days=LOAD_WINDOW_DAYS)
    stale_cutoff = anchor - timedelta(days=STALE_WINDOW_DAYS)

    loads_7d: dict[str, int] = {}
    loaded_14d: set[str] = set()
    for s in filtered:
        reads = _context_reads(s, project_path)
        if in_window(s.startTime, stale_cutoff):
            loaded_14d.update(reads)
        if not in_window(s.startTime, load_cutoff):
            continue
        for fp in reads:
            loads_7d[fp] = loads_7d.get(fp, 0) + 1

    rows = []
    for entry in health_entries:
        if not entry.hasContextFile:
            continue
        abs_path = context_file_path(project_path, entry, context_filename)
        tokens = estimate_tokens(entry.fileSize)
        loads = loads_7d.get(abs_path, 0)
        loads_per_day = round_half_up(loads / LOAD_WINDOW_DAYS, 1)
        rows.append({
            "path": entry.path,
            "tokens": tokens,
            "loads7d": loads,
            "loadsPerDay": loads_per_day,
            "status": classify_context_file(tokens, loads_per_day, loads, abs_path in loaded_14d),
        })
    return sorted(rows, key=lambda row: row["loads7d"], reverse=True)
