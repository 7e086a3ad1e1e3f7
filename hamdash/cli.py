"""Command-line entry point.

Usage:
  hamdash serve [--port 7777] [--host 127.0.0.1] [--static-dir dashboard/dist]
  hamdash stats [--days 30] [--json]
  hamdash insights [--days 30] [--json]
  hamdash carbon [--last] [--days 30] [--json]
  hamdash benchmark [--model sonnet] [--days 30] [--json]

Every command accepts ``--project`` (default: current directory).
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from hamdash import config
from hamdash.date_utils import parse_iso, utc_now
from hamdash.formatting import (
    fmt_co2e,
    fmt_duration_ms,
    fmt_duration_sec,
    fmt_pct,
    fmt_tokens,
    round_int,
)
from hamdash.model_identity import model_matches, short_model_name
from hamdash.parsers.sessions import resolve_project_path
from hamdash.services.benchmark import (
    calculate_benchmark_comparison,
    calculate_benchmark_summary,
    get_recent_tasks,
)
from hamdash.services.carbon import calculate_carbon, calculate_carbon_sessions
from hamdash.services.insights import generate_insights, generate_structured_insights
from hamdash.services.metrics import calculate_daily, calculate_stats
from hamdash.snapshot import SessionSnapshot, build_snapshot

logger = logging.getLogger("hamdash")

_TABLE_TOP = "  ┌──────────────────┬──────────────┬──────────────┬──────────────┐"
_TABLE_HEAD = "  │ Metric           │ Baseline     │ HAM Active   │ Change       │"
_TABLE_SEP = "  ├──────────────────┼──────────────┼──────────────┼──────────────┤"
_TABLE_BOTTOM = "  └──────────────────┴──────────────┴──────────────┴──────────────┘"


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _local(value: Optional[str]) -> Optional[datetime]:
    parsed = parse_iso(value)
    return parsed.astimezone() if parsed else None


def _fmt_date(value: Optional[str]) -> str:
    dt = _local(value)
    return f"{dt:%b} {dt.day}" if dt else "-"


def _fmt_datetime(value: Optional[str]) -> str:
    dt = _local(value)
    if not dt:
        return "-"
    hour = dt.hour % 12 or 12
    return f"{dt:%b} {dt.day}, {hour}:{dt:%M} {dt:%p}"


def _load(args: argparse.Namespace) -> SessionSnapshot:
    return build_snapshot(resolve_project_path(args.project))


# ── stats ───────────────────────────────────────────────────────────

def cmd_stats(args: argparse.Namespace) -> int:
    snapshot = _load(args)
    stats = calculate_stats(snapshot.sessions, args.days)
    if args.json:
        _print_json({**stats, "projectName": snapshot.projectName})
        return 0

    print(f"HAM Stats | {snapshot.projectName} (last {args.days} days)")
    print(f"Sessions:       {stats['totalSessions']}  ({stats['hamOnCount']} with HAM, {stats['coveragePercent']}%)")
    print(
        f"Routing:        {stats['routedPercent']}% routed "
        f"({stats['routedCount']} routed, {stats['likelyRoutedCount']} likely, {stats['unroutedCount']} unrouted)"
    )
    print(f"Input tokens:   {fmt_tokens(stats['totalInputTokens'])}  (avg {fmt_tokens(stats['avgInputTokens'])}/session)")
    print(f"Output tokens:  {fmt_tokens(stats['totalOutputTokens'])}")
    print(f"Spend:          ${stats['totalCost']:.2f}")
    print(f"Est. saved:     {fmt_tokens(stats['totalTokensSaved'])} tokens (${stats['totalCostSaved']:.2f})")
    for warning in snapshot.warnings:
        print(f"  warning: {warning}")
    return 0


# ── insights ────────────────────────────────────────────────────────

def cmd_insights(args: argparse.Namespace) -> int:
    snapshot = _load(args)
    stats = calculate_stats(snapshot.sessions, args.days)
    daily = calculate_daily(snapshot.sessions, args.days)
    if args.json:
        _print_json(generate_structured_insights(stats, snapshot.health, daily, args.days))
        return 0

    narrative = generate_insights(stats, snapshot.health, daily, args.days)
    print(narrative["summary"])
    for line in narrative["insights"]:
        print(f"  - {line}")
    return 0


# ── carbon ──────────────────────────────────────────────────────────

def _print_last_session(last: dict[str, Any]) -> None:
    prompts = last["prompts"]
    avg_actual = round_int(last["inputTokens"] / prompts) if prompts > 0 else 0
    avg_baseline = round_int(last["baselineTokens"] / prompts) if prompts > 0 else 0

    print(f"HAM Efficiency | Session {_fmt_datetime(last['startTime'])}")
    print(f"Duration:       {fmt_duration_ms(last['durationMs'])}  |  {prompts} prompts")
    print(f"Tokens loaded:  {last['inputTokens']:,}   (avg {avg_actual:,}/req)")
    print(f"Baseline est:   {last['baselineTokens']:,}  (avg {avg_baseline:,}/req)")
    print(f"Token savings:  {last['tokenSavingsPercent']:.1f}%")
    print(f"Energy saved:   ~{round_int(last['saved_wh'])} Wh")
    print(f"CO2e saved:     ~{fmt_co2e(max(0.0, last['saved_grams']))}")

    if last["filesLoaded"]:
        print("")
        print("Files loaded this session:")
        for item in last["filesLoaded"]:
            tokens = f"{item['tokens']} tokens" if item["tokens"] > 0 else ""
            print(f"  {item['path']:<30} {tokens}  ({item['loadCount']}x)")


def cmd_carbon(args: argparse.Namespace) -> int:
    snapshot = _load(args)
    carbon_sessions = calculate_carbon_sessions(snapshot.sessions, args.days, snapshot.projectPath, snapshot.health)
    last = carbon_sessions[0] if carbon_sessions else None

    if args.json:
        _print_json(last if args.last else calculate_carbon(snapshot.sessions, args.days, snapshot.health))
        return 0

    if args.last:
        if last is None:
            print("No sessions found.")
            return 0
        _print_last_session(last)
        return 0

    carbon = calculate_carbon(snapshot.sessions, args.days, snapshot.health)
    today = utc_now().astimezone().date()
    today_sessions = [s for s in snapshot.sessions if (_local(s.startTime) or datetime.min).date() == today]
    today_carbon = calculate_carbon(today_sessions, 1, snapshot.health)

    print("HAM Efficiency")
    print(
        f"Total saved:    {fmt_co2e(max(0.0, carbon['totalCO2e']['saved_grams']))} CO2e "
        f"(since {_fmt_date(carbon['trackingSince'])})"
    )
    print(
        f"Today:          {fmt_co2e(max(0.0, today_carbon['totalCO2e']['saved_grams']))} saved  |  "
        f"{today_carbon['totalSessions']} sessions"
    )
    if last:
        print(
            f"Last session:   {fmt_co2e(max(0.0, last['saved_grams']))} saved  |  {last['prompts']} prompts  |  "
            f"{last['tokenSavingsPercent']:.0f}% token reduction"
        )
    return 0


# ── benchmark ───────────────────────────────────────────────────────

def _pct_change(baseline: float, active: float) -> float:
    return (active - baseline) / baseline * 100 if baseline > 0 else 0.0


def _print_comparison_table(baseline: dict[str, Any], active: dict[str, Any], time_pct: float, token_pct: float, cache_delta: float) -> None:
    print(_TABLE_TOP)
    print(_TABLE_HEAD)
    print(_TABLE_SEP)
    print(f"  │ Tasks            │ {str(baseline['count']):<12} │ {str(active['count']):<12} │              │")
    print(
        f"  │ Avg Time         │ {fmt_duration_sec(baseline['avgTimeSec']):<12} │ "
        f"{fmt_duration_sec(active['avgTimeSec']):<12} │ {fmt_pct(time_pct):<12} │"
    )
    print(
        f"  │ Avg Tokens       │ {fmt_tokens(baseline['avgTokens']):<12} │ "
        f"{fmt_tokens(active['avgTokens']):<12} │ {fmt_pct(token_pct):<12} │"
    )
    print(
        f"  │ Avg Cache %      │ {str(baseline['avgCacheRate']) + '%':<12} │ "
        f"{str(active['avgCacheRate']) + '%':<12} │ {fmt_pct(cache_delta):<12} │"
    )
    print(_TABLE_BOTTOM)


def _print_no_data() -> None:
    print("HAM Benchmark")
    print("")
    print("No benchmark data found.")
    print("")
    print("To start benchmarking:")
    print('  1. Run "go ham" to set up HAM (auto-initializes baseline)')
    print('  2. Or run "ham baseline start" to begin a baseline capture')
    print("")
    print("The baseline captures 10 tasks without HAM memory loading")
    print("for an apples-to-apples comparison.")


def _print_baseline_progress(snapshot: SessionSnapshot, days: int) -> None:
    state = snapshot.benchmarkState
    progress = state.tasks_completed or 0
    target = state.tasks_target or 10
    pct = round_int(progress / target * 100)
    filled = min(20, round_int(pct / 5))
    bar = "█" * filled + "░" * (20 - filled)

    print("HAM Benchmark: Baseline in Progress")
    print("")
    print(f"  Progress: [{bar}] {progress}/{target} tasks ({pct}%)")
    print("")
    print("  Keep working normally. Baseline tasks skip subdirectory CLAUDE.md")
    print(f"  loading for a clean comparison. After {max(0, target - progress)} more tasks,")
    print("  benchmarking auto-transitions to active mode.")
    print("")
    if progress > 0:
        recent = [t for t in get_recent_tasks(snapshot.tasks, snapshot.sessions, progress, days) if not t["hamActive"]]
        if recent:
            avg_time = sum(t["durationSec"] for t in recent) / len(recent)
            avg_tokens = sum(t["tokens"] for t in recent) / len(recent)
            print(f"  Baseline so far: {fmt_duration_sec(avg_time)} avg time, {fmt_tokens(round_int(avg_tokens))} avg tokens")


def _print_model(comparison: dict[str, Any], query: str) -> None:
    by_model = comparison["byModel"]
    model_key = next((key for key in by_model if model_matches(key, query)), None)
    if model_key is None:
        print(f'  No tasks found for model matching "{query}".')
        print(f"  Available models: {', '.join(by_model)}")
        return

    group = by_model[model_key]
    print(f"  Filtered to model: {model_key}")
    print("")
    baseline, active = group["baseline"], group["active"]
    if not (baseline and active):
        print("  Insufficient data for this model; need both baseline and active tasks.")
        return
    _print_comparison_table(
        baseline,
        active,
        _pct_change(baseline["avgTimeSec"], active["avgTimeSec"]),
        _pct_change(baseline["avgTokens"], active["avgTokens"]),
        active["avgCacheRate"] - baseline["avgCacheRate"],
    )


def cmd_benchmark(args: argparse.Namespace) -> int:
    snapshot = _load(args)
    state = snapshot.benchmarkState
    summary = calculate_benchmark_summary(snapshot.tasks, snapshot.sessions, args.days)
    comparison = calculate_benchmark_comparison(snapshot.tasks, snapshot.sessions, args.days)

    if args.json:
        _print_json({"state": state.model_dump(), "summary": summary, "comparison": comparison})
        return 0

    if state.mode == "none" and summary["totalTasks"] == 0:
        _print_no_data()
        return 0
    if state.mode == "baseline":
        _print_baseline_progress(snapshot, args.days)
        return 0

    print("HAM Benchmark Comparison")
    print(f"(last {args.days} days)")
    print("")

    if not comparison["hasData"]:
        print("  No task data found in the selected time window.")
        return 0
    if args.model:
        _print_model(comparison, args.model)
        return 0

    baseline, active, delta = comparison["baseline"], comparison["active"], comparison["comparison"]
    if baseline and active and delta:
        _print_comparison_table(baseline, active, delta["timePct"], delta["tokenPct"], delta["cacheDelta"])
        if delta["estimatedSavings"] > 0:
            print("")
            print(f"  Estimated token savings: {fmt_tokens(delta['estimatedSavings'])} across {active['count']} active tasks")
    elif baseline:
        print(f"  Baseline captured ({baseline['count']} tasks) but no HAM-active tasks yet.")
        print("  Keep working with HAM enabled to see the comparison.")
    elif active:
        print(f"  HAM-active tasks found ({active['count']}) but no baseline data.")
        print('  Run "ham baseline start" to capture a baseline for comparison.')

    if len(comparison["byModel"]) > 1:
        print("")
        print("  Per-Model Breakdown:")
        for model, group in comparison["byModel"].items():
            b = f"{group['baseline']['count']} baseline" if group["baseline"] else "no baseline"
            a = f"{group['active']['count']} active" if group["active"] else "no active"
            print(f"    {short_model_name(model)}: {group['total']} tasks ({b}, {a})")
    return 0


# ── serve ───────────────────────────────────────────────────────────

def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from hamdash.main import create_app

    project_path = resolve_project_path(args.project)
    app = create_app(project_path, static_dir=args.static_dir)
    print("\n  HAM Dashboard")
    print(f"  Project: {project_path}")
    print(f"  Dashboard running at http://{args.host}:{args.port}\n")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info" if args.verbose else "warning")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project", default=str(config.PROJECT_PATH), help="Project root (default: current directory)")
    common.add_argument("--days", type=int, default=config.DEFAULT_DAYS, help="Window size in days")
    common.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    common.add_argument("--verbose", "-v", action="store_true", help="Log parser progress")

    parser = argparse.ArgumentParser(prog="hamdash", description="HAM dashboard analytics for Claude Code sessions")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", parents=[common], help="Run the dashboard API server")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.add_argument("--static-dir", default=None, help="Built dashboard frontend to serve at /")
    serve.set_defaults(handler=cmd_serve)

    stats = sub.add_parser("stats", parents=[common], help="Session, adoption and savings totals")
    stats.set_defaults(handler=cmd_stats)

    insights = sub.add_parser("insights", parents=[common], help="Advisory insights")
    insights.set_defaults(handler=cmd_insights)

    carbon = sub.add_parser("carbon", parents=[common], help="Energy and CO2e estimates")
    carbon.add_argument("--last", action="store_true", help="Show only the most recent session")
    carbon.set_defaults(handler=cmd_carbon)

    benchmark = sub.add_parser("benchmark", parents=[common], help="Baseline vs HAM task comparison")
    benchmark.add_argument("--model", default=None, help="Restrict the comparison to one model")
    benchmark.set_defaults(handler=cmd_benchmark)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.days < 1:
        print("--days must be at least 1")
        return 2
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
