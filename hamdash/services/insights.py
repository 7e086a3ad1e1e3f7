"""Rule-based advisory insights derived from stats, health and daily activity.

Every threshold here is a fixed literal; the output depends only on the inputs
(plus the ``generatedAt`` stamp of the structured variant).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from hamdash.date_utils import format_iso, utc_now
from hamdash.formatting import fmt_tokens, round_int
from hamdash.models import ContextHealthEntry, InsightItem

LOW_ADOPTION_PCT = 50
STRONG_ADOPTION_PCT = 80
STRONG_ROUTING_PCT = 70
HIGH_CACHE_PCT = 70
MODERATE_CACHE_PCT = 30
ACTIVITY_WINDOW_DAYS = 7
CONSISTENT_ACTIVE_DAYS = 5
MANY_RED_DIRS = 5
SOME_RED_DIRS = 2


def _dollars(value: float) -> str:
    return f"${value:.2f}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _active_days(daily: Sequence[dict[str, Any]]) -> int:
    return sum(1 for day in list(daily)[-ACTIVITY_WINDOW_DAYS:] if day.get("sessions", 0) > 0)


def _by_status(health: Sequence[ContextHealthEntry], status: str) -> list[ContextHealthEntry]:
    return [entry for entry in health if entry.status == status]


def generate_insights(
    stats: dict[str, Any],
    health: Sequence[ContextHealthEntry],
    daily: Sequence[dict[str, Any]],
    days: int,
) -> dict[str, Any]:
    """Narrative insights: a summary headline plus supporting sentences."""
    total = stats.get("totalSessions", 0)
    if total == 0:
        return {
            "summary": f"No Claude Code sessions found for this project in the last {days} days.",
            "insights": ["Start a Claude Code session in this project to begin tracking usage."],
        }

    lines: list[str] = []
    if total == 1:
        lines.append(
            f"One session in the last {days} days: {fmt_tokens(stats['totalInputTokens'])} input tokens, "
            f"{_dollars(stats['totalCost'])} spent."
        )
    else:
        avg_tokens = round_int(stats["totalInputTokens"] / total)
        lines.append(
            f"{total} sessions over {days} days, averaging {fmt_tokens(avg_tokens)} tokens each. "
            f"Total spend: {_dollars(stats['totalCost'])}."
        )

    coverage = stats.get("coveragePercent", 0)
    saved = f"{fmt_tokens(stats.get('totalTokensSaved', 0))} tokens ({_dollars(stats.get('totalCostSaved', 0))})"
    if stats.get("hamOnCount", 0) == 0:
        lines.append(
            "No sessions are using HAM yet, so Claude searches the whole project every time it needs "
            'one directory. Run "go ham" to set up scoped context files and savings will start showing here.'
        )
    elif coverage < LOW_ADOPTION_PCT:
        lines.append(
            f"HAM is active in {coverage}% of sessions ({stats['hamOnCount']} of {total}). "
            "Adding CLAUDE.md files to your active directories means Claude opens the right context first."
        )
    elif coverage >= STRONG_ADOPTION_PCT:
        lines.append(
            f"{coverage}% of sessions are using HAM, so Claude almost always starts from the right context. "
            f"That's saved an estimated {saved}."
        )
    else:
        lines.append(
            f"HAM is active in {coverage}% of sessions, saving an estimated {saved}. "
            "More CLAUDE.md coverage means less time searching."
        )

    routed_total = stats.get("routedCount", 0) + stats.get("likelyRoutedCount", 0)
    routed_pct = stats.get("routedPercent", 0)
    if routed_total == 0:
        lines.append(
            "No sessions are using Context Routing yet. Add a routing section to your root CLAUDE.md "
            '(run "ham route") so Claude goes straight to the right directory instead of scanning the tree.'
        )
    elif routed_pct >= STRONG_ROUTING_PCT:
        lines.append(f"{routed_pct}% of sessions follow Context Routing and go straight to the right context file.")
    elif routed_pct > 0:
        lines.append(
            f"{routed_pct}% of sessions follow Context Routing. More routes means less time scanning "
            "for context and more time on the actual task."
        )

    cache_read = stats.get("totalCacheRead", 0)
    if cache_read > 0:
        cache_pct = round_int(cache_read / (stats.get("totalInputTokens", 0) + cache_read) * 100)
        if cache_pct > HIGH_CACHE_PCT:
            lines.append(
                f"Cache hit rate is {cache_pct}%: Claude is reusing {fmt_tokens(cache_read)} tokens "
                "from recent turns instead of re-reading files."
            )
        elif cache_pct > MODERATE_CACHE_PCT:
            lines.append(
                f"{cache_pct}% of tokens are coming from cache ({fmt_tokens(cache_read)} tokens). "
                "Longer sessions push this number up."
            )

    if days >= ACTIVITY_WINDOW_DAYS:
        active_days = _active_days(daily)
        if active_days == 0:
            lines.append("No activity in the last 7 days.")
        elif active_days >= CONSISTENT_ACTIVE_DAYS:
            lines.append(f"Active {active_days} of the last 7 days; consistent use keeps cached context warm.")

    red = _by_status(health, "red")
    amber = _by_status(health, "amber")
    green = _by_status(health, "green")

    if 0 < len(red) <= MANY_RED_DIRS:
        names = ", ".join(entry.path for entry in red[:3])
        extra = f" and {len(red) - 3} more" if len(red) > 3 else ""
        lines.append(
            f"{len(red)} directories are missing CLAUDE.md files: {names}{extra}. "
            "Claude has to rediscover these directories every time it works there."
        )
    elif len(red) > MANY_RED_DIRS:
        lines.append(
            f'{len(red)} directories are missing CLAUDE.md files. Run "go ham" to generate context files '
            "across the project."
        )

    if amber:
        lines.append(
            f"{_plural(len(amber), 'context file')} may be stale. Worth a quick review to make sure "
            "Claude isn't following outdated directions."
        )

    if green and not red and not amber:
        lines.append(f"All {len(green)} source directories have up-to-date CLAUDE.md files: full coverage.")

    return {"summary": lines[0] if lines else "", "insights": lines[1:]}


def _adoption_item(stats: dict[str, Any]) -> InsightItem:
    total = stats["totalSessions"]
    ham_on = stats.get("hamOnCount", 0)
    coverage = stats.get("coveragePercent", 0)
    saved = f"~{fmt_tokens(stats.get('totalTokensSaved', 0))} tokens ({_dollars(stats.get('totalCostSaved', 0))})"
    data = {"hamOnCount": ham_on, "totalSessions": total, "coveragePercent": coverage}

    if ham_on == 0:
        return InsightItem(
            category="ham_adoption",
            severity="high",
            type="action",
            title="No sessions using HAM",
            detail=f"0 of {total} sessions have HAM enabled.",
            action='Run "go ham" to set up scoped context files.',
            data={**data, "coveragePercent": 0},
        )
    if coverage < LOW_ADOPTION_PCT:
        return InsightItem(
            category="ham_adoption",
            severity="medium",
            type="action",
            title="Low HAM adoption",
            detail=f"HAM is active in {coverage}% of sessions ({ham_on} of {total}).",
            action="Add CLAUDE.md files to active directories to increase coverage.",
            data=data,
        )
    data["tokensSaved"] = stats.get("totalTokensSaved", 0)
    if coverage < STRONG_ADOPTION_PCT:
        return InsightItem(
            category="ham_adoption",
            severity="low",
            type="observation",
            title="Moderate HAM adoption",
            detail=f"HAM is active in {coverage}% of sessions, saving {saved}.",
            data=data,
        )
    return InsightItem(
        category="ham_adoption",
        severity="low",
        type="positive",
        title="Strong HAM adoption",
        detail=f"{coverage}% of sessions are using HAM, saving {saved}.",
        data=data,
    )


def _routing_item(stats: dict[str, Any]) -> InsightItem:
    total = stats["totalSessions"]
    routed_total = stats.get("routedCount", 0) + stats.get("likelyRoutedCount", 0)
    routed_pct = stats.get("routedPercent", 0)
    data = {"routedCount": routed_total, "totalSessions": total, "routedPercent": routed_pct}

    if routed_total == 0:
        return InsightItem(
            category="context_routing",
            severity="high",
            type="action",
            title="No sessions using Context Routing",
            detail=f"0 of {total} sessions follow Context Routing.",
            action='Add a routing section to your root CLAUDE.md (run "ham route").',
            data={**data, "routedPercent": 0},
        )
    if routed_pct < STRONG_ROUTING_PCT:
        return InsightItem(
            category="context_routing",
            severity="low",
            type="observation",
            title="Partial Context Routing",
            detail=f"{routed_pct}% of sessions follow Context Routing.",
            data=data,
        )
    return InsightItem(
        category="context_routing",
        severity="low",
        type="positive",
        title="Strong Context Routing",
        detail=f"{routed_pct}% of sessions follow Context Routing.",
        data=data,
    )


def _coverage_gap_item(red: Sequence[ContextHealthEntry]) -> InsightItem:
    names = ", ".join(entry.path for entry in red[:MANY_RED_DIRS])
    extra = f" and {len(red) - MANY_RED_DIRS} more" if len(red) > MANY_RED_DIRS else ""
    if len(red) > MANY_RED_DIRS:
        severity = "high"
    elif len(red) > SOME_RED_DIRS:
        severity = "medium"
    else:
        severity = "low"
    return InsightItem(
        category="coverage_gap",
        severity=severity,
        type="action",
        title=f"{len(red)} directories missing CLAUDE.md",
        detail=f"Directories without context files: {names}{extra}.",
        action='Run "go ham" to generate context files, or create them manually.',
        data={"count": len(red), "directories": [entry.path for entry in red]},
    )


def _activity_item(daily: Sequence[dict[str, Any]]) -> InsightItem | None:
    active_days = _active_days(daily)
    if active_days == 0:
        return InsightItem(
            category="activity",
            severity="low",
            type="observation",
            title="No activity in the last 7 days",
            detail="No Claude Code sessions recorded in the past week.",
            data={"activeDays": 0, "windowDays": ACTIVITY_WINDOW_DAYS},
        )
    if active_days >= CONSISTENT_ACTIVE_DAYS:
        return InsightItem(
            category="activity",
            severity="low",
            type="positive",
            title="Consistent daily usage",
            detail=f"Active {active_days} of the last 7 days; consistent use keeps cached context warm.",
            data={"activeDays": active_days, "windowDays": ACTIVITY_WINDOW_DAYS},
        )
    return None


def generate_structured_insights(
    stats: dict[str, Any],
    health: Sequence[ContextHealthEntry],
    daily: Sequence[dict[str, Any]],
    days: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Machine-readable insight items in fixed category order."""
    items: list[InsightItem] = []
    total = stats.get("totalSessions", 0)

    if total > 0:
        items.append(_adoption_item(stats))
        items.append(_routing_item(stats))

    red = _by_status(health, "red")
    if red:
        items.append(_coverage_gap_item(red))

    amber = _by_status(health, "amber")
    if amber:
        items.append(
            InsightItem(
                category="stale_context",
                severity="medium",
                type="action",
                title=f"{_plural(len(amber), 'context file')} may be stale",
                detail=f"Potentially outdated CLAUDE.md files: {', '.join(entry.path for entry in amber)}.",
                action="Review these files to ensure they reflect current code.",
                data={"count": len(amber), "directories": [entry.path for entry in amber]},
            )
        )

    if days >= ACTIVITY_WINDOW_DAYS:
        activity = _activity_item(daily)
        if activity is not None:
            items.append(activity)

    return {
        "generatedAt": format_iso(now or utc_now()),
        "days": days,
        "totalSessions": total,
        "items": [item.model_dump() for item in items],
    }
