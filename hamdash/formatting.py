"""Rounding and human-readable formatting helpers."""
from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up, matching the dashboard's display rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round2(value: float) -> float:
    return round_half_up(value, 2)


def round_int(value: float) -> int:
    return int(round_half_up(value, 0))


def fmt_tokens(n: int | float) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(int(n))


def fmt_pct(value: float) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.1f}%"


def fmt_duration_sec(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    remainder = round_int(seconds % 60)
    return f"{minutes}m {remainder}s"


def fmt_duration_ms(ms: float | None) -> str:
    if not ms or ms <= 0:
        return "-"
    minutes = int(ms // 60_000)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def fmt_co2e(grams: float) -> str:
    if grams < 1:
        return "< 1g"
    if grams < 1000:
        return f"{round_int(grams)}g"
    return f"{grams / 1000:.1f} kg"
