"""Model pricing table and token/cost estimation."""
from __future__ import annotations

import math

from hamdash.model_identity import canonical_model_name

DEFAULT_PRICING_MODEL = "claude-sonnet-4-6"

# USD per million tokens.
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-opus-4-6": {"input": 15.0, "output": 75.0},
    "claude-sonnet-4-6": {"input": 3.0, "output": 15.0},
    "claude-sonnet-4-5-20250514": {"input": 3.0, "output": 15.0},
    "claude-haiku-4-5-20251001": {"input": 0.8, "output": 4.0},
    # Older models
    "claude-3-5-sonnet-20241022": {"input": 3.0, "output": 15.0},
    "claude-3-5-haiku-20241022": {"input": 0.8, "output": 4.0},
    "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
}

# Rough chars-per-token ratio used for file-size based estimates.
CHARS_PER_TOKEN = 4


def resolve_model_entry(model: str | None, table: dict[str, dict], default_key: str) -> dict:
    """Look up ``model`` in ``table``: exact name, then canonical name, then default."""
    raw = (model or "").strip()
    if raw in table:
        return table[raw]
    canonical = canonical_model_name(raw)
    if canonical:
        for key, entry in table.items():
            if canonical_model_name(key) == canonical:
                return entry
    return table[default_key]


def resolve_pricing(model: str | None) -> dict[str, float]:
    return resolve_model_entry(model, MODEL_PRICING, DEFAULT_PRICING_MODEL)


def calculate_cost(input_tokens: int, output_tokens: int, model: str | None) -> float:
    """Cost in dollars for the given token counts."""
    pricing = resolve_pricing(model)
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost


def estimate_tokens(char_count: int | float) -> int:
    """Estimate token count from a character or byte length (~4 chars per token)."""
    if not char_count or char_count <= 0:
        return 0
    return int(math.ceil(char_count / CHARS_PER_TOKEN))
