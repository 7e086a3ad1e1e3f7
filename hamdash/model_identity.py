"""Model identity helpers shared by pricing, carbon and benchmark lookups."""
from __future__ import annotations

import re


_DATE_SUFFIX_PATTERN = re.compile(r"(?:-\d{8}|-\d{4}-\d{2}-\d{2})+$")


def canonical_model_name(raw_model: str | None) -> str:
    """Return a canonical model identifier with build/date suffixes removed.

    Example:
      claude-sonnet-4-5-20250514 -> claude-sonnet-4-5
    """
    raw = (raw_model or "").strip().lower()
    if not raw:
        return ""
    normalized = re.sub(r"[\s_]+", "-", raw)
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")
    stripped = _DATE_SUFFIX_PATTERN.sub("", normalized).strip("-")
    return stripped or normalized


def short_model_name(raw_model: str | None) -> str:
    """Compact label for tables: claude-sonnet-4-6 -> sonnet-4."""
    canonical = canonical_model_name(raw_model)
    if not canonical:
        return "unknown"
    trimmed = canonical[len("claude-"):] if canonical.startswith("claude-") else canonical
    return "-".join(trimmed.split("-")[:2])


def model_filter_tokens(value: str | None) -> list[str]:
    """Build normalized filter tokens for model string matching.

    Tokens are intended to be combined with AND semantics.
    Example: "Sonnet 4.6" -> ["sonnet", "4-6"].
    """
    raw = (value or "").strip().lower()
    if not raw:
        return []

    unique: list[str] = []
    seen: set[str] = set()
    for piece in re.split(r"[\s/_-]+", raw):
        normalized = piece.strip().replace(".", "-").strip("- ")
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        unique.append(normalized)
    return unique


def model_matches(raw_model: str | None, query: str | None) -> bool:
    tokens = model_filter_tokens(query)
    if not tokens:
        return False
    haystack = (raw_model or "").strip().lower()
    return all(token in haystack for token in tokens)
