"""YAML frontmatter helpers for markdown files (SKILL.md)."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("hamdash.parser")

DEFAULT_HAM_VERSION = "0.0.0"

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---", re.DOTALL)


def extract_frontmatter(text: str) -> dict[str, Any]:
    """Extract YAML frontmatter from a markdown file."""
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}
    try:
        parsed = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def read_ham_version(path: Path) -> str:
    """``ham_version`` from the skill manifest, or ``0.0.0`` when unavailable."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return DEFAULT_HAM_VERSION
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return DEFAULT_HAM_VERSION
    version = extract_frontmatter(text).get("ham_version")
    if version is None or str(version).strip() == "":
        return DEFAULT_HAM_VERSION
    return str(version).strip()
