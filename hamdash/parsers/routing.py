"""Context Routing table extraction and per-session routing classification."""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Sequence

from hamdash import config
from hamdash.models import RoutingEntry, RoutingStatus

logger = logging.getLogger("hamdash.parser")

_HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+(.*?)\s*#*\s*$")
# "→ API handlers: src/api/CLAUDE.md", optionally bulleted ("- -> label: path")
_ROUTE_LINE_PATTERN = re.compile(r"^\s*(?:[-*+]\s+)?(?:→|->|=>|⇒)\s*(?P<label>[^:]+?)\s*:\s*(?P<path>.+?)\s*$")


def normalize_abs_path(raw_path: str, project_path: Path | str) -> str:
    """Absolute, normalized form of a path; relative paths resolve against the project."""
    value = os.path.expanduser(str(raw_path).strip())
    if not os.path.isabs(value):
        value = os.path.join(str(project_path), value)
    return os.path.normpath(value)


def root_context_path(project_path: Path | str, context_filename: str | None = None) -> str:
    return os.path.normpath(os.path.join(str(project_path), context_filename or config.CONTEXT_FILENAME))


def parse_routing_section(
    content: str,
    project_path: Path | str,
    *,
    context_filename: str | None = None,
    section_title: str | None = None,
) -> list[RoutingEntry]:
    """Collect arrow-prefixed ``label: path`` lines under the routing heading."""
    filename = context_filename or config.CONTEXT_FILENAME
    title = (section_title or config.ROUTING_SECTION_TITLE).lower()
    entries: list[RoutingEntry] = []
    in_section = False

    for line in content.splitlines():
        heading = _HEADING_PATTERN.match(line)
        if heading:
            if in_section:
                break
            in_section = title in heading.group(1).lower()
            continue
        if not in_section:
            continue

        match = _ROUTE_LINE_PATTERN.match(line)
        if not match:
            continue
        raw_path = match.group("path").strip().strip("`'\"")
        label = match.group("label").strip().strip("*_`")
        if not raw_path:
            continue

        # A route may name a directory instead of its context file.
        if os.path.basename(raw_path.rstrip("/\\")) != filename:
            raw_path = os.path.join(raw_path, filename)
        entries.append(RoutingEntry(label=label, path=normalize_abs_path(raw_path, project_path)))

    return entries


def extract_routing_table(project_path: Path | str, context_filename: str | None = None) -> list[RoutingEntry]:
    """Read the project's root context file and return its routing table.

    A missing or unreadable root file yields an empty table.
    """
    root_file = Path(root_context_path(project_path, context_filename))
    try:
        content = root_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read routing table from %s: %s", root_file, exc)
        return []
    return parse_routing_section(content, project_path, context_filename=context_filename)


def classify_routing(
    context_reads: Sequence[str],
    routing_table: Sequence[RoutingEntry],
    root_context: str,
) -> RoutingStatus:
    """Classify a session's ordered context-file reads against the routing table.

    routed:   the read right after the first root-file read is a routed file
    likely:   some later read is a routed file
    unrouted: otherwise, including when there is no table or no root read
    """
    if not routing_table:
        return "unrouted"

    root = os.path.normpath(root_context)
    reads = [os.path.normpath(path) for path in context_reads]
    try:
        root_idx = reads.index(root)
    except ValueError:
        return "unrouted"

    routed_paths = {entry.path for entry in routing_table}
    following = reads[root_idx + 1:]
    if following and following[0] in routed_paths:
        return "routed"
    if any(path in routed_paths for path in following):
        return "likely"
    return "unrouted"
