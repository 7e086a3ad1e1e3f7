"""Per-directory context-file coverage health."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Sequence

from hamdash import config
from hamdash.date_utils import epoch_to_iso
from hamdash.models import ContextHealthEntry, HealthStatus, Session
from hamdash.observability import start_span
from hamdash.parsers.sessions import relative_to_project

logger = logging.getLogger("hamdash.health")

SOURCE_EXTENSIONS = frozenset({
    ".js", ".jsx", ".ts", ".tsx", ".py", ".swift", ".kt",
    ".dart", ".go", ".rs", ".java", ".c", ".cpp", ".h",
    ".rb", ".php", ".cs", ".vue", ".svelte",
})

EXCLUDED_DIR_NAMES = frozenset({"node_modules", "dist", "build", ".git", "__pycache__", ".next", "vendor"})

STATUS_ORDER: dict[str, int] = {"green": 0, "yellow": 1, "amber": 2, "red": 3}

# Sessions touching a directory before it counts as possibly stale.
STALE_TOUCH_THRESHOLD = 2

DirectoryFilter = Callable[[Path, Path], bool]


@dataclass(frozen=True)
class DirectoryListing:
    path: Path
    file_names: tuple[str, ...]


def default_directory_filter(path: Path, root: Path) -> bool:
    """Descend unless the directory is hidden or a build/dependency folder. The root always passes."""
    if path == root:
        return True
    name = path.name
    if name.startswith("."):
        return False
    return name not in EXCLUDED_DIR_NAMES


def walk_directories(root: Path, should_descend: DirectoryFilter = default_directory_filter) -> Iterator[DirectoryListing]:
    """Pre-order traversal with an explicit stack; children in name order.

    Unreadable directories are skipped and symlinked directories are not followed.
    """
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        if not should_descend(current, root):
            continue
        try:
            with os.scandir(current) as it:
                items = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", current, exc)
            continue

        file_names: list[str] = []
        subdirs: list[Path] = []
        for item in items:
            try:
                if item.is_dir(follow_symlinks=False):
                    subdirs.append(current / item.name)
                elif item.is_file():
                    file_names.append(item.name)
            except OSError:
                continue

        yield DirectoryListing(path=current, file_names=tuple(file_names))
        stack.extend(reversed(subdirs))


def has_source_files(file_names: Sequence[str]) -> bool:
    return any(os.path.splitext(name)[1] in SOURCE_EXTENSIONS for name in file_names)


def build_dir_touch_counts(
    sessions: Sequence[Session],
    project_path: Path | str,
    context_filename: str | None = None,
) -> dict[str, int]:
    """Map project-relative directory -> number of sessions that read a file in it."""
    filename = context_filename or config.CONTEXT_FILENAME
    counts: dict[str, int] = {}
    for session in sessions:
        dirs_in_session: set[str] = set()
        for fp in session.fileReads:
            if os.path.basename(fp) == filename:
                continue
            rel = relative_to_project(fp, project_path)
            if rel is None or rel == ".":
                continue
            dirs_in_session.add(rel.rsplit("/", 1)[0] if "/" in rel else ".")
        for rel_dir in dirs_in_session:
            counts[rel_dir] = counts.get(rel_dir, 0) + 1
    return counts


def classify_health(has_context_file: bool, touch_count: int) -> HealthStatus:
    """red: no context file; amber: file present but busy (>= 2 sessions); green otherwise.

    The file's mtime is not consulted; amber is a touch-count heuristic.
    """
    if not has_context_file:
        return "red"
    if touch_count >= STALE_TOUCH_THRESHOLD:
        return "amber"
    return "green"


def find_covering_parent(rel_path: str, covered_paths: set[str]) -> str | None:
    """Nearest ancestor (up to ``.``) that has its own context file."""
    if rel_path == ".":
        return None
    segments = rel_path.split("/")
    for i in range(len(segments) - 1, -1, -1):
        ancestor = "." if i == 0 else "/".join(segments[:i])
        if ancestor in covered_paths:
            return ancestor
    return None


def _context_file_stat(directory: Path, filename: str) -> tuple[str | None, int] | None:
    try:
        stats = (directory / filename).stat()
    except OSError:
        return None
    return epoch_to_iso(stats.st_mtime), int(stats.st_size)


def scan_health_entries(
    project_path: Path | str,
    dir_touch_counts: dict[str, int],
    *,
    context_filename: str | None = None,
    should_descend: DirectoryFilter = default_directory_filter,
) -> list[ContextHealthEntry]:
    """First pass: one entry per source directory, in traversal order."""
    filename = context_filename or config.CONTEXT_FILENAME
    root = Path(str(project_path))
    entries: list[ContextHealthEntry] = []

    for listing in walk_directories(root, should_descend):
        if not has_source_files(listing.file_names):
            continue
        rel_path = relative_to_project(str(listing.path), root) or "."
        file_stat = _context_file_stat(listing.path, filename) if filename in listing.file_names else None
        touch_count = dir_touch_counts.get(rel_path, 0)
        has_context_file = file_stat is not None
        entries.append(
            ContextHealthEntry(
                path=rel_path,
                hasContextFile=has_context_file,
                status=classify_health(has_context_file, touch_count),
                lastModified=file_stat[0] if file_stat else None,
                fileSize=file_stat[1] if file_stat else 0,
                sessionsTouched=touch_count,
            )
        )
    return entries


def apply_parent_coverage(entries: list[ContextHealthEntry]) -> list[ContextHealthEntry]:
    """Second pass: red entries under an ancestor with a context file become yellow."""
    by_path = {entry.path: entry for entry in entries if entry.hasContextFile}
    covered_paths = set(by_path)
    result: list[ContextHealthEntry] = []
    for entry in entries:
        if entry.status != "red":
            result.append(entry)
            continue
        parent_path = find_covering_parent(entry.path, covered_paths)
        if parent_path is None:
            result.append(entry)
            continue
        parent = by_path[parent_path]
        result.append(
            entry.model_copy(
                update={
                    "status": "yellow",
                    "coveredBy": parent_path,
                    "lastModified": parent.lastModified,
                    "fileSize": parent.fileSize,
                }
            )
        )
    return result


def check_context_health(
    project_path: Path | str,
    sessions: Sequence[Session],
    *,
    context_filename: str | None = None,
    should_descend: DirectoryFilter = default_directory_filter,
) -> list[ContextHealthEntry]:
    """Context-file health per source directory, best status first."""
    with start_span("hamdash.check_context_health", {"sessions": len(sessions)}):
        touch_counts = build_dir_touch_counts(sessions, project_path, context_filename)
        entries = scan_health_entries(
            project_path,
            touch_counts,
            context_filename=context_filename,
            should_descend=should_descend,
        )
        entries = apply_parent_coverage(entries)
    return sorted(entries, key=lambda entry: STATUS_ORDER.get(entry.status, 4))
