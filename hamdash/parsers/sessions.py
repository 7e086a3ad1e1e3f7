"""Parse Claude Code JSONL transcripts into Session records."""
from __future__ import annotations

import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from hamdash import config
from hamdash.date_utils import to_epoch_ms
from hamdash.models import RoutingEntry, Session
from hamdash.observability import record_ingestion, record_parser_failure, record_token_cost, start_span
from hamdash.parsers.records import AssistantMessage, UserMessage, decode_line
from hamdash.parsers.routing import classify_routing, extract_routing_table, root_context_path
from hamdash.pricing import calculate_cost

logger = logging.getLogger("hamdash.parser")


@dataclass
class SessionParseResult:
    sessions: list[Session] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    sessionDir: str = ""
    routingTable: list[RoutingEntry] = field(default_factory=list)


def resolve_project_path(project_path: Path | str) -> Path:
    """Absolute project root; ``~`` and relative paths are expanded against the cwd."""
    return Path(os.path.abspath(Path(str(project_path)).expanduser()))


def encode_project_path(project_path: Path | str) -> str:
    """Claude Code's directory name for a project: path separators become dashes."""
    return str(project_path).replace("\\", "-").replace("/", "-")


def project_session_dir(project_path: Path | str, claude_home: Path | None = None) -> Path:
    home = claude_home or config.CLAUDE_HOME
    return Path(home) / "projects" / encode_project_path(project_path)


def relative_to_project(file_path: str, project_path: Path | str) -> str | None:
    """Project-relative POSIX path (``.`` for the root), or ``None`` when outside."""
    root = os.path.normpath(str(project_path))
    target = file_path if os.path.isabs(file_path) else os.path.join(root, file_path)
    rel = os.path.relpath(os.path.normpath(target), root)
    if rel == ".." or rel.startswith(".." + os.sep):
        return None
    return rel.replace(os.sep, "/")


def relative_dir_of(file_path: str, project_path: Path | str) -> str | None:
    rel = relative_to_project(file_path, project_path)
    if rel is None or rel == ".":
        return None
    parent = rel.rsplit("/", 1)[0] if "/" in rel else "."
    return parent


def attribute_directory(
    file_reads: Sequence[str],
    project_path: Path | str,
    context_filename: str | None = None,
) -> str | None:
    """Directory with the most non-context-file reads; ties go to the smallest path."""
    filename = context_filename or config.CONTEXT_FILENAME
    counts: Counter[str] = Counter()
    for fp in file_reads:
        if os.path.basename(fp) == filename:
            continue
        rel_dir = relative_dir_of(fp, project_path)
        if rel_dir is None:
            continue
        counts[rel_dir] += 1

    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


def _is_scoped_context_read(file_path: str, project_path: Path | str, filename: str) -> bool:
    rel = relative_to_project(file_path, project_path)
    return rel is not None and rel not in {".", filename}


def parse_session_file(
    path: Path,
    project_path: Path | str,
    routing_table: Sequence[RoutingEntry] = (),
    *,
    context_filename: str | None = None,
) -> Session | None:
    """Stream one transcript into a Session.

    Blank and malformed lines are skipped. Returns ``None`` when no session id
    was seen. I/O and decoding errors propagate to the caller.
    """
    filename = context_filename or config.CONTEXT_FILENAME
    session_id: str | None = None
    model: str | None = None
    input_tokens = output_tokens = cache_read = cache_creation = 0
    message_count = tool_call_count = 0
    file_reads: list[str] = []
    context_reads: list[str] = []
    is_ham_on = False
    timestamps: list[tuple[float, str]] = []

    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            record = decode_line(line)
            if record is None:
                continue

            if record.sessionId and not session_id:
                session_id = record.sessionId

            if record.timestamp:
                epoch_ms = to_epoch_ms(record.timestamp)
                if epoch_ms is not None:
                    timestamps.append((epoch_ms, record.timestamp))

            message = record.message
            if isinstance(message, AssistantMessage):
                message_count += 1
                if message.usage:
                    input_tokens += message.usage.input_tokens
                    output_tokens += message.usage.output_tokens
                    cache_read += message.usage.cache_read_input_tokens
                    cache_creation += message.usage.cache_creation_input_tokens
                if message.model and not model:
                    model = message.model
                for block in message.toolUses:
                    tool_call_count += 1
                    if not block.is_file_read:
                        continue
                    fp = block.filePath or ""
                    file_reads.append(fp)
                    if os.path.basename(fp) == filename:
                        context_reads.append(fp)
                        if _is_scoped_context_read(fp, project_path, filename):
                            is_ham_on = True
            elif isinstance(message, UserMessage):
                message_count += 1

    if not session_id:
        return None

    start_time = end_time = None
    duration_ms = 0
    if timestamps:
        timestamps.sort()
        start_time = timestamps[0][1]
        end_time = timestamps[-1][1]
        duration_ms = int(round(timestamps[-1][0] - timestamps[0][0]))

    abs_context_reads = [
        fp if os.path.isabs(fp) else os.path.join(str(project_path), fp) for fp in context_reads
    ]
    routing_status = classify_routing(
        abs_context_reads,
        routing_table,
        root_context_path(project_path, filename),
    )

    return Session(
        sessionId=session_id,
        startTime=start_time,
        endTime=end_time,
        durationMs=duration_ms,
        model=model,
        inputTokens=input_tokens,
        outputTokens=output_tokens,
        cacheReadTokens=cache_read,
        cacheCreationTokens=cache_creation,
        fileReads=tuple(file_reads),
        contextFileReads=tuple(context_reads),
        isHamOn=is_ham_on,
        routingStatus=routing_status,
        primaryDirectory=attribute_directory(file_reads, project_path, filename),
        messageCount=message_count,
        toolCallCount=tool_call_count,
        sourceFile=path.name,
    )


def _start_sort_key(session: Session) -> float:
    return to_epoch_ms(session.startTime) or 0.0


def parse_sessions(
    project_path: Path | str,
    *,
    claude_home: Path | None = None,
    context_filename: str | None = None,
) -> SessionParseResult:
    """Parse every transcript for a project, newest session first.

    One bad file never aborts the batch: it is skipped and recorded in
    ``warnings``. A missing log directory yields an empty result.
    """
    project_path = resolve_project_path(project_path)
    session_dir = project_session_dir(project_path, claude_home)
    project_label = project_path.name
    result = SessionParseResult(sessionDir=str(session_dir))

    try:
        files = sorted(p for p in session_dir.iterdir() if p.suffix == ".jsonl" and p.is_file())
    except FileNotFoundError:
        logger.warning("No session directory found at %s", session_dir)
        return result
    except OSError as exc:
        logger.warning("Could not list session directory %s: %s", session_dir, exc)
        result.warnings.append(f"{session_dir}: {exc}")
        return result

    routing_table = extract_routing_table(project_path, context_filename)
    result.routingTable = routing_table

    with start_span("hamdash.parse_sessions", {"project": project_label, "files": len(files)}):
        for path in files:
            started = time.perf_counter()
            try:
                session = parse_session_file(
                    path,
                    project_path,
                    routing_table,
                    context_filename=context_filename,
                )
            except (OSError, ValueError, OverflowError, RecursionError) as exc:
                logger.warning("Skipping %s: %s", path.name, exc)
                result.warnings.append(f"{path.name}: {exc}")
                record_parser_failure("session", project_id=project_label)
                continue

            elapsed_ms = (time.perf_counter() - started) * 1000
            if session is None:
                record_ingestion("session", "skipped", elapsed_ms, project_id=project_label)
                continue
            record_ingestion("session", "parsed", elapsed_ms, project_id=project_label)
            record_token_cost(
                project_id=project_label,
                model=session.model or "",
                token_input=session.inputTokens,
                token_output=session.outputTokens,
                cost_usd=calculate_cost(session.inputTokens, session.outputTokens, session.model),
            )
            result.sessions.append(session)

    result.sessions.sort(key=_start_sort_key, reverse=True)
    return result
