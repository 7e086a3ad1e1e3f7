"""Pydantic value objects returned by the parsers and aggregators."""
from __future__ import annotations

from pathlib import PurePath
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RoutingStatus = Literal["routed", "likely", "unrouted"]
HealthStatus = Literal["green", "yellow", "amber", "red"]
BenchmarkMode = Literal["none", "baseline", "active"]


# ── Session-related models ──────────────────────────────────────────

class Session(BaseModel):
    """One reconstructed agent conversation (one transcript file)."""

    model_config = ConfigDict(frozen=True)

    sessionId: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    durationMs: int = 0
    model: Optional[str] = None
    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadTokens: int = 0
    cacheCreationTokens: int = 0
    fileReads: tuple[str, ...] = ()
    contextFileReads: tuple[str, ...] = ()
    isHamOn: bool = False
    routingStatus: RoutingStatus = "unrouted"
    primaryDirectory: Optional[str] = None
    messageCount: int = 0
    toolCallCount: int = 0
    sourceFile: str = ""

    @property
    def total_tokens(self) -> int:
        return self.inputTokens + self.outputTokens

    def non_context_read_count(self, context_filename: str) -> int:
        return sum(1 for fp in self.fileReads if PurePath(fp).name != context_filename)


class RoutingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    path: str  # absolute, normalized


# ── Benchmark task models ───────────────────────────────────────────

class Task(BaseModel):
    """A paired start/end record from a benchmark task log."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str = ""
    timestamp: str
    endTimestamp: str
    durationMs: float = 0.0
    durationSec: float = 0.0
    hamActive: bool = True
    model: str = "unknown"
    filesRead: int = 0
    memoryFilesLoaded: int = 0
    status: str = "completed"
    estimatedTokens: int = 0

    @property
    def isBaseline(self) -> bool:
        return not self.hamActive


class BenchmarkState(BaseModel):
    """Persisted benchmarking lifecycle blob (``.ham/metrics/state.json``)."""

    model_config = ConfigDict(extra="allow")

    mode: BenchmarkMode = "none"
    tasks_completed: int = 0
    tasks_target: int = 10


# ── Context health models ───────────────────────────────────────────

class ContextHealthEntry(BaseModel):
    path: str  # relative to project root, "." for the root
    hasContextFile: bool = False
    status: HealthStatus = "red"
    lastModified: Optional[str] = None
    fileSize: int = 0
    sessionsTouched: int = 0
    coveredBy: Optional[str] = None


# ── Insight models ──────────────────────────────────────────────────

class InsightItem(BaseModel):
    category: str
    severity: Literal["high", "medium", "low"] = "low"
    type: Literal["action", "observation", "positive"] = "observation"
    title: str
    detail: str = ""
    action: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
