"""Defensive decoding of Claude Code JSONL transcript records.

Transcript lines are arbitrary JSON objects. Only the fields the session parser
needs are lifted into typed records here; everything else is ignored and any
missing or malformed field decodes to a safe default.
"""
from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

READ_TOOL_NAMES = {"Read"}


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0


class ToolUseBlock(BaseModel):
    kind: Literal["tool_use"] = "tool_use"
    name: str = ""
    filePath: Optional[str] = None

    @property
    def is_file_read(self) -> bool:
        return self.name in READ_TOOL_NAMES and bool(self.filePath)


class AssistantMessage(BaseModel):
    kind: Literal["assistant"] = "assistant"
    model: Optional[str] = None
    usage: Optional[TokenUsage] = None
    toolUses: list[ToolUseBlock] = Field(default_factory=list)


class UserMessage(BaseModel):
    kind: Literal["user"] = "user"


Message = Annotated[Union[AssistantMessage, UserMessage], Field(discriminator="kind")]


class LogRecord(BaseModel):
    sessionId: Optional[str] = None
    timestamp: Optional[str] = None
    message: Optional[Message] = None


def _coerce_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return count if count > 0 else 0


def _coerce_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _decode_usage(raw: Any) -> Optional[TokenUsage]:
    if not isinstance(raw, dict):
        return None
    return TokenUsage(
        input_tokens=_coerce_count(raw.get("input_tokens")),
        output_tokens=_coerce_count(raw.get("output_tokens")),
        cache_read_input_tokens=_coerce_count(raw.get("cache_read_input_tokens")),
        cache_creation_input_tokens=_coerce_count(raw.get("cache_creation_input_tokens")),
    )


def _decode_tool_uses(content: Any) -> list[ToolUseBlock]:
    if not isinstance(content, list):
        return []
    blocks: list[ToolUseBlock] = []
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        tool_input = block.get("input")
        file_path = _coerce_str(tool_input.get("file_path")) if isinstance(tool_input, dict) else None
        blocks.append(ToolUseBlock(name=str(block.get("name") or ""), filePath=file_path))
    return blocks


def _decode_message(raw: Any) -> Optional[Message]:
    if not isinstance(raw, dict):
        return None
    role = raw.get("role")
    if role == "assistant":
        return AssistantMessage(
            model=_coerce_str(raw.get("model")),
            usage=_decode_usage(raw.get("usage")),
            toolUses=_decode_tool_uses(raw.get("content")),
        )
    if role == "user":
        return UserMessage()
    return None


def decode_record(raw: Any) -> Optional[LogRecord]:
    """Lift one parsed JSON value into a ``LogRecord``; non-objects yield ``None``."""
    if not isinstance(raw, dict):
        return None
    message_raw = raw.get("message")
    timestamp = _coerce_str(raw.get("timestamp"))
    if timestamp is None and isinstance(message_raw, dict):
        timestamp = _coerce_str(message_raw.get("timestamp"))
    return LogRecord(
        sessionId=_coerce_str(raw.get("sessionId")),
        timestamp=timestamp,
        message=_decode_message(message_raw),
    )


def decode_line(line: str) -> Optional[LogRecord]:
    """Decode one JSONL line; blank or unparsable lines yield ``None``."""
    stripped = line.strip()
    if not stripped:
        return None
    try:
        raw = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return decode_record(raw)
