"""Structured audit trail.

One JSON line per tool call, written to stderr (stdout carries the MCP
transport). Lines identify the tool, the operation it resolved to, the
organization/repository it touched and how it ended. Tokens and request
headers never appear here.
"""

from __future__ import annotations

import enum
import json
import sys
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TextIO

from .errors import ErrorCode

NO_TARGET = "<none>"


def new_correlation_id() -> str:
    """Generate a random correlation id tying a tool call to its log lines."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Outcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    DENIED = "denied"
    FAILED = "failed"


def outcome_for(code: ErrorCode | None) -> Outcome:
    """Rejected input and refused access are denials; everything else failed."""
    if code is None:
        return Outcome.SUCCEEDED
    if code in (ErrorCode.INPUT_INVALID, ErrorCode.ACCESS_DENIED):
        return Outcome.DENIED
    return Outcome.FAILED


def describe_target(arguments: Mapping[str, Any]) -> str:
    """Render the ``org`` or ``org/repo`` a call addresses."""
    org = arguments.get("org")
    repo = arguments.get("repo") or arguments.get("name")
    if not isinstance(org, str) or not org:
        return NO_TARGET
    if isinstance(repo, str) and repo:
        return f"{org}/{repo}"
    return org


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    tool: str
    operation: str | None
    target: str
    outcome: Outcome
    error_code: ErrorCode | None
    duration_ms: int | None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "tool": self.tool,
            "target": self.target,
            "outcome": self.outcome.value,
        }
        if self.operation is not None:
            payload["operation"] = self.operation
        if self.error_code is not None:
            payload["error_code"] = self.error_code.value
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        return payload


class AuditLogger:
    """Writes audit events as JSON lines to a text stream (stderr by default)."""

    def __init__(self, *, stream: TextIO | None = None) -> None:
        self._stream = stream

    def write_event(self, event: AuditEvent) -> None:
        line = json.dumps(event.to_payload(), sort_keys=True, separators=(",", ":"))
        print(line, file=self._stream or sys.stderr, flush=True)

    def start(self) -> float:
        """Monotonic start mark for ``elapsed_ms``."""
        return time.monotonic()

    def elapsed_ms(self, start: float | None) -> int | None:
        if start is None:
            return None
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    tool: str,
    target: str,
    operation: str | None = None,
    error_code: ErrorCode | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event; the outcome follows from ``error_code``."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        tool=tool,
        operation=operation,
        target=target,
        outcome=outcome_for(error_code),
        error_code=error_code,
        duration_ms=duration_ms,
    )
