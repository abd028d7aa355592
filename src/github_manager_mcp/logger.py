"""Operation logger.

Keeps an in-memory, append-only record of every log call for the life of the
process and mirrors each entry to the stdlib ``logging`` sink (stderr).
The record is observational only; nothing reads it to make decisions.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single log record."""

    level: str
    message: str
    data: Any
    timestamp: str

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"level": self.level, "message": self.message, "timestamp": self.timestamp}
        if self.data is not None:
            out["data"] = self.data
        return out


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class OperationLogger:
    """Logger collaborator handed to every operation."""

    def __init__(self, *, sink: logging.Logger | None = None) -> None:
        self._sink = sink or logging.getLogger("github_manager_mcp.operations")
        self._entries: list[LogEntry] = []
        self._lock = threading.Lock()

    def _log(self, level: str, message: str, data: Any = None) -> None:
        entry = LogEntry(level=level, message=message, data=data, timestamp=_now_rfc3339())
        with self._lock:
            self._entries.append(entry)

        if data is None:
            self._sink.log(_LEVELS[level], "%s", message)
        else:
            self._sink.log(_LEVELS[level], "%s %s", message, json.dumps(data, default=str, sort_keys=True))

    def debug(self, message: str, data: Any = None) -> None:
        self._log("debug", message, data)

    def info(self, message: str, data: Any = None) -> None:
        self._log("info", message, data)

    def warn(self, message: str, data: Any = None) -> None:
        self._log("warn", message, data)

    def error(self, message: str, data: Any = None) -> None:
        self._log("error", message, data)

    def get_logs(self) -> list[LogEntry]:
        """Return a copy of every entry recorded so far, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear_logs(self) -> None:
        with self._lock:
            self._entries.clear()
