"""Error types, the error factory and failure classification.

Every failure an operation can hit is normalized to ``OperationError`` before it
crosses the operation boundary. Raw failures coming out of the GitHub client are
typed (``GitHubApiError``, ``GitHubNetworkError``, ``UnexpectedResponseError``) so
classification never depends on which attributes a caught object happens to carry.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any

import httpx

from .rate_limit import format_reset

SCOPES_DOCUMENTATION_URL = "https://docs.github.com/apps/building-oauth-apps/understanding-scopes-for-oauth-apps"

# Context keys the factory threads from an operation into the error details.
_CONTEXT_KEYS = (
    "required_scopes",
    "current_scopes",
    "missing_scopes",
    "organization",
    "repository",
    "collaborator",
    "settings",
    "documentation",
)


class ErrorCode(str, enum.Enum):
    """Failure classes surfaced to callers."""

    INPUT_INVALID = "INPUT_INVALID"
    ACCESS_DENIED = "ACCESS_DENIED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL = "INTERNAL"


class ConfigError(Exception):
    """Host configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class GitHubError(Exception):
    """Base class for raw failures raised by the GitHub client."""


@dataclass(slots=True, eq=False)
class GitHubApiError(GitHubError):
    """GitHub answered with an HTTP error status."""

    status: int
    message: str
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    @property
    def is_rate_limited(self) -> bool:
        if self.status not in (403, 429):
            return False
        texts = [self.message]
        if isinstance(self.data, str):
            texts.append(self.data)
        elif isinstance(self.data, dict) and isinstance(self.data.get("message"), str):
            texts.append(self.data["message"])
        return any("rate limit" in t.lower() for t in texts)

    @property
    def request_id(self) -> str | None:
        return self.headers.get("x-github-request-id")

    @property
    def documentation_url(self) -> str | None:
        if isinstance(self.data, dict):
            url = self.data.get("documentation_url")
            if isinstance(url, str):
                return url
        return None


class GitHubNetworkError(GitHubError):
    """The request never produced an HTTP response (refused, timed out, DNS)."""


class UnexpectedResponseError(GitHubError):
    """GitHub returned a payload that does not have the expected shape."""


@dataclass(slots=True, eq=False)
class OperationError(Exception):
    """The uniform error raised by every operation."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def merge_context(self, context: dict[str, Any]) -> None:
        """Enrich details in place; keys already present are kept.

        ``action`` always follows the operation that surfaced the error.
        """
        for key, value in context.items():
            if value is None:
                continue
            if key == "action":
                self.details["action"] = value
            elif key not in self.details:
                self.details[key] = value

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


def classify_failure(exc: BaseException) -> ErrorCode:
    """Map any failure onto an ``ErrorCode``.

    Evaluated in priority order: rate limiting, not found, bad credentials,
    network, already-uniform, everything else.
    """
    if isinstance(exc, GitHubApiError):
        if exc.is_rate_limited:
            return ErrorCode.RATE_LIMITED
        if exc.status == 404:
            return ErrorCode.NOT_FOUND
        if exc.status == 401:
            return ErrorCode.ACCESS_DENIED
        return ErrorCode.INTERNAL
    if isinstance(exc, (GitHubNetworkError, httpx.TransportError, asyncio.TimeoutError, OSError)):
        return ErrorCode.NETWORK_ERROR
    if isinstance(exc, OperationError):
        return exc.code
    return ErrorCode.INTERNAL


def _original_error(raw: BaseException) -> dict[str, Any]:
    if isinstance(raw, GitHubApiError):
        return {
            "status": raw.status,
            "message": raw.message,
            "response": {"data": raw.data, "headers": dict(raw.headers)},
            "headers": dict(raw.headers),
        }
    return {"status": None, "message": str(raw) or type(raw).__name__, "response": None, "headers": None}


def build_error(message: str, code: ErrorCode, raw: BaseException, context: dict[str, Any]) -> OperationError:
    """Build a uniform error from a raw failure plus operation context. Never raises."""
    details: dict[str, Any] = {"action": context.get("action", "unknown")}
    if context.get("attempted_operation"):
        details["attempted_operation"] = context["attempted_operation"]
    details["originalError"] = _original_error(raw)

    if isinstance(raw, GitHubApiError) and raw.is_rate_limited:
        details["rate_limit"] = {
            "remaining": raw.headers.get("x-ratelimit-remaining"),
            "reset": raw.headers.get("x-ratelimit-reset"),
        }

    for key in _CONTEXT_KEYS:
        if context.get(key) is not None:
            details[key] = context[key]

    if isinstance(raw, GitHubApiError):
        if raw.request_id is not None:
            details["requestId"] = raw.request_id
        if raw.documentation_url is not None:
            details["documentation"] = raw.documentation_url

    return OperationError(code=code, message=message, details=details)


def build_validation_error(message: str, context: dict[str, Any]) -> OperationError:
    """Build an INPUT_INVALID error for a local validation failure."""
    details: dict[str, Any] = {"action": context.get("action", "unknown")}
    details["originalError"] = {"status": 400, "message": message, "response": None, "headers": None}
    for key, value in context.items():
        if key != "action" and value is not None:
            details[key] = value
    return OperationError(code=ErrorCode.INPUT_INVALID, message=message, details=details)


def error_help(err: OperationError) -> str | None:
    """Return a short remediation hint for a uniform error, if one applies."""
    details = err.details
    if err.code == ErrorCode.RATE_LIMITED:
        rate_limit = details.get("rate_limit") or {}
        when = format_reset(rate_limit.get("reset"))
        return f"Rate limit exceeded. You can try again after {when}. Consider using a token with higher rate limits."
    if details.get("missing_scopes") or (err.code == ErrorCode.ACCESS_DENIED and details.get("required_scopes")):
        scopes = details.get("missing_scopes") or details.get("required_scopes")
        return f"Token needs additional permissions: {', '.join(scopes)}. Update token scopes in GitHub settings."
    original = details.get("originalError") or {}
    if original.get("status") == 401:
        return "Invalid GitHub token. Please check your token and ensure it has the necessary permissions."
    if details.get("documentation"):
        return f"For more information, see: {details['documentation']}"
    return None


def to_error_result(
    *, code: str, message: str, details: dict[str, Any] | None = None, hint: str | None = None
) -> dict[str, Any]:
    """Build a standard tool error envelope."""
    out: dict[str, Any] = {"ok": False, "code": code, "message": message}
    if details is not None:
        out["details"] = details
    if hint:
        out["hint"] = hint
    return out


def operation_error_to_result(err: OperationError, hint: str | None = None) -> dict[str, Any]:
    """Convert an OperationError into the standard tool envelope."""
    return to_error_result(code=err.code.value, message=err.message, details=err.details, hint=hint or error_help(err))


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error for unexpected failures."""
    return to_error_result(code=ErrorCode.INTERNAL.value, message=message)
