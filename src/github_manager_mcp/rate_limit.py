"""Rate-limit header extraction."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """Rate-limit headers of the most recent response, passed through as strings."""

    limit: str | None
    remaining: str | None
    reset: str | None
    used: str | None

    def as_dict(self) -> dict[str, str | None]:
        return asdict(self)


def extract_rate_limit(headers: Mapping[str, str] | None) -> RateLimitSnapshot:
    """Project the four ``x-ratelimit-*`` headers; absent headers become None."""
    headers = headers or {}
    return RateLimitSnapshot(
        limit=headers.get("x-ratelimit-limit"),
        remaining=headers.get("x-ratelimit-remaining"),
        reset=headers.get("x-ratelimit-reset"),
        used=headers.get("x-ratelimit-used"),
    )


def format_reset(reset: str | None) -> str:
    """Render an epoch-seconds reset value as a readable UTC time."""
    if not reset:
        return "unknown time"
    try:
        when = datetime.fromtimestamp(int(reset), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return "unknown time"
    return when.strftime("%Y-%m-%d %H:%M:%S UTC")
