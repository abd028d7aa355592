"""Access verification: authenticate the caller, then check granted scopes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from .errors import SCOPES_DOCUMENTATION_URL, ErrorCode, GitHubApiError, OperationError, build_error
from .logger import OperationLogger


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated caller and the scopes granted to its token."""

    username: str
    scopes: tuple[str, ...]


class Authenticator(Protocol):
    async def verify_auth(self) -> Identity: ...


def verify_required_scopes(current_scopes: Sequence[str], required_scopes: Iterable[str]) -> None:
    """Raise ACCESS_DENIED unless every required scope was granted.

    Plain set inclusion; ``admin:org`` does not imply ``read:org``.
    """
    current = list(current_scopes)
    required = list(required_scopes)
    granted = set(current)
    missing = [scope for scope in required if scope not in granted]
    if not missing:
        return

    raw = GitHubApiError(
        status=403,
        message="Missing required scopes",
        data={"message": "Missing required scopes", "documentation_url": SCOPES_DOCUMENTATION_URL},
    )
    raise build_error(
        "Insufficient permissions",
        ErrorCode.ACCESS_DENIED,
        raw,
        {
            "action": "verify_scopes",
            "attempted_operation": "verify_scopes",
            "required_scopes": required,
            "current_scopes": current,
            "missing_scopes": missing,
        },
    )


class AccessVerifier:
    """Checks credentials and scopes before an operation touches GitHub."""

    def __init__(self, *, auth: Authenticator, logger: OperationLogger) -> None:
        self._auth = auth
        self._logger = logger

    async def verify_access(self, required_scopes: Iterable[str]) -> Identity:
        """Authenticate and require ``required_scopes``.

        Authentication failures propagate as raised by the authenticator.
        """
        required = list(required_scopes)
        try:
            identity = await self._auth.verify_auth()
            verify_required_scopes(identity.scopes, required)
        except Exception as exc:
            failure = exc.to_dict() if isinstance(exc, OperationError) else {"message": str(exc)}
            self._logger.error("Access verification failed", {"required_scopes": required, "error": failure})
            raise
        return identity
