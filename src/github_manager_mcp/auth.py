"""Token authentication against GitHub.

Resolves the token's identity and its OAuth scopes (``x-oauth-scopes`` header).
The token itself never leaves the client.
"""

from __future__ import annotations

from collections.abc import Iterable

from .access import Identity, verify_required_scopes
from .errors import ErrorCode, GitHubError, UnexpectedResponseError, build_error, classify_failure
from .github_client import GitHubClient


def parse_scopes(header: str | None) -> tuple[str, ...]:
    """Split a comma-separated scopes header, dropping blanks."""
    if not header:
        return ()
    return tuple(part.strip() for part in header.split(",") if part.strip())


class GitHubAuthService:
    """Authenticates the configured token on demand; nothing is cached."""

    def __init__(self, *, github: GitHubClient) -> None:
        self._github = github

    async def verify_auth(self) -> Identity:
        """Return the token's identity.

        Raises:
            OperationError: ACCESS_DENIED for a rejected token, or RATE_LIMITED /
                NETWORK_ERROR when the check itself could not complete.
        """
        try:
            response = await self._github.get_authenticated_user()
            user = response.data
            login = user.get("login") if isinstance(user, dict) else None
            if not isinstance(login, str):
                raise UnexpectedResponseError("Unexpected authenticated user response")
        except GitHubError as exc:
            code = classify_failure(exc)
            if code not in (ErrorCode.RATE_LIMITED, ErrorCode.NETWORK_ERROR):
                code = ErrorCode.ACCESS_DENIED
            raise build_error(
                "Unable to authenticate",
                code,
                exc,
                {"action": "verify_auth", "attempted_operation": "authenticate_user"},
            ) from exc

        return Identity(username=login, scopes=parse_scopes(response.headers.get("x-oauth-scopes")))

    async def verify_auth_and_scopes(self, required_scopes: Iterable[str]) -> Identity:
        identity = await self.verify_auth()
        verify_required_scopes(identity.scopes, required_scopes)
        return identity
