"""Shared in-memory fakes for operation tests.

No test talks to GitHub: the client is replaced by ``FakeGitHub`` and the
authenticator by ``FakeAuth``.
"""

from __future__ import annotations

from typing import Any

import pytest
from github_manager_mcp.access import AccessVerifier, Identity
from github_manager_mcp.github_client import ApiResponse
from github_manager_mcp.logger import OperationLogger
from github_manager_mcp.operations import OperationSupport

RATE_LIMIT_HEADERS = {
    "x-ratelimit-limit": "5000",
    "x-ratelimit-remaining": "4999",
    "x-ratelimit-reset": "1609459200",
    "x-ratelimit-used": "1",
}


class FakeGitHub:
    """Client stand-in; each method answers from ``routes`` or raises what is stored there."""

    def __init__(self, routes: dict[str, object] | None = None) -> None:
        self._routes = routes or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def _answer(self, method: str, *args: Any) -> ApiResponse:
        self.calls.append((method, args))
        if method not in self._routes:
            raise AssertionError(f"Unexpected GitHub call: {method}")
        val = self._routes[method]
        if isinstance(val, Exception):
            raise val
        if isinstance(val, ApiResponse):
            return val
        return ApiResponse(data=val, headers=dict(RATE_LIMIT_HEADERS))

    async def get_authenticated_user(self) -> ApiResponse:
        return await self._answer("get_authenticated_user")

    async def list_orgs_for_authenticated_user(self, *, per_page: int | None = None) -> ApiResponse:
        return await self._answer("list_orgs_for_authenticated_user")

    async def list_orgs(self, *, per_page: int | None = None) -> ApiResponse:
        return await self._answer("list_orgs")

    async def list_repos_for_org(self, org: str, *, per_page: int | None = None) -> ApiResponse:
        return await self._answer("list_repos_for_org", org)

    async def create_repo_in_org(self, org: str, payload: dict[str, Any]) -> ApiResponse:
        return await self._answer("create_repo_in_org", org, payload)

    async def update_repo(self, owner: str, repo: str, payload: dict[str, Any]) -> ApiResponse:
        return await self._answer("update_repo", owner, repo, payload)

    async def add_collaborator(self, owner: str, repo: str, username: str, permission: str) -> ApiResponse:
        return await self._answer("add_collaborator", owner, repo, username, permission)


class FakeAuth:
    def __init__(self, scopes: tuple[str, ...] = ("repo", "read:org"), error: Exception | None = None) -> None:
        self._scopes = scopes
        self._error = error
        self.calls = 0

    async def verify_auth(self) -> Identity:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return Identity(username="octocat", scopes=self._scopes)


@pytest.fixture
def op_logger() -> OperationLogger:
    return OperationLogger()


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def support(auth: FakeAuth, op_logger: OperationLogger) -> OperationSupport:
    return OperationSupport(access=AccessVerifier(auth=auth, logger=op_logger), logger=op_logger)


def make_support(auth: FakeAuth, op_logger: OperationLogger | None = None) -> OperationSupport:
    op_logger = op_logger or OperationLogger()
    return OperationSupport(access=AccessVerifier(auth=auth, logger=op_logger), logger=op_logger)
