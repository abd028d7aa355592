"""GitHub REST client wrapper.

Provides:
- token auth and GitHub media-type headers
- no-redirect behavior and finite timeouts
- typed error translation (HTTP errors vs. transport failures)

No retries: callers see every failure and own the retry decision.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from .config import DEFAULT_API_URL, LimitsConfig
from .errors import GitHubApiError, GitHubNetworkError, UnexpectedResponseError


@dataclass(frozen=True, slots=True)
class ApiResponse:
    """Decoded response body plus lower-cased headers."""

    data: Any
    headers: dict[str, str] = field(default_factory=dict)


def _seg(value: str) -> str:
    return quote(value, safe="")


class GitHubClient:
    """Minimal GitHub REST client covering the calls the operations need."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Personal access or OAuth token.
            limits: Timeouts and page size.
            api_base_url: REST API root.
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

    @property
    def per_page(self) -> int:
        return self._limits.per_page

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

    async def request(
        self,
        *,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Make a request and return the decoded body with its headers.

        Raises:
            GitHubApiError: GitHub answered with a status >= 400.
            GitHubNetworkError: No HTTP response was received.
            UnexpectedResponseError: A success body was not valid JSON.
        """
        url = f"{self._api_base_url}{path}"
        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=self._timeout(),
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, headers=self._headers(), json=json_body, params=params)
        except httpx.TransportError as exc:
            raise GitHubNetworkError(f"Network error: {exc.__class__.__name__}: {exc}") from exc

        headers = {k.lower(): v for k, v in resp.headers.items()}

        if resp.status_code >= 400:
            payload: Any = None
            message = f"GitHub request failed with status {resp.status_code}"
            try:
                payload = resp.json()
                if isinstance(payload, dict) and isinstance(payload.get("message"), str):
                    message = payload["message"]
            except json.JSONDecodeError:
                payload = resp.text or None
            raise GitHubApiError(status=resp.status_code, message=message, data=payload, headers=headers)

        if resp.status_code == 204 or not resp.content:
            return ApiResponse(data=None, headers=headers)

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise UnexpectedResponseError("GitHub returned invalid JSON") from exc
        return ApiResponse(data=data, headers=headers)

    async def get_authenticated_user(self) -> ApiResponse:
        return await self.request(method="GET", path="/user")

    async def list_orgs_for_authenticated_user(self, *, per_page: int | None = None) -> ApiResponse:
        """Organizations the authenticated user is a member of."""
        return await self.request(method="GET", path="/user/orgs", params={"per_page": per_page or self.per_page})

    async def list_orgs(self, *, per_page: int | None = None) -> ApiResponse:
        """All organizations visible to the authenticated user."""
        return await self.request(method="GET", path="/organizations", params={"per_page": per_page or self.per_page})

    async def list_repos_for_org(self, org: str, *, per_page: int | None = None) -> ApiResponse:
        return await self.request(
            method="GET",
            path=f"/orgs/{_seg(org)}/repos",
            params={"per_page": per_page or self.per_page},
        )

    async def create_repo_in_org(self, org: str, payload: dict[str, Any]) -> ApiResponse:
        return await self.request(method="POST", path=f"/orgs/{_seg(org)}/repos", json_body=payload)

    async def update_repo(self, owner: str, repo: str, payload: dict[str, Any]) -> ApiResponse:
        return await self.request(method="PATCH", path=f"/repos/{_seg(owner)}/{_seg(repo)}", json_body=payload)

    async def add_collaborator(self, owner: str, repo: str, username: str, permission: str) -> ApiResponse:
        return await self.request(
            method="PUT",
            path=f"/repos/{_seg(owner)}/{_seg(repo)}/collaborators/{_seg(username)}",
            json_body={"permission": permission},
        )
