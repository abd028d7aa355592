"""Tool dispatch: envelopes, correlation ids and audit events."""

from __future__ import annotations

import io
import json
import logging
from typing import Any

import github_manager_mcp.tools as tools
import pytest
from conftest import FakeAuth, FakeGitHub
from github_manager_mcp.access import AccessVerifier
from github_manager_mcp.audit import AuditLogger
from github_manager_mcp.config import AppConfig, LimitsConfig
from github_manager_mcp.errors import GitHubApiError
from github_manager_mcp.logger import OperationLogger
from github_manager_mcp.operations import OperationSupport, build_operations


def _runtime(github: FakeGitHub, auth: FakeAuth | None = None) -> tuple[tools.Runtime, io.StringIO]:
    auth = auth or FakeAuth()
    stream = io.StringIO()
    op_logger = OperationLogger()
    support = OperationSupport(access=AccessVerifier(auth=auth, logger=op_logger), logger=op_logger)
    runtime = tools.Runtime(
        config=AppConfig(token="tok", api_base_url="https://api.github.com", log_level=logging.INFO, limits=LimitsConfig()),
        audit=AuditLogger(stream=stream),
        logger=op_logger,
        github=github,  # type: ignore[arg-type]
        auth=auth,  # type: ignore[arg-type]
        operations=build_operations(github=github, support=support),  # type: ignore[arg-type]
    )
    return runtime, stream


def _audit_lines(stream: io.StringIO) -> list[dict[str, Any]]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_every_tool_maps_to_an_operation() -> None:
    runtime, _ = _runtime(FakeGitHub())
    assert set(tools.TOOL_METADATA) == {"list_orgs", "list_repos", "create_repo", "add_collaborator", "update_repo_settings"}
    for meta in tools.TOOL_METADATA.values():
        assert meta["operation"] in runtime.operations
        assert meta["inputSchema"]["type"] == "object"


def test_required_scopes_by_tool() -> None:
    runtime, _ = _runtime(FakeGitHub())
    scopes = tools.required_scopes_by_tool(runtime)
    assert scopes["list_orgs"] == ["read:org"]
    assert scopes["list_repos"] == ["read:org", "repo"]
    assert scopes["create_repo"] == ["repo"]


@pytest.mark.asyncio
async def test_dispatch_success_envelope(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime, stream = _runtime(FakeGitHub({"list_repos_for_org": [{"name": "api"}]}))
    monkeypatch.setattr(tools, "_RUNTIME", runtime)

    out = await tools.dispatch_tool("list_repos", {"org": "octo"})

    assert out["ok"] is True
    assert out["result"][0]["name"] == "api"
    events = _audit_lines(stream)
    assert len(events) == 1
    assert events[0]["correlation_id"] == out["correlation_id"]
    assert events[0]["tool"] == "list_repos"
    assert events[0]["operation"] == "list_repositories"
    assert events[0]["target"] == "octo"
    assert events[0]["outcome"] == "succeeded"


@pytest.mark.asyncio
async def test_dispatch_validation_error_is_denied(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime, stream = _runtime(FakeGitHub())
    monkeypatch.setattr(tools, "_RUNTIME", runtime)

    out = await tools.dispatch_tool("create_repo", {"org": "octo"})

    assert out["ok"] is False
    assert out["code"] == "INPUT_INVALID"
    assert out["message"] == "Organization and name are required"
    assert out["details"]["attempted_operation"] == "validate_input"
    assert "correlation_id" in out
    assert _audit_lines(stream)[0]["outcome"] == "denied"


@pytest.mark.asyncio
async def test_dispatch_rate_limit_envelope_carries_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    limited = GitHubApiError(
        status=429,
        message="API rate limit exceeded",
        headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1609459200"},
    )
    runtime, stream = _runtime(FakeGitHub({"update_repo": limited}))
    monkeypatch.setattr(tools, "_RUNTIME", runtime)

    out = await tools.dispatch_tool(
        "update_repo_settings", {"org": "octo", "repo": "api", "settings": {"has_wiki": False}}
    )

    assert out["code"] == "RATE_LIMITED"
    assert out["details"]["rate_limit"] == {"remaining": "0", "reset": "1609459200"}
    assert "2021-01-01 00:00:00 UTC" in out["hint"]
    event = _audit_lines(stream)[0]
    assert event["outcome"] == "failed"
    assert event["error_code"] == "RATE_LIMITED"
    assert event["target"] == "octo/api"


@pytest.mark.asyncio
async def test_dispatch_unknown_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime, _ = _runtime(FakeGitHub())
    monkeypatch.setattr(tools, "_RUNTIME", runtime)

    out = await tools.dispatch_tool("delete_repo", {})

    assert out["code"] == "INPUT_INVALID"
    assert out["message"] == "Unknown tool: delete_repo"
    assert out["hint"].startswith("Available tools: ")
    assert "list_orgs" in out["hint"]


@pytest.mark.asyncio
async def test_dispatch_unexpected_exception_is_internal(monkeypatch: pytest.MonkeyPatch) -> None:
    runtime, stream = _runtime(FakeGitHub())

    class Exploding:
        name = "list_organizations"
        required_scopes = ("read:org",)

        async def execute(self, arguments: Any = None) -> Any:
            raise RuntimeError("boom")

    runtime.operations["list_organizations"] = Exploding()
    monkeypatch.setattr(tools, "_RUNTIME", runtime)

    out = await tools.dispatch_tool("list_orgs", {})

    assert out["ok"] is False
    assert out["code"] == "INTERNAL"
    assert out["message"] == "Internal error"
    assert "boom" not in json.dumps(out)
    assert _audit_lines(stream)[0]["error_code"] == "INTERNAL"


@pytest.mark.asyncio
async def test_dispatch_without_token_is_internal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tools, "_RUNTIME", None)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    out = await tools.dispatch_tool("list_orgs", {})

    assert out["ok"] is False
    assert out["code"] == "INTERNAL"


def test_initialize_runtime_from_env_caches_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    monkeypatch.delenv("GITHUB_API_URL", raising=False)
    monkeypatch.delenv("GITHUB_MANAGER_LOG_LEVEL", raising=False)
    monkeypatch.setattr(tools, "_RUNTIME", None)

    r1 = tools.initialize_runtime_from_env()
    r2 = tools.initialize_runtime_from_env()

    assert r1 is r2
    assert r1.config.token == "tok"
    assert set(r1.operations) == {
        "list_organizations",
        "list_repositories",
        "create_repository",
        "add_collaborator",
        "update_repository_settings",
    }
