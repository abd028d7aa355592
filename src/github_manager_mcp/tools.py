"""Tool registry and dispatch layer.

This module:
- defines the tools exposed to MCP clients (public contract surface)
- builds a per-server runtime from host-provided config
- creates a correlation_id per tool call and writes one audit event for it
- turns operation results and errors into response envelopes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .access import AccessVerifier
from .audit import AuditLogger, build_event, describe_target, new_correlation_id
from .auth import GitHubAuthService
from .config import AppConfig, load_config_from_env
from .errors import ErrorCode, OperationError, build_validation_error, internal_error, operation_error_to_result
from .github_client import GitHubClient
from .logger import OperationLogger
from .operations import REPOSITORY_SETTINGS, VALID_PERMISSIONS, Operation, OperationSupport, build_operations

logger = logging.getLogger(__name__)

_SETTING_DESCRIPTIONS = {
    "has_issues": "Enable issues",
    "has_projects": "Enable projects",
    "has_wiki": "Enable wiki",
    "allow_squash_merge": "Allow squash merging",
    "allow_merge_commit": "Allow merge commits",
    "allow_rebase_merge": "Allow rebase merging",
}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "list_orgs": {
        "operation": "list_organizations",
        "description": "List GitHub organizations the authenticated user belongs to or can see.",
        "inputSchema": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    "list_repos": {
        "operation": "list_repositories",
        "description": "List repositories in an organization.",
        "inputSchema": {
            "type": "object",
            "required": ["org"],
            "properties": {
                "org": {"type": "string", "minLength": 1, "description": "Organization name"},
            },
        },
    },
    "create_repo": {
        "operation": "create_repository",
        "description": "Create a new repository in an organization (initialized with a README).",
        "inputSchema": {
            "type": "object",
            "required": ["org", "name"],
            "properties": {
                "org": {"type": "string", "minLength": 1, "description": "Organization name"},
                "name": {"type": "string", "minLength": 1, "description": "Repository name"},
                "description": {"type": "string", "description": "Repository description"},
                "private": {"type": "boolean", "description": "Whether the repository should be private"},
            },
        },
    },
    "add_collaborator": {
        "operation": "add_collaborator",
        "description": "Add a collaborator to a repository with pull, push or admin permission.",
        "inputSchema": {
            "type": "object",
            "required": ["org", "repo", "username", "permission"],
            "properties": {
                "org": {"type": "string", "minLength": 1, "description": "Organization name"},
                "repo": {"type": "string", "minLength": 1, "description": "Repository name"},
                "username": {"type": "string", "minLength": 1, "description": "GitHub username to add"},
                "permission": {
                    "type": "string",
                    "enum": list(VALID_PERMISSIONS),
                    "description": "Permission level (pull, push, admin)",
                },
            },
        },
    },
    "update_repo_settings": {
        "operation": "update_repository_settings",
        "description": "Update repository feature and merge settings.",
        "inputSchema": {
            "type": "object",
            "required": ["org", "repo", "settings"],
            "properties": {
                "org": {"type": "string", "minLength": 1, "description": "Organization name"},
                "repo": {"type": "string", "minLength": 1, "description": "Repository name"},
                "settings": {
                    "type": "object",
                    "description": "Repository settings to update",
                    "minProperties": 1,
                    "properties": {
                        key: {"type": "boolean", "description": _SETTING_DESCRIPTIONS[key]}
                        for key in sorted(REPOSITORY_SETTINGS)
                    },
                    "additionalProperties": False,
                },
            },
        },
    },
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    logger: OperationLogger
    github: GitHubClient
    auth: GitHubAuthService
    operations: dict[str, Operation]


_RUNTIME: Runtime | None = None


def build_runtime(config: AppConfig) -> Runtime:
    """Wire every collaborator for ``config``."""
    op_logger = OperationLogger()
    github = GitHubClient(token=config.token, limits=config.limits, api_base_url=config.api_base_url)
    auth = GitHubAuthService(github=github)
    support = OperationSupport(access=AccessVerifier(auth=auth, logger=op_logger), logger=op_logger)
    return Runtime(
        config=config,
        audit=AuditLogger(),
        logger=op_logger,
        github=github,
        auth=auth,
        operations=build_operations(github=github, support=support),
    )


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is None:
        _RUNTIME = build_runtime(load_config_from_env())
    return _RUNTIME


def required_scopes_by_tool(runtime: Runtime) -> dict[str, list[str]]:
    return {
        name: list(runtime.operations[meta["operation"]].required_scopes)
        for name, meta in TOOL_METADATA.items()
    }


async def dispatch_tool(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Dispatch a tool call.

    Always returns an envelope that includes correlation_id, and writes exactly
    one audit event for the call.
    """
    correlation_id = new_correlation_id()
    target = describe_target(arguments)
    meta = TOOL_METADATA.get(name)
    operation = meta["operation"] if meta is not None else None

    audit = AuditLogger()
    start: float | None = None

    def record(error_code: ErrorCode | None) -> None:
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                tool=name,
                operation=operation,
                target=target,
                error_code=error_code,
                duration_ms=audit.elapsed_ms(start),
            )
        )

    try:
        runtime = initialize_runtime_from_env()
        audit = runtime.audit
        start = audit.start()

        if operation is None:
            raise build_validation_error(
                f"Unknown tool: {name}",
                {"action": "dispatch_tool", "attempted_operation": "resolve_tool"},
            )

        result = await runtime.operations[operation].execute(arguments)

    except OperationError as err:
        record(err.code)
        hint = None
        if err.details.get("attempted_operation") == "resolve_tool":
            hint = f"Available tools: {', '.join(sorted(TOOL_METADATA))}"
        out = operation_error_to_result(err, hint=hint)
        out["correlation_id"] = correlation_id
        return out
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Tool %s failed unexpectedly (correlation_id=%s)", name, correlation_id)
        record(ErrorCode.INTERNAL)
        out = internal_error("Internal error")
        out["correlation_id"] = correlation_id
        return out

    record(None)
    return {"ok": True, "correlation_id": correlation_id, "result": result}
