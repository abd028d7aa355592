"""Repository-management operations.

Every operation runs the same sequence:

    validate input -> verify access -> call GitHub -> shape result

Input problems are reported before any call is made (INPUT_INVALID with
``attempted_operation='validate_input'``). Everything that fails after that point
goes through ``OperationSupport.handle_error`` exactly once and leaves the
operation as an ``OperationError``.

Operations do not inherit from a common base; each one is handed the GitHub
client and an ``OperationSupport`` bundling the logger, the access verifier and
the error normalization.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any, NoReturn, Protocol

from .access import AccessVerifier, Identity
from .errors import ErrorCode, OperationError, UnexpectedResponseError, build_error, build_validation_error, classify_failure
from .github_client import GitHubClient
from .logger import OperationLogger
from .rate_limit import RateLimitSnapshot, extract_rate_limit

VALID_PERMISSIONS: tuple[str, ...] = ("pull", "push", "admin")

REPOSITORY_SETTINGS: frozenset[str] = frozenset(
    {
        "has_issues",
        "has_projects",
        "has_wiki",
        "allow_squash_merge",
        "allow_merge_commit",
        "allow_rebase_merge",
    }
)

_CLASSIFIED_MESSAGES = {
    ErrorCode.RATE_LIMITED: "API rate limit exceeded",
    ErrorCode.NETWORK_ERROR: "Network error",
}


class Operation(Protocol):
    name: str
    required_scopes: tuple[str, ...]

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> Any: ...


class OperationSupport:
    """Logging, access verification and error normalization shared by all operations."""

    def __init__(self, *, access: AccessVerifier, logger: OperationLogger) -> None:
        self._access = access
        self._logger = logger

    @property
    def logger(self) -> OperationLogger:
        return self._logger

    def log_operation(self, name: str, params: Mapping[str, Any]) -> None:
        self._logger.debug(f"Executing {name}", dict(params))

    async def verify_access(self, required_scopes: Iterable[str]) -> Identity:
        return await self._access.verify_access(required_scopes)

    def get_rate_limit_info(self, headers: Mapping[str, str] | None) -> RateLimitSnapshot:
        return extract_rate_limit(headers)

    def log_rate_limit(self, headers: Mapping[str, str] | None) -> None:
        self._logger.debug("Rate limit info", self.get_rate_limit_info(headers).as_dict())

    def handle_error(self, exc: BaseException, context: dict[str, Any], default_message: str) -> NoReturn:
        """Normalize ``exc`` and raise it.

        An ``OperationError`` is enriched with ``context`` and re-raised as the same
        object so its original classification survives. Anything else is classified
        and wrapped in a new ``OperationError``.
        """
        action = context.get("action", "unknown")

        if isinstance(exc, OperationError):
            exc.merge_context(context)
            self._logger.error(f"{action} failed", exc.to_dict())
            raise exc

        code = classify_failure(exc)
        ctx = dict(context)
        if code == ErrorCode.ACCESS_DENIED:
            ctx["attempted_operation"] = "verify_auth"
        message = _CLASSIFIED_MESSAGES.get(code) or str(exc) or default_message

        err = build_error(message, code, exc, ctx)
        log_data: dict[str, Any] = {"code": code.value, **ctx}
        if "rate_limit" in err.details:
            log_data["rate_limit"] = err.details["rate_limit"]
        self._logger.error(f"{action} failed: {message}", log_data)
        raise err from exc

    def reject(self, message: str, context: dict[str, Any]) -> NoReturn:
        """Raise INPUT_INVALID for a local validation failure."""
        err = build_validation_error(message, {**context, "attempted_operation": "validate_input"})
        self._logger.warn(f"{context.get('action', 'unknown')} rejected: {message}", err.details)
        raise err


def _present(arguments: Mapping[str, Any], key: str) -> bool:
    value = arguments.get(key)
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _check_required_strings(
    support: OperationSupport,
    arguments: Mapping[str, Any],
    keys: tuple[str, ...],
    missing_message: str,
    context: dict[str, Any],
) -> None:
    if not all(_present(arguments, k) for k in keys):
        support.reject(missing_message, context)
    for k in keys:
        if not isinstance(arguments[k], str):
            support.reject(f"Field '{k}' must be a non-empty string", context)


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _require_list(data: Any, what: str) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        raise UnexpectedResponseError(f"Unexpected {what} response")
    return [item for item in data if isinstance(item, dict)]


def _require_dict(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise UnexpectedResponseError(f"Unexpected {what} response")
    return data


def _fallback_clone_url(org: str, name: Any) -> str | None:
    if not isinstance(name, str) or not name.strip():
        return None
    return f"https://github.com/{org}/{name}.git"


def _shape_org(org: dict[str, Any], *, is_member: bool, is_visible: bool) -> dict[str, Any]:
    return {
        "name": org["login"],
        "display_name": org["login"],
        "description": org.get("description") or None,
        "url": org.get("url"),
        "membership": {"is_member": is_member, "is_visible": is_visible},
    }


def merge_organizations(member_orgs: list[dict[str, Any]], visible_orgs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge both listings by login; each membership flag is OR-ed across sources."""
    merged: dict[str, dict[str, Any]] = {}
    for source, flag in ((member_orgs, "is_member"), (visible_orgs, "is_visible")):
        for org in source:
            login = org.get("login")
            if not isinstance(login, str):
                continue
            entry = merged.get(login)
            if entry is None:
                entry = _shape_org(org, is_member=False, is_visible=False)
                merged[login] = entry
            entry["membership"][flag] = True
    return list(merged.values())


class ListOrganizations:
    """List organizations the caller belongs to or can see."""

    name = "list_organizations"
    required_scopes = ("read:org",)

    def __init__(self, *, github: GitHubClient, support: OperationSupport) -> None:
        self._github = github
        self._support = support

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        context: dict[str, Any] = {"action": self.name, "attempted_operation": "list_orgs"}
        self._support.log_operation(self.name, {})

        try:
            await self._support.verify_access(self.required_scopes)

            member_resp, visible_resp = await asyncio.gather(
                self._github.list_orgs_for_authenticated_user(),
                self._github.list_orgs(),
            )
            self._support.log_rate_limit(member_resp.headers)

            orgs = merge_organizations(
                _require_list(member_resp.data, "organization membership"),
                _require_list(visible_resp.data, "organization listing"),
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._support.handle_error(exc, context, "Failed to list organizations")

        self._support.logger.info("Successfully listed organizations", {"count": len(orgs)})
        return orgs


class ListRepositories:
    """List the repositories of one organization."""

    name = "list_repositories"
    required_scopes = ("read:org", "repo")

    def __init__(self, *, github: GitHubClient, support: OperationSupport) -> None:
        self._github = github
        self._support = support

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        arguments = arguments or {}
        context: dict[str, Any] = {"action": self.name, "organization": _str_or_none(arguments.get("org"))}
        _check_required_strings(self._support, arguments, ("org",), "Organization is required", context)

        org: str = arguments["org"]
        context["attempted_operation"] = "list_repos"
        self._support.log_operation(self.name, {"org": org})

        try:
            await self._support.verify_access(self.required_scopes)
            response = await self._github.list_repos_for_org(org)
            self._support.log_rate_limit(response.headers)
            repos = [
                {
                    "name": repo.get("name"),
                    "description": repo.get("description") or None,
                    "private": bool(repo.get("private")),
                    "url": repo.get("url"),
                    "clone_url": repo.get("clone_url") or _fallback_clone_url(org, repo.get("name")),
                    "html_url": repo.get("html_url"),
                    "visibility": repo.get("visibility") or ("private" if repo.get("private") else "public"),
                }
                for repo in _require_list(response.data, "repository listing")
            ]
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._support.handle_error(exc, context, "Failed to list repositories")

        self._support.logger.info("Successfully listed repositories", {"org": org, "count": len(repos)})
        return repos


class CreateRepository:
    """Create a repository in an organization, initialized with a README."""

    name = "create_repository"
    required_scopes = ("repo",)

    def __init__(self, *, github: GitHubClient, support: OperationSupport) -> None:
        self._github = github
        self._support = support

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        arguments = arguments or {}
        org_arg = _str_or_none(arguments.get("org"))
        name_arg = _str_or_none(arguments.get("name"))
        context: dict[str, Any] = {
            "action": self.name,
            "organization": org_arg,
            "repository": {"org": org_arg, "name": name_arg},
        }
        _check_required_strings(
            self._support, arguments, ("org", "name"), "Organization and name are required", context
        )
        description = arguments.get("description")
        if description is not None and not isinstance(description, str):
            self._support.reject("Field 'description' must be a string", context)
        private = arguments.get("private")
        if private is not None and not isinstance(private, bool):
            self._support.reject("Field 'private' must be a boolean", context)

        org: str = arguments["org"]
        name: str = arguments["name"]
        context["attempted_operation"] = "create_repo"
        self._support.log_operation(self.name, {"org": org, "name": name, "private": private})

        payload: dict[str, Any] = {"name": name, "auto_init": True}
        if description is not None:
            payload["description"] = description
        if private is not None:
            payload["private"] = private

        try:
            await self._support.verify_access(self.required_scopes)
            response = await self._github.create_repo_in_org(org, payload)
            self._support.log_rate_limit(response.headers)
            data = _require_dict(response.data, "repository creation")
            result = {
                "name": data.get("name", name),
                "description": data.get("description") or None,
                "private": bool(data.get("private")),
                "url": data.get("url"),
                "clone_url": data.get("clone_url") or _fallback_clone_url(org, data.get("name") or name),
                "html_url": data.get("html_url"),
                "visibility": data.get("visibility") or ("private" if data.get("private") else "public"),
                "created_at": data.get("created_at"),
            }
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._support.handle_error(exc, context, "Failed to create repository")

        self._support.logger.info(
            "Successfully created repository", {"org": org, "name": name, "url": result["url"]}
        )
        return result


def permission_matrix(permission: str) -> dict[str, bool]:
    """Expand a permission level into what it implies: admin > push > pull."""
    return {
        "pull": permission in ("pull", "push", "admin"),
        "push": permission in ("push", "admin"),
        "admin": permission == "admin",
    }


class AddCollaborator:
    """Grant a user access to a repository."""

    name = "add_collaborator"
    required_scopes = ("repo",)

    def __init__(self, *, github: GitHubClient, support: OperationSupport) -> None:
        self._github = github
        self._support = support

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        arguments = arguments or {}
        org_arg = _str_or_none(arguments.get("org"))
        repo_arg = _str_or_none(arguments.get("repo"))
        context: dict[str, Any] = {
            "action": self.name,
            "organization": org_arg,
            "repository": {"org": org_arg, "repo": repo_arg},
            "collaborator": {
                "username": _str_or_none(arguments.get("username")),
                "permission": arguments.get("permission"),
                "org": org_arg,
                "repo": repo_arg,
            },
        }
        _check_required_strings(
            self._support,
            arguments,
            ("org", "repo", "username", "permission"),
            "Organization, repository, username, and permission are required",
            context,
        )
        permission: str = arguments["permission"]
        if permission not in VALID_PERMISSIONS:
            self._support.reject(
                f"Invalid permission level '{permission}'; expected one of {', '.join(VALID_PERMISSIONS)}",
                context,
            )

        org: str = arguments["org"]
        repo: str = arguments["repo"]
        username: str = arguments["username"]
        context["attempted_operation"] = "add_collaborator"
        self._support.log_operation(
            self.name, {"org": org, "repo": repo, "username": username, "permission": permission}
        )

        try:
            await self._support.verify_access(self.required_scopes)
            response = await self._github.add_collaborator(org, repo, username, permission)
            self._support.log_rate_limit(response.headers)
            invitation = response.data if isinstance(response.data, dict) else None
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._support.handle_error(exc, context, "Failed to add collaborator")

        # 201 carries an invitation; 204 means the user already had access.
        result = {
            "status": "invited" if invitation is not None else "active",
            "invitation_url": invitation.get("html_url") if invitation is not None else None,
            "permissions": permission_matrix(permission),
        }
        self._support.logger.info(
            "Successfully added collaborator",
            {"org": org, "repo": repo, "username": username, "permission": permission, "status": result["status"]},
        )
        return result


class UpdateRepositorySettings:
    """Toggle repository features and merge strategies."""

    name = "update_repository_settings"
    required_scopes = ("repo",)

    def __init__(self, *, github: GitHubClient, support: OperationSupport) -> None:
        self._github = github
        self._support = support

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        arguments = arguments or {}
        org_arg = _str_or_none(arguments.get("org"))
        repo_arg = _str_or_none(arguments.get("repo"))
        context: dict[str, Any] = {
            "action": self.name,
            "organization": org_arg,
            "repository": {"org": org_arg, "repo": repo_arg},
        }
        missing_message = "Organization, repository, and settings are required"
        if arguments.get("settings") is None:
            self._support.reject(missing_message, context)
        _check_required_strings(self._support, arguments, ("org", "repo"), missing_message, context)

        settings = arguments["settings"]
        if not isinstance(settings, Mapping):
            self._support.reject("Field 'settings' must be an object", context)
        if not settings:
            self._support.reject("Field 'settings' must contain at least one setting", context)

        invalid = [key for key in settings if key not in REPOSITORY_SETTINGS]
        if invalid:
            self._support.reject(f"Invalid settings provided: {', '.join(map(str, invalid))}", context)
        for key, value in settings.items():
            if not isinstance(value, bool):
                self._support.reject(f"Setting '{key}' must be a boolean", context)

        org: str = arguments["org"]
        repo: str = arguments["repo"]
        applied = dict(settings)
        context["attempted_operation"] = "update_repo_settings"
        context["settings"] = applied
        self._support.log_operation(self.name, {"org": org, "repo": repo, "settings": applied})

        try:
            await self._support.verify_access(self.required_scopes)
            response = await self._github.update_repo(org, repo, dict(applied))
            self._support.log_rate_limit(response.headers)
            data = _require_dict(response.data, "repository update")
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._support.handle_error(exc, context, "Failed to update repository settings")

        result = {"name": data.get("name") or repo, "settings": dict(applied)}
        self._support.logger.info(
            "Successfully updated repository settings", {"org": org, "repo": repo, "settings": result["settings"]}
        )
        return result


def build_operations(*, github: GitHubClient, support: OperationSupport) -> dict[str, Operation]:
    """Instantiate every operation, keyed by operation name."""
    ops: list[Operation] = [
        ListOrganizations(github=github, support=support),
        ListRepositories(github=github, support=support),
        CreateRepository(github=github, support=support),
        AddCollaborator(github=github, support=support),
        UpdateRepositorySettings(github=github, support=support),
    ]
    return {op.name: op for op in ops}
