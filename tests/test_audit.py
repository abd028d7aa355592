"""Audit event schema."""

from __future__ import annotations

import io
import json

import pytest
from github_manager_mcp.audit import (NO_TARGET, AuditLogger, Outcome,
                                      build_event, describe_target,
                                      new_correlation_id, outcome_for)
from github_manager_mcp.errors import ErrorCode


def test_new_correlation_id_is_hex() -> None:
    cid = new_correlation_id()
    assert len(cid) == 32
    int(cid, 16)


def test_audit_logger_writes_one_json_line() -> None:
    stream = io.StringIO()
    audit = AuditLogger(stream=stream)

    audit.write_event(
        build_event(
            correlation_id="abcd" * 8,
            tool="create_repo",
            operation="create_repository",
            target="octo/new",
            error_code=ErrorCode.ACCESS_DENIED,
            duration_ms=12,
        )
    )

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["correlation_id"] == "abcd" * 8
    assert payload["tool"] == "create_repo"
    assert payload["operation"] == "create_repository"
    assert payload["target"] == "octo/new"
    assert payload["outcome"] == "denied"
    assert payload["error_code"] == "ACCESS_DENIED"
    assert payload["duration_ms"] == 12
    assert "timestamp" in payload


def test_audit_logger_omits_empty_fields() -> None:
    stream = io.StringIO()
    AuditLogger(stream=stream).write_event(build_event(correlation_id="c", tool="delete_repo", target=NO_TARGET))

    payload = json.loads(stream.getvalue())
    assert payload["outcome"] == "succeeded"
    assert "operation" not in payload
    assert "error_code" not in payload
    assert "duration_ms" not in payload


@pytest.mark.parametrize(
    ("code", "outcome"),
    [
        (None, Outcome.SUCCEEDED),
        (ErrorCode.INPUT_INVALID, Outcome.DENIED),
        (ErrorCode.ACCESS_DENIED, Outcome.DENIED),
        (ErrorCode.RATE_LIMITED, Outcome.FAILED),
        (ErrorCode.NOT_FOUND, Outcome.FAILED),
        (ErrorCode.NETWORK_ERROR, Outcome.FAILED),
        (ErrorCode.INTERNAL, Outcome.FAILED),
    ],
)
def test_outcome_for(code: ErrorCode | None, outcome: Outcome) -> None:
    assert outcome_for(code) is outcome


def test_describe_target() -> None:
    assert describe_target({"org": "octo", "repo": "api"}) == "octo/api"
    assert describe_target({"org": "octo", "name": "new"}) == "octo/new"
    assert describe_target({"org": "octo"}) == "octo"
    assert describe_target({"repo": "api"}) == NO_TARGET
    assert describe_target({"org": 5}) == NO_TARGET


def test_elapsed_ms() -> None:
    audit = AuditLogger()
    assert audit.elapsed_ms(audit.start()) >= 0
    assert audit.elapsed_ms(None) is None
