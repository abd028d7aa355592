"""MCP server wiring for github-manager-mcp."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import Resource, TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .errors import ConfigError, OperationError
from .tools import TOOL_METADATA, dispatch_tool, initialize_runtime_from_env, required_scopes_by_tool

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

CAPABILITIES_URI = "github-manager://capabilities"
LOGS_URI = "github-manager://logs"
MAX_LOG_ENTRIES = 200

server = Server("github-manager")


def _tools() -> list[Tool]:
    return [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]


def _resources() -> list[Resource]:
    return [
        Resource(
            uri=CAPABILITIES_URI,
            name="Capabilities",
            description="Available tools and the token scopes each one requires",
        ),
        Resource(
            uri=LOGS_URI,
            name="Operation Log",
            description=f"The most recent {MAX_LOG_ENTRIES} operation log entries",
        ),
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = _tools()
    logger.info("Listed %s tools", len(tools))
    return tools


# Arguments are validated by the operations, not against inputSchema.
@server.call_tool(validate_input=False)
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return its envelope as JSON text."""
    if not isinstance(arguments, dict):
        arguments = {}

    logger.info("Tool called: %s", name)
    result = await dispatch_tool(name, arguments)
    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return _resources()


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == CAPABILITIES_URI:
        caps: dict[str, Any] = {
            "server": "github-manager",
            "version": __version__,
            "tools": sorted(TOOL_METADATA.keys()),
        }
        try:
            caps["required_scopes"] = required_scopes_by_tool(initialize_runtime_from_env())
            caps["configured"] = True
        except ConfigError:
            caps["configured"] = False
        return json.dumps(caps, indent=2)

    if uri_s == LOGS_URI:
        try:
            entries = initialize_runtime_from_env().logger.get_logs()[-MAX_LOG_ENTRIES:]
        except ConfigError:
            entries = []
        return json.dumps([e.as_dict() for e in entries], indent=2, default=str)

    return json.dumps({"ok": False, "code": "NOT_FOUND", "message": "Unknown resource"}, indent=2)


async def run_server() -> None:
    """Verify configuration and credentials, then serve over stdio."""
    try:
        runtime = initialize_runtime_from_env()
    except ConfigError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    logging.getLogger("github_manager_mcp").setLevel(runtime.config.log_level)

    try:
        identity = await runtime.auth.verify_auth()
    except OperationError as exc:
        logger.error("Startup authentication failed: %s (%s)", exc.message, exc.code.value)
        raise
    logger.info("Authenticated as %s with scopes: %s", identity.username, ", ".join(identity.scopes) or "<none>")

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Lightweight self-test to ensure tool/resource listing works."""
    tools = _tools()
    resources = _resources()
    print(f"{len(tools)} tools, {len(resources)} resources", file=sys.stderr)
