"""Command-line entry point.

  github-manager-mcp            serve over stdio (needs GITHUB_TOKEN)
  github-manager-mcp --test     list tools and resources, then exit

Exit status: 0 on clean shutdown, 2 for missing or invalid configuration,
1 when the token is rejected or the server fails.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from github_manager_mcp import __version__
from github_manager_mcp.errors import ConfigError, OperationError
from github_manager_mcp.server import run_server, test_server

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="github-manager-mcp",
        description="Manage GitHub organizations, repositories and collaborators over MCP (stdio).",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run the built-in self check (tool and resource listing) and exit.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Run the server, or the self check with ``--test``."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    entry = test_server if args.test else run_server
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        sys.exit(EXIT_CONFIG)
    except OperationError as exc:
        print(f"Startup failed: {exc.message} ({exc.code.value})", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        print(f"Server error: {exc}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
