"""github-manager-mcp: GitHub organization and repository management over MCP."""

__version__ = "0.1.0"
