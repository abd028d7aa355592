"""Configuration loading for github-manager-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The token is a secret and must never be emitted to agents, logs, or error messages.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Non-functional limits for calls to GitHub."""

    # Network
    total_timeout_s: float = 60.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0

    # Listing
    per_page: int = 100


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Credential and server settings."""

    token: str
    api_base_url: str
    log_level: int
    limits: LimitsConfig

    def __repr__(self) -> str:
        return f"AppConfig(api_base_url={self.api_base_url!r}, log_level={self.log_level!r}, limits={self.limits!r})"


def _parse_log_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ConfigError("GITHUB_MANAGER_LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR")
    return level


def _parse_api_url(value: str | None) -> str:
    if not value:
        return DEFAULT_API_URL
    url = value.strip().rstrip("/")
    if not url.startswith("https://"):
        raise ConfigError("GITHUB_API_URL must be an https:// URL")
    return url


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        ConfigError: If configuration is missing/invalid.
    """
    token = os.getenv("GITHUB_TOKEN")
    if not token or not token.strip():
        raise ConfigError("GITHUB_TOKEN environment variable is required")

    return AppConfig(
        token=token.strip(),
        api_base_url=_parse_api_url(os.getenv("GITHUB_API_URL")),
        log_level=_parse_log_level(os.getenv("GITHUB_MANAGER_LOG_LEVEL")),
        limits=LimitsConfig(),
    )
