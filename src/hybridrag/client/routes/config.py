"""Shared configuration for route modules."""

from dataclasses import dataclass

from flask import request

from hybridrag.service.factory import RAGServices
from hybridrag.service.mcp_helpers import AsyncRunner

ORGANIZATION_HEADER = "X-Organization-Id"


@dataclass
class RouteConfig:
    """Configuration container for Flask route dependencies.

    Routes read their services from here instead of module globals, so
    tests can install fakes with `init_config`.
    """

    services: RAGServices | None = None
    local_mcp_server_url: str | None = None
    runner: AsyncRunner | None = None


# Single shared config instance
_config = RouteConfig()


def get_config() -> RouteConfig:
    """Get the shared route configuration.

    Returns:
        RouteConfig instance with current settings
    """
    return _config


def init_config(
    services: RAGServices | None = None,
    local_mcp_server_url: str | None = None,
    runner: AsyncRunner | None = None,
) -> None:
    """Initialize the shared route configuration.

    Args:
        services: Constructed RAG services
        local_mcp_server_url: Local MCP server URL
        runner: Background event loop for async services (created if absent)
    """
    if services is not None:
        _config.services = services
    if local_mcp_server_url is not None:
        _config.local_mcp_server_url = local_mcp_server_url
    if runner is not None:
        _config.runner = runner
    elif _config.runner is None:
        _config.runner = AsyncRunner()


def get_organization_id() -> str | None:
    """Tenant identity resolved upstream and passed as a request header."""
    organization_id = request.headers.get(ORGANIZATION_HEADER, "").strip()
    return organization_id or None
