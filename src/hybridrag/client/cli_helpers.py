"""Helper functions for CLI commands."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import click
import requests

from hybridrag.service.database import (
    RavenDBConfig,
    create_database,
    database_exists,
    get_database_stats,
)
from hybridrag.service.factory import RAGServices, create_services
from hybridrag.service.hybrid import SearchResult

logger = logging.getLogger(__name__)


def ensure_database_exists(create_if_missing: bool = False, directory: str | None = None) -> bool:
    """Make sure the configured RavenDB database is there before a command runs.

    Args:
        create_if_missing: Create the database instead of aborting
        directory: Ingest directory, echoed back in the suggested command

    Raises:
        click.Abort: If the database is missing and was not (or could not be) created
    """
    if database_exists():
        return True

    db_name = RavenDBConfig.get_database_name()
    if not create_if_missing:
        click.echo(f"✗ Database does not exist: '{db_name}'", err=True)
        click.echo(
            f"Create it with: hybridrag-ingest {directory or '<directory>'} "
            "-o <org> --create-database",
            err=True,
        )
        raise click.Abort()

    click.echo(f"Creating database '{db_name}'...")
    try:
        create_database()
    except requests.RequestException as e:
        click.echo(f"✗ Could not create '{db_name}' at {RavenDBConfig.get_url()}: {e}", err=True)
        raise click.Abort()
    click.echo("✓ Database created successfully")
    return True


def run_with_services(func: Callable[[RAGServices], Awaitable[Any]]) -> Any:
    """Create services, run an async function with them and close them.

    Everything happens inside one event loop so the async clients are
    created, used and closed on the same loop.
    """

    async def runner() -> Any:
        services = create_services()
        try:
            return await func(services)
        finally:
            await services.aclose()

    return asyncio.run(runner())


def format_search_result(index: int, result: SearchResult, max_length: int = 200) -> str:
    """Format a search result for display.

    Args:
        index: Result number (1-based)
        result: Fused search result
        max_length: Maximum content length before truncation

    Returns:
        Formatted string for display
    """
    content = result.content
    display_content = content[:max_length] + "..." if len(content) > max_length else content

    lines = [
        f"{index}. [{result.document_id} - chunk #{result.chunk_index}] "
        f"(score: {result.score:.4f}, {result.source})",
        f"   {display_content}",
        "",
    ]
    return "\n".join(lines)


def get_database_info() -> tuple[str, str, dict[str, int] | None]:
    """Get database connection info and per-collection counts.

    Returns:
        Tuple of (url, database_name, counts or None if the server could not be queried)
    """
    url = RavenDBConfig.get_url()
    db_name = RavenDBConfig.get_database_name()

    try:
        counts = get_database_stats()
    except Exception as e:
        logger.warning(f"⚠️ Could not count documents in '{db_name}': {e}")
        counts = None

    return url, db_name, counts
