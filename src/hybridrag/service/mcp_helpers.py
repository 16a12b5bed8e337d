"""Async helpers shared by the Flask app, the CLI and the MCP status check.

This module handles:
- Event loop management for async operations in sync contexts
- Server status checking
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Coroutine, Iterator
from typing import Any

from fastmcp import Client as MCPClient

logger = logging.getLogger(__name__)


async def check_mcp_server(url: str, timeout: float = 5.0) -> dict[str, Any]:
    """Check if an MCP server is reachable and get its info.

    Args:
        url: The MCP server URL to check
        timeout: Connection timeout in seconds (default 5.0)

    Returns:
        Dict containing:
        - url: The server URL
        - status: "connected" or "failed"
        - tools: List of tool names (if connected)
        - server_name: Server name from protocol (if available)
        - error: Error message (if failed)
    """
    try:
        client = MCPClient(url)
        async with asyncio.timeout(timeout):
            async with client:
                tools = await client.list_tools()
                tool_names = [tool.name for tool in tools] if tools else []

                server_name = None
                if client.initialize_result and client.initialize_result.serverInfo:
                    server_name = client.initialize_result.serverInfo.name

                return {
                    "url": url,
                    "status": "connected",
                    "tools": tool_names,
                    "server_name": server_name,
                }
    except asyncio.TimeoutError:
        logger.warning(f"⚠️ Timeout connecting to MCP server {url}")
        return {"url": url, "status": "failed", "error": f"Connection timeout ({timeout}s)"}
    except Exception as e:
        logger.warning(f"⚠️ Failed to connect to MCP server {url}: {e}")
        return {"url": url, "status": "failed", "error": str(e)}


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async coroutine in a new event loop.

    Suitable for one-off calls that create their own clients, such as the
    MCP status check. Long-lived async clients must use AsyncRunner instead.

    Args:
        coro: An awaitable coroutine to execute

    Returns:
        The result of the coroutine
    """
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class AsyncRunner:
    """A single event loop running in a daemon thread.

    Flask handlers are synchronous; they submit coroutines here so that
    async clients (ollama, google-genai, redis) always run on the loop they
    were first used on.
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self.loop.run_forever, name="hybridrag-async", daemon=True
        )
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        """Run a coroutine on the background loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def iterate(self, agen: AsyncIterator[Any]) -> Iterator[Any]:
        """Drive an async generator from synchronous code.

        Closing the returned generator (client disconnect) closes the async
        generator on the background loop.
        """
        try:
            while True:
                try:
                    yield self.run(agen.__anext__())
                except StopAsyncIteration:
                    return
        finally:
            self.run(agen.aclose())

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
