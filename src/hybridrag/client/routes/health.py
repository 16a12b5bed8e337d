"""Health check and status API routes."""

import logging

from flask import Blueprint, jsonify

from hybridrag.client.routes.config import get_config
from hybridrag.service.mcp_helpers import check_mcp_server, run_async

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint.

    Returns:
        JSON with service status
    """
    services = get_config().services
    return jsonify(
        {
            "status": "healthy",
            "services": "initialized" if services else "not initialized",
            "embedding_model": services.embeddings.model if services else None,
        }
    )


@health_bp.route("/api/mcp-status", methods=["GET"])
def get_mcp_status():
    """Get status of the local MCP server.

    Returns:
        JSON response with connected and failed MCP servers
    """
    logger.info("🔌 Checking MCP server status...")
    url = get_config().local_mcp_server_url

    connected_servers = []
    failed_servers = []
    if url:
        result = run_async(check_mcp_server(url))
        result["name"] = result.get("server_name") or "HybridRAG Retrieval"
        if result["status"] == "connected":
            connected_servers.append(result)
        else:
            failed_servers.append(result)

    logger.info(f"✅ Connected: {len(connected_servers)}, Failed: {len(failed_servers)}")
    return jsonify(
        {
            "connected": connected_servers,
            "failed": failed_servers,
            "total_configured": 1 if url else 0,
        }
    )
