"""Flask web application exposing the hybrid RAG HTTP API.

This module provides endpoints for hybrid search, document ingestion and
the agent event relay. Services are constructed once at startup and shared
by all blueprints through the route configuration.
"""

import logging
import os

from dotenv import load_dotenv
from flask import Flask

from hybridrag.client.routes import (
    documents_bp,
    events_bp,
    health_bp,
    init_config,
    search_bp,
)
from hybridrag.constants import DEFAULT_LOCAL_MCP_URL
from hybridrag.service.factory import create_services

# Configure logging
log_level = os.getenv("LOG_LEVEL", "DEBUG")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()
logger.debug("Environment variables loaded")

# Create Flask app
app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_CONTENT_LENGTH", str(16 * 1024 * 1024)))
logger.debug("Flask app created")

# Register blueprints
app.register_blueprint(search_bp)
app.register_blueprint(documents_bp)
app.register_blueprint(events_bp)
app.register_blueprint(health_bp)


def initialize_services():
    """Create the RAG services and MCP server URL on startup."""
    logger.info("🔧 Initializing services...")

    services = create_services()

    local_mcp_server_url = os.getenv("LOCAL_MCP_SERVER_URL", DEFAULT_LOCAL_MCP_URL)
    logger.info(f"✅ Local MCP server URL configured: {local_mcp_server_url}")

    init_config(services=services, local_mcp_server_url=local_mcp_server_url)


def create_app():
    """Factory function for creating the Flask application.

    This function is used by WSGI servers like gunicorn to create the app.
    It initializes services before returning the app instance.

    Returns:
        Flask: The configured Flask application instance
    """
    initialize_services()
    return app


def main() -> None:
    """Run the development server (use create_app with a WSGI server in production)."""
    initialize_services()

    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", "5000"))
    debug = os.getenv("FLASK_ENV", "development") == "development"
    logger.info(f"🚀 HybridRAG API listening on http://{host}:{port} (debug={debug})")

    # The reloader would fork a second process with its own AsyncRunner
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
