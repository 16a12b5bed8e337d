"""Flask route blueprints for the hybridrag HTTP API."""

from hybridrag.client.routes.config import get_config, init_config
from hybridrag.client.routes.documents import documents_bp
from hybridrag.client.routes.events import events_bp
from hybridrag.client.routes.health import health_bp
from hybridrag.client.routes.search import search_bp

__all__ = [
    "documents_bp",
    "events_bp",
    "health_bp",
    "search_bp",
    "init_config",
    "get_config",
]
