"""Application-wide constants and defaults for HybridRAG.

This module provides a single source of truth for configuration defaults,
magic numbers, and other constants used throughout the application.
"""

import os

# =============================================================================
# Chunking
# =============================================================================
DEFAULT_CHUNK_MAX_TOKENS = 512
DEFAULT_CHUNK_OVERLAP_TOKENS = 50

# =============================================================================
# Hybrid Search
# =============================================================================
RRF_K = 60  # Reciprocal Rank Fusion smoothing constant
DEFAULT_VECTOR_TOP_K = 20
DEFAULT_TEXT_TOP_K = 20
DEFAULT_MIN_SCORE = 0.0
DEFAULT_VECTOR_WEIGHT = 0.7
DEFAULT_TEXT_WEIGHT = 0.3
DEFAULT_MAX_CONTEXT_CHUNKS = 5
MAX_QUERY_LENGTH = 500
MAX_TOP_K = 100
DEFAULT_SIMILARITY_THRESHOLD = 0.7  # semantic (vector-only) search cutoff
DEFAULT_SEARCH_LIMIT = 10
NO_CONTEXT_FOUND = "No relevant context found."
CONTEXT_DELIMITER = "\n\n---\n\n"

# =============================================================================
# Display Settings
# =============================================================================
CONTENT_PREVIEW_LENGTH = 200  # Characters stored alongside vectors and shown in previews

# =============================================================================
# Default URLs and Hosts
# =============================================================================
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_LOCAL_MCP_URL = "http://localhost:8001/sse"
DEFAULT_RAVENDB_URL = "http://localhost:8080"
DEFAULT_RAVENDB_DATABASE = "hybridrag"

# =============================================================================
# RavenDB Collections and Indexes
# =============================================================================
DOCUMENTS_COLLECTION = "Documents"
CHUNKS_COLLECTION = "DocumentChunks"
VECTORS_COLLECTION = "ChunkVectors"
VECTOR_INDEX_NAME = "ChunkVectors/ByEmbedding"
SEARCH_INDEX_NAME = "DocumentChunks/Search"

# =============================================================================
# Embedding Model Defaults
# =============================================================================
EMBEDDING_DEFAULTS = {
    "ollama": "nomic-embed-text",
    "gemini": "text-embedding-004",
}

# Default embedding dimensions (shared by the embedding client and vector index)
DEFAULT_EMBEDDING_DIMENSIONS = 768
EMBEDDING_BATCH_SIZE = 100

# =============================================================================
# Event Relay
# =============================================================================
EVENT_TTL_SECONDS = 60 * 60  # 1 hour
EVENT_POLL_INTERVAL_SECONDS = 0.1
EVENT_HEARTBEAT_SECONDS = 30.0
TERMINAL_EVENT_TYPES = frozenset({"RUN_FINISHED", "RUN_ERROR"})


def get_embedding_service_name() -> str:
    """Get the configured embedding provider name.

    Checks EMBEDDING_SERVICE first, then LLM_SERVICE, then defaults to "ollama".

    Returns:
        str: The provider name ("ollama" or "gemini").
    """
    return os.getenv("EMBEDDING_SERVICE") or os.getenv("LLM_SERVICE", "ollama")


def get_embedding_model(service: str | None = None) -> str:
    """Get the default embedding model for a given embedding provider.

    Checks the EMBEDDING_MODEL environment variable first, then falls back
    to service-specific defaults.

    Args:
        service: The provider name ("ollama" or "gemini").
                If None, uses get_embedding_service_name().

    Returns:
        str: The embedding model name to use.
    """
    # Environment variable takes precedence
    env_model = os.getenv("EMBEDDING_MODEL")
    if env_model:
        return env_model

    if service is None:
        service = get_embedding_service_name()

    return EMBEDDING_DEFAULTS.get(service, EMBEDDING_DEFAULTS["ollama"])


def get_embedding_dimensions() -> int:
    """Get the configured embedding dimensionality.

    Returns:
        int: Value of EMBEDDING_DIMENSIONS, or DEFAULT_EMBEDDING_DIMENSIONS.
    """
    return int(os.getenv("EMBEDDING_DIMENSIONS", str(DEFAULT_EMBEDDING_DIMENSIONS)))
