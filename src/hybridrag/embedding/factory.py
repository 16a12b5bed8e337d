"""Factory function for creating embedding service instances."""

import logging
import os

from dotenv import load_dotenv

from hybridrag.constants import DEFAULT_OLLAMA_HOST, get_embedding_service_name
from hybridrag.embedding.base import EmbeddingService
from hybridrag.embedding.gemini import GeminiEmbeddingService
from hybridrag.embedding.ollama import OllamaEmbeddingService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_embedding_service(config: dict | None = None) -> EmbeddingService:
    """Factory function to create an embedding service instance.

    Args:
        config: Optional configuration dictionary. If None, uses environment variables.
                Expected keys:
                - 'service': Provider (default: EMBEDDING_SERVICE / LLM_SERVICE env, or "ollama")
                - 'host': Ollama host URL (default: from OLLAMA_HOST env)
                - 'model': Embedding model name (default: from EMBEDDING_MODEL env)
                - 'dimensions': Vector length (default: from EMBEDDING_DIMENSIONS env)

    Returns:
        EmbeddingService: An instance implementing the EmbeddingService protocol.

    Raises:
        ValueError: If the provider is not supported.
    """
    if config is None:
        config = {}

    service_type = config.get("service", get_embedding_service_name())
    model = config.get("model")
    dimensions = config.get("dimensions")

    if service_type == "ollama":
        host = config.get("host", os.getenv("OLLAMA_HOST", DEFAULT_OLLAMA_HOST))
        return OllamaEmbeddingService(host=host, model=model, dimensions=dimensions)

    if service_type == "gemini":
        return GeminiEmbeddingService(model=model, dimensions=dimensions)

    raise ValueError(f"Unsupported embedding service: {service_type}")
