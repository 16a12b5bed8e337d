"""Ollama embedding service implementation."""

import logging

import ollama

from hybridrag.constants import get_embedding_dimensions, get_embedding_model
from hybridrag.embedding.base import BatchEmbeddingMixin

logger = logging.getLogger(__name__)


class OllamaEmbeddingService(BatchEmbeddingMixin):
    """Ollama embedding service implementation.

    Uses the async Ollama client so embedding calls suspend rather than block
    the event loop.
    """

    def __init__(self, host: str, model: str | None = None, dimensions: int | None = None) -> None:
        """Initialize the Ollama service.

        Args:
            host: The Ollama server host URL (e.g., "http://localhost:11434")
            model: Embedding model name (default: EMBEDDING_MODEL env or "nomic-embed-text")
            dimensions: Expected vector length (default: EMBEDDING_DIMENSIONS env or 768)
        """
        self.host = host
        self.model = model or get_embedding_model("ollama")
        self.dimensions = dimensions or get_embedding_dimensions()
        logger.info(f"🤖 Initializing OllamaEmbeddingService: host={host}, model={self.model}")
        # Configure the Ollama client with the specified host
        self.client = ollama.AsyncClient(host=host)

    async def _embed_request(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.embed(model=self.model, input=texts)
        return list(response["embeddings"])
