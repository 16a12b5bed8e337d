"""Google Gemini embedding service implementation."""

import logging

from google import genai

from hybridrag.constants import get_embedding_dimensions, get_embedding_model
from hybridrag.embedding.base import BatchEmbeddingMixin

logger = logging.getLogger(__name__)


class GeminiEmbeddingService(BatchEmbeddingMixin):
    """Google Gemini embedding service implementation.

    The API key is automatically retrieved from the GEMINI_API_KEY environment variable.
    """

    def __init__(self, model: str | None = None, dimensions: int | None = None) -> None:
        """Initialize the Gemini service.

        Args:
            model: Embedding model name (default: EMBEDDING_MODEL env or "text-embedding-004")
            dimensions: Requested output dimensionality (default: EMBEDDING_DIMENSIONS env or 768)
        """
        self.model = model or get_embedding_model("gemini")
        self.dimensions = dimensions or get_embedding_dimensions()
        logger.info(f"🤖 Initializing GeminiEmbeddingService: model={self.model}")
        # The client gets the API key from the GEMINI_API_KEY environment variable
        self.client = genai.Client()

    async def _embed_request(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.aio.models.embed_content(
            model=self.model,
            contents=texts,
            config=genai.types.EmbedContentConfig(output_dimensionality=self.dimensions),
        )
        return [list(embedding.values) for embedding in response.embeddings]
