"""Base classes and protocols for embedding services."""

import logging
import re
from typing import Protocol

from hybridrag.constants import EMBEDDING_BATCH_SIZE
from hybridrag.errors import DimensionMismatchError, EmbeddingFailure, RAGError, ValidationError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class EmbeddingService(Protocol):
    """Protocol defining the interface for embedding services.

    Every vector produced by one deployment shares the same dimensionality;
    a mismatch is a configuration error, not a recoverable condition.
    """

    model: str
    dimensions: int

    async def embed(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text.

        Args:
            text: Text to embed (chunk content or query)

        Returns:
            list[float]: Embedding vector of length `dimensions`
        """
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: Ordered texts to embed

        Returns:
            list[list[float]]: One vector per input text, in input order
        """
        ...


def clean_text(text: str) -> str:
    """Normalize text before embedding: drop control characters, collapse whitespace.

    Args:
        text: Raw text

    Returns:
        str: Cleaned text
    """
    return _WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", text)).strip()


def ensure_dimensions(vector: list[float], expected: int) -> None:
    """Reject vectors whose length differs from the configured dimensionality.

    Raises:
        DimensionMismatchError: If len(vector) != expected.
    """
    if len(vector) != expected:
        raise DimensionMismatchError(expected=expected, actual=len(vector))


class BatchEmbeddingMixin:
    """Shared embed/embed_batch logic for providers.

    Subclasses implement `_embed_request(texts)`, a single upstream call for
    at most `batch_size` texts. Batches are sent sequentially so output order
    always matches input order. Nothing is retried here.
    """

    model: str
    dimensions: int
    batch_size: int = EMBEDDING_BATCH_SIZE

    async def _embed_request(self, texts: list[str]) -> list[list[float]]:
        raise NotImplementedError

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        cleaned = [clean_text(text) for text in texts]
        for position, text in enumerate(cleaned):
            if not text:
                raise ValidationError(f"Cannot embed empty text (position {position})")

        vectors: list[list[float]] = []
        for start in range(0, len(cleaned), self.batch_size):
            batch = cleaned[start : start + self.batch_size]
            try:
                batch_vectors = await self._embed_request(batch)
            except RAGError:
                raise
            except Exception as e:
                logger.error(f"❌ Embedding request failed ({self.model}): {e}", exc_info=True)
                raise EmbeddingFailure(f"Embedding request failed: {e}") from e

            if len(batch_vectors) != len(batch):
                raise EmbeddingFailure(
                    f"Embedding service returned {len(batch_vectors)} vectors "
                    f"for {len(batch)} texts"
                )
            vectors.extend([float(value) for value in vector] for vector in batch_vectors)

        for vector in vectors:
            ensure_dimensions(vector, self.dimensions)

        logger.info(f"✅ Generated {len(vectors)} embeddings with {self.model}")
        return vectors
