"""Embedding service abstraction layer for hybridrag.

This package provides a unified interface for embedding providers:
- OllamaEmbeddingService: Local models via Ollama
- GeminiEmbeddingService: Google Gemini API

Usage:
    from hybridrag.embedding import get_embedding_service

    service = get_embedding_service()
    vectors = await service.embed_batch(["first chunk", "second chunk"])
"""

from hybridrag.embedding.base import (
    BatchEmbeddingMixin,
    EmbeddingService,
    clean_text,
    ensure_dimensions,
)
from hybridrag.embedding.factory import get_embedding_service
from hybridrag.embedding.gemini import GeminiEmbeddingService
from hybridrag.embedding.ollama import OllamaEmbeddingService

__all__ = [
    "EmbeddingService",
    "BatchEmbeddingMixin",
    "OllamaEmbeddingService",
    "GeminiEmbeddingService",
    "get_embedding_service",
    "clean_text",
    "ensure_dimensions",
]
