"""Process-wide wiring of the retrieval, ingestion and event services.

Every client is created once at startup and handed to the components that
need it; components never reach for module-level singletons.
"""

import logging
from dataclasses import dataclass

from ravendb import DocumentStore

from hybridrag.chunking import ChunkingConfig
from hybridrag.constants import get_embedding_dimensions
from hybridrag.embedding import EmbeddingService, get_embedding_service
from hybridrag.service.database import (
    DocumentRepository,
    create_document_store,
    ensure_indexes_exist,
)
from hybridrag.service.events import EventRelay, create_event_relay
from hybridrag.service.hybrid import ChunkStore, HybridSearchEngine
from hybridrag.service.ingestion import IngestionPipeline
from hybridrag.service.lexical import LexicalSearch, RavenLexicalSearch
from hybridrag.service.vector_index import RavenVectorIndex, VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class RAGServices:
    """Container for the constructed services."""

    repository: DocumentRepository
    embeddings: EmbeddingService
    vector_index: VectorIndex
    lexical: LexicalSearch
    search: HybridSearchEngine
    ingestion: IngestionPipeline
    events: EventRelay
    store: DocumentStore | None = None

    async def aclose(self) -> None:
        """Release the event relay connection and the document store."""
        await self.events.close()
        if self.store is not None:
            self.store.close()


def build_services(
    repository: DocumentRepository,
    embeddings: EmbeddingService,
    vector_index: VectorIndex,
    lexical: LexicalSearch,
    events: EventRelay | None = None,
    chunk_store: ChunkStore | None = None,
    chunking_config: ChunkingConfig | None = None,
    store: DocumentStore | None = None,
) -> RAGServices:
    """Assemble the engine and pipeline from already-built adapters."""
    return RAGServices(
        repository=repository,
        embeddings=embeddings,
        vector_index=vector_index,
        lexical=lexical,
        search=HybridSearchEngine(embeddings, vector_index, lexical, chunk_store or repository),
        ingestion=IngestionPipeline(
            repository, embeddings, vector_index, chunking_config or ChunkingConfig.from_env()
        ),
        events=events or create_event_relay(),
        store=store,
    )


def create_services(
    url: str | None = None,
    database: str | None = None,
    embedding_config: dict | None = None,
) -> RAGServices:
    """Create RavenDB-backed services from the environment.

    Args:
        url: RavenDB server URL (defaults to RAVENDB_URL)
        database: Database name (defaults to RAVENDB_DATABASE)
        embedding_config: Passed to get_embedding_service

    Returns:
        RAGServices: Ready-to-use services; call `aclose()` on shutdown
    """
    dimensions = get_embedding_dimensions()
    embedding_config = {"dimensions": dimensions, **(embedding_config or {})}

    store = create_document_store(url, database)
    ensure_indexes_exist(store, dimensions)

    embeddings = get_embedding_service(embedding_config)
    if embeddings.dimensions != dimensions:
        logger.warning(
            f"⚠️ Embedding service dimension {embeddings.dimensions} differs from "
            f"index dimension {dimensions}"
        )
    repository = DocumentRepository(store)
    services = build_services(
        repository=repository,
        embeddings=embeddings,
        vector_index=RavenVectorIndex(store, dimensions),
        lexical=RavenLexicalSearch(store),
        store=store,
    )
    logger.info(f"✅ Services initialized (embedding model: {embeddings.model})")
    return services
