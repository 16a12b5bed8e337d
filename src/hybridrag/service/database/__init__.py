"""Database configuration and connection management for RavenDB.

This package provides the persistence layer for hybridrag:
- Configuration management (RavenDBConfig)
- Document store creation, vector and full-text index management
- Admin operations (create, delete, count)
- Tenant-scoped document and chunk repository

Usage:
    from hybridrag.service.database import (
        DocumentRepository,
        create_document_store,
        ensure_indexes_exist,
    )
"""

# Re-export public API
from hybridrag.service.database.config import RavenDBConfig
from hybridrag.service.database.models import (
    ChunkRecord,
    ChunkVector,
    DocumentRecord,
    DocumentStatus,
    VectorMetadata,
    make_chunk_id,
)
from hybridrag.service.database.operations import (
    build_search_index,
    build_vector_index,
    count_collection,
    create_database,
    create_document_store,
    database_exists,
    delete_database,
    ensure_indexes_exist,
    get_database_stats,
)
from hybridrag.service.database.repository import DocumentRepository
from hybridrag.service.database.utils import cosine_similarity, index_score

__all__ = [
    # Config
    "RavenDBConfig",
    # Models
    "ChunkRecord",
    "ChunkVector",
    "DocumentRecord",
    "DocumentStatus",
    "VectorMetadata",
    "make_chunk_id",
    # Operations
    "create_document_store",
    "build_vector_index",
    "build_search_index",
    "ensure_indexes_exist",
    "database_exists",
    "create_database",
    "delete_database",
    "count_collection",
    "get_database_stats",
    # Repository
    "DocumentRepository",
    # Utils
    "cosine_similarity",
    "index_score",
]
