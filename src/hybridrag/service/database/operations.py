"""RavenDB store creation, index definitions and database administration."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import requests
from ravendb import DocumentStore
from ravendb.documents.indexes.definitions import (
    FieldIndexing,
    FieldStorage,
    IndexDefinition,
    IndexFieldOptions,
)
from ravendb.documents.indexes.vector.options import VectorOptions
from ravendb.documents.operations.indexes import GetIndexNamesOperation, PutIndexesOperation
from ravendb.serverwide.operations.common import DeleteDatabaseOperation

from hybridrag.constants import (
    CHUNKS_COLLECTION,
    DOCUMENTS_COLLECTION,
    SEARCH_INDEX_NAME,
    VECTOR_INDEX_NAME,
    VECTORS_COLLECTION,
    get_embedding_dimensions,
)
from hybridrag.service.database.config import RavenDBConfig

logger = logging.getLogger(__name__)


def _target(url: str | None, database: str | None) -> tuple[str, str]:
    """Fill in the server URL and database name from RavenDBConfig."""
    return url or RavenDBConfig.get_url(), database or RavenDBConfig.get_database_name()


def create_document_store(url: str | None = None, database: str | None = None) -> DocumentStore:
    """Create and initialize a DocumentStore.

    A client certificate is attached when RAVENDB_CERT_PATH is set.

    Args:
        url: RavenDB server URL (defaults to RAVENDB_URL)
        database: Database name (defaults to RAVENDB_DATABASE)

    Returns:
        DocumentStore: Initialized store; the caller closes it
    """
    url, database = _target(url, database)
    store = DocumentStore([url], database)
    certificate = RavenDBConfig.get_certificate_path()
    if certificate:
        store.certificate_pem_path = certificate
    store.initialize()
    return store


@contextmanager
def _short_lived_store(url: str | None, database: str | None) -> Iterator[DocumentStore]:
    store = create_document_store(url, database)
    try:
        yield store
    finally:
        store.close()


def build_vector_index(dimensions: int) -> IndexDefinition:
    """Build the static vector index over the ChunkVectors collection.

    organization_id, document_id and chunk_index are indexed next to the
    embedding so tenant filtering happens inside the same query.

    Args:
        dimensions: Configured embedding dimension

    Returns:
        IndexDefinition: Definition for VECTOR_INDEX_NAME
    """
    index_definition = IndexDefinition()
    index_definition.name = VECTOR_INDEX_NAME
    index_definition.maps = {
        f"""from vector in docs.{VECTORS_COLLECTION}
        select new {{
            organization_id = vector.organization_id,
            document_id = vector.document_id,
            chunk_index = vector.chunk_index,
            embedding = CreateField("embedding", vector.embedding, new CreateFieldOptions {{ Storage = FieldStorage.Yes, Indexing = FieldIndexing.No }})
        }}"""
    }
    index_definition.fields = {
        "embedding": IndexFieldOptions(
            storage=FieldStorage.YES,
            indexing=FieldIndexing.NO,
            vector=VectorOptions(dimensions=dimensions),
        )
    }
    return index_definition


def build_search_index() -> IndexDefinition:
    """Build the full-text index over chunk content.

    Returns:
        IndexDefinition: Definition for SEARCH_INDEX_NAME
    """
    index_definition = IndexDefinition()
    index_definition.name = SEARCH_INDEX_NAME
    index_definition.maps = {
        f"""from chunk in docs.{CHUNKS_COLLECTION}
        select new {{
            organization_id = chunk.organization_id,
            document_id = chunk.document_id,
            chunk_index = chunk.chunk_index,
            content = chunk.content
        }}"""
    }
    index_definition.fields = {
        "content": IndexFieldOptions(storage=FieldStorage.YES, indexing=FieldIndexing.SEARCH)
    }
    return index_definition


def ensure_indexes_exist(store: DocumentStore, dimensions: int | None = None) -> list[str]:
    """Ensure the vector and full-text indexes exist in RavenDB.

    Args:
        store: Initialized DocumentStore instance
        dimensions: Vector dimension (defaults to EMBEDDING_DIMENSIONS env)

    Returns:
        list[str]: Names of the indexes that were created by this call
    """
    if dimensions is None:
        dimensions = get_embedding_dimensions()

    existing_indexes = store.maintenance.send(GetIndexNamesOperation(0, 100))
    missing = []
    if VECTOR_INDEX_NAME not in existing_indexes:
        missing.append(build_vector_index(dimensions))
    if SEARCH_INDEX_NAME not in existing_indexes:
        missing.append(build_search_index())

    if missing:
        store.maintenance.send(PutIndexesOperation(*missing))
        logger.info(f"📐 Created indexes: {', '.join(d.name for d in missing)}")
    return [d.name for d in missing]


def database_exists(url: str | None = None, database: str | None = None) -> bool:
    """Ask the server whether the database exists.

    An unreachable server counts as "does not exist" and is logged.
    """
    url, database = _target(url, database)
    try:
        response = requests.get(f"{url}/databases/{database}/stats", timeout=10)
    except requests.RequestException as e:
        logger.warning(f"⚠️ Could not reach RavenDB at {url}: {e}")
        return False
    return response.status_code == 200


def create_database(url: str | None = None, database: str | None = None) -> None:
    """Create the database through the admin REST endpoint.

    Raises:
        requests.HTTPError: If the server refuses the request
    """
    url, database = _target(url, database)
    payload = {"DatabaseName": database, "Settings": {}, "Disabled": False}
    response = requests.put(f"{url}/admin/databases", json=payload, timeout=30)
    response.raise_for_status()
    logger.info(f"🗄️ Created database '{database}'")


def delete_database(url: str | None = None, database: str | None = None) -> None:
    """Hard-delete the database with every document, chunk, vector and index.

    Irreversible.
    """
    url, database = _target(url, database)
    with _short_lived_store(url, database) as store:
        store.maintenance.server.send(
            DeleteDatabaseOperation(database_name=database, hard_delete=True)
        )
    logger.info(f"🗑️ Deleted database '{database}'")


def count_collection(
    collection: str, url: str | None = None, database: str | None = None
) -> int:
    """Number of documents in one collection (Documents, DocumentChunks or ChunkVectors)."""
    with _short_lived_store(url, database) as store:
        with store.open_session() as session:
            return session.query_collection(collection, object_type=dict).count()


def get_database_stats(url: str | None = None, database: str | None = None) -> dict[str, int]:
    """Per-collection document counts for the three hybridrag collections."""
    return {
        name: count_collection(name, url, database)
        for name in (DOCUMENTS_COLLECTION, CHUNKS_COLLECTION, VECTORS_COLLECTION)
    }
