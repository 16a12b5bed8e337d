"""Vector index adapter: tenant-filtered upsert, query and delete of chunk vectors."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from ravendb import DocumentStore

from hybridrag.constants import VECTOR_INDEX_NAME, VECTORS_COLLECTION
from hybridrag.embedding.base import ensure_dimensions
from hybridrag.errors import IndexFailure, TenantIsolationViolation
from hybridrag.service.database.models import ChunkVector, VectorMetadata
from hybridrag.service.database.utils import cosine_similarity, index_score

logger = logging.getLogger(__name__)


@dataclass
class VectorMatch:
    """A single nearest-neighbour hit."""

    id: str
    score: float
    metadata: VectorMetadata | None = None


def require_organization(filter: dict[str, Any] | None) -> str:
    """Extract the mandatory organization_id from a query filter.

    Raises:
        TenantIsolationViolation: If the filter has no non-empty organization_id
    """
    organization_id = (filter or {}).get("organization_id")
    if not organization_id:
        raise TenantIsolationViolation("Vector query issued without an organization_id filter")
    return organization_id


class VectorIndex(Protocol):
    """Narrow interface to a nearest-neighbour index."""

    dimensions: int

    async def upsert(self, vector_id: str, vector: list[float], metadata: VectorMetadata) -> bool:
        ...

    async def query(
        self,
        vector: list[float],
        filter: dict[str, Any],
        top_k: int,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        ...

    async def delete(self, vector_id: str) -> bool:
        ...


class RavenVectorIndex:
    """Vector index backed by RavenDB vector search.

    Vectors are stored as ChunkVectors documents and queried through the
    static index built by `ensure_indexes_exist`.
    """

    def __init__(self, store: DocumentStore, dimensions: int):
        self.store = store
        self.dimensions = dimensions

    def _upsert(self, vector_id: str, vector: list[float], metadata: VectorMetadata) -> None:
        entity = ChunkVector(
            id=vector_id,
            organization_id=metadata.organization_id,
            document_id=metadata.document_id,
            chunk_index=metadata.chunk_index,
            embedding=list(vector),
            content_preview=metadata.content_preview,
        )
        with self.store.open_session() as session:
            session.store(entity, entity.key)
            session.advanced.get_metadata_for(entity)["@collection"] = VECTORS_COLLECTION
            session.save_changes()

    async def upsert(self, vector_id: str, vector: list[float], metadata: VectorMetadata) -> bool:
        """Insert or replace a vector.

        Args:
            vector_id: Identifier, {document_id}-{chunk_index}
            vector: Embedding of exactly `dimensions` floats
            metadata: Payload returned with query matches

        Returns:
            bool: True once stored

        Raises:
            DimensionMismatchError: If the vector has the wrong length
            IndexFailure: If RavenDB rejects the write
        """
        ensure_dimensions(vector, self.dimensions)
        try:
            await asyncio.to_thread(self._upsert, vector_id, vector, metadata)
        except Exception as e:
            logger.error(f"❌ Vector upsert failed for {vector_id}: {e}")
            raise IndexFailure(f"Upsert of {vector_id} failed: {e}") from e
        return True

    def _query(
        self, vector: list[float], organization_id: str, top_k: int
    ) -> list[dict[str, Any]]:
        rql = (
            f"from index '{VECTOR_INDEX_NAME}' "
            "where organization_id = $org and vector.search(embedding, $vector) "
            f"limit {int(top_k)}"
        )
        with self.store.open_session() as session:
            return list(
                session.advanced.raw_query(rql, object_type=dict)
                .add_parameter("org", organization_id)
                .add_parameter("vector", list(vector))
            )

    async def query(
        self,
        vector: list[float],
        filter: dict[str, Any],
        top_k: int,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return the top_k nearest vectors inside one organization.

        Args:
            vector: Query embedding
            filter: Must contain a non-empty organization_id
            top_k: Maximum number of matches
            include_metadata: Attach the VectorMetadata payload to each match

        Returns:
            list[VectorMatch]: Matches sorted by descending score

        Raises:
            TenantIsolationViolation: If the filter lacks organization_id
            DimensionMismatchError: If the query vector has the wrong length
            IndexFailure: If the index is unavailable
        """
        organization_id = require_organization(filter)
        ensure_dimensions(vector, self.dimensions)

        try:
            rows = await asyncio.to_thread(self._query, vector, organization_id, top_k)
        except Exception as e:
            logger.error(f"❌ Vector query failed: {e}")
            raise IndexFailure(f"Vector query failed: {e}") from e

        matches = []
        for row in rows:
            if row.get("organization_id") != organization_id:
                raise TenantIsolationViolation(
                    f"Vector {row.get('id')} belongs to another organization"
                )
            score = index_score(row)
            if score is None:
                score = cosine_similarity(vector, row.get("embedding") or [])
            matches.append(
                VectorMatch(
                    id=row["id"],
                    score=score,
                    metadata=VectorMetadata.from_dict(row) if include_metadata else None,
                )
            )

        matches.sort(key=lambda m: m.score, reverse=True)
        logger.debug(f"🔍 Vector query returned {len(matches)} matches")
        return matches

    def _delete(self, vector_id: str) -> None:
        with self.store.open_session() as session:
            session.delete(f"{VECTORS_COLLECTION}/{vector_id}")
            session.save_changes()

    async def delete(self, vector_id: str) -> bool:
        """Remove a vector. Deleting a missing id is not an error.

        Raises:
            IndexFailure: If RavenDB rejects the delete
        """
        try:
            await asyncio.to_thread(self._delete, vector_id)
        except Exception as e:
            logger.error(f"❌ Vector delete failed for {vector_id}: {e}")
            raise IndexFailure(f"Delete of {vector_id} failed: {e}") from e
        return True
