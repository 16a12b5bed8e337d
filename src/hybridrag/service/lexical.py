"""Lexical (full-text) search over chunk content."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from ravendb import DocumentStore

from hybridrag.constants import SEARCH_INDEX_NAME
from hybridrag.errors import LexicalSearchFailure, TenantIsolationViolation
from hybridrag.service.database.utils import index_score

logger = logging.getLogger(__name__)


@dataclass
class LexicalMatch:
    """A full-text hit; carries the chunk content so no hydration is needed."""

    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    score: float


class LexicalSearch(Protocol):
    async def search(self, query: str, organization_id: str, top_k: int) -> list[LexicalMatch]:
        ...


class RavenLexicalSearch:
    """Full-text search through the DocumentChunks/Search index."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def _search(self, query: str, organization_id: str, top_k: int) -> list[dict[str, Any]]:
        rql = (
            f"from index '{SEARCH_INDEX_NAME}' "
            "where organization_id = $org and search(content, $q) "
            "order by score() "
            f"limit {int(top_k)}"
        )
        with self.store.open_session() as session:
            return list(
                session.advanced.raw_query(rql, object_type=dict)
                .add_parameter("org", organization_id)
                .add_parameter("q", query)
            )

    async def search(self, query: str, organization_id: str, top_k: int) -> list[LexicalMatch]:
        """Run a full-text query inside one organization.

        Args:
            query: Free-text query
            organization_id: Owning organization, mandatory
            top_k: Maximum number of matches

        Returns:
            list[LexicalMatch]: Matches in backend relevance order

        Raises:
            TenantIsolationViolation: If organization_id is missing or a row
                from another organization comes back
            LexicalSearchFailure: If the backend fails
        """
        if not organization_id:
            raise TenantIsolationViolation("Lexical search issued without an organization_id")

        try:
            rows = await asyncio.to_thread(self._search, query, organization_id, top_k)
        except Exception as e:
            logger.error(f"❌ Lexical search failed: {e}")
            raise LexicalSearchFailure(f"Full-text search failed: {e}") from e

        matches = []
        for row in rows:
            if row.get("organization_id") != organization_id:
                raise TenantIsolationViolation(
                    f"Chunk {row.get('id')} belongs to another organization"
                )
            matches.append(
                LexicalMatch(
                    chunk_id=row["id"],
                    document_id=row["document_id"],
                    chunk_index=int(row["chunk_index"]),
                    content=row.get("content", ""),
                    score=index_score(row) or 0.0,
                )
            )
        logger.debug(f"🔍 Lexical search returned {len(matches)} matches")
        return matches
