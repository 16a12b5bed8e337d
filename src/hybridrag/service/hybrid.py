"""Hybrid search: vector and lexical retrieval fused with Reciprocal Rank Fusion."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from hybridrag.constants import (
    CONTEXT_DELIMITER,
    DEFAULT_MAX_CONTEXT_CHUNKS,
    DEFAULT_MIN_SCORE,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TEXT_TOP_K,
    DEFAULT_TEXT_WEIGHT,
    DEFAULT_VECTOR_TOP_K,
    DEFAULT_VECTOR_WEIGHT,
    MAX_QUERY_LENGTH,
    MAX_TOP_K,
    NO_CONTEXT_FOUND,
    RRF_K,
)
from hybridrag.embedding.base import EmbeddingService
from hybridrag.errors import (
    DimensionMismatchError,
    HybridSearchFailure,
    StoreFailure,
    TenantIsolationViolation,
    ValidationError,
)
from hybridrag.service.database.models import ChunkRecord, make_chunk_id
from hybridrag.service.lexical import LexicalMatch, LexicalSearch
from hybridrag.service.vector_index import VectorIndex, VectorMatch

logger = logging.getLogger(__name__)

# Errors that describe the caller or the deployment, not an unavailable side
_PASSTHROUGH_ERRORS = (ValidationError, TenantIsolationViolation, DimensionMismatchError)


class ChunkStore(Protocol):
    async def get_chunks(self, chunk_ids: list[str], organization_id: str) -> dict[str, ChunkRecord]:
        ...


@dataclass
class SearchOptions:
    """Tunables for a hybrid search.

    Attributes:
        vector_top_k: Candidates requested from the vector index
        text_top_k: Candidates requested from full-text search
        min_score: Fused results below this score are dropped
        vector_weight: RRF weight of the vector ranking
        text_weight: RRF weight of the lexical ranking
    """

    vector_top_k: int = DEFAULT_VECTOR_TOP_K
    text_top_k: int = DEFAULT_TEXT_TOP_K
    min_score: float = DEFAULT_MIN_SCORE
    vector_weight: float = DEFAULT_VECTOR_WEIGHT
    text_weight: float = DEFAULT_TEXT_WEIGHT

    def validate(self) -> None:
        """Check ranges.

        Raises:
            ValidationError: If any option is out of range
        """
        for name in ("vector_top_k", "text_top_k"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_TOP_K:
                raise ValidationError(f"{name} must be an integer between 1 and {MAX_TOP_K}")
        for name in ("min_score", "vector_weight", "text_weight"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
                raise ValidationError(f"{name} must be a number between 0 and 1")
        if self.vector_weight == 0 and self.text_weight == 0:
            raise ValidationError("vector_weight and text_weight cannot both be 0")


def validate_query(query: str) -> str:
    """Return the stripped query or raise ValidationError."""
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query must not be empty")
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(f"Query must be at most {MAX_QUERY_LENGTH} characters")
    return query.strip()


@dataclass
class SearchResult:
    """One fused, deduplicated hit."""

    id: str
    document_id: str
    chunk_index: int
    content: str
    score: float
    source: str
    vector_rank: int | None = None
    text_rank: int | None = None
    vector_score: float | None = None
    text_score: float | None = None

    @property
    def best_rank(self) -> int:
        return min(r for r in (self.vector_rank, self.text_rank) if r is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "chunkIndex": self.chunk_index,
            "content": self.content,
            "score": self.score,
            "source": self.source,
        }


def _vector_identity(match: VectorMatch) -> tuple[str, int]:
    if match.metadata is not None:
        return match.metadata.document_id, match.metadata.chunk_index
    document_id, chunk_index = match.id.rsplit("-", 1)
    return document_id, int(chunk_index)


def _sort_key(result: SearchResult) -> tuple:
    return (
        -result.score,
        0 if result.source == "both" else 1,
        result.best_rank,
        result.document_id,
        result.chunk_index,
    )


def fuse_rankings(
    vector_matches: list[VectorMatch],
    lexical_matches: list[LexicalMatch],
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
    text_weight: float = DEFAULT_TEXT_WEIGHT,
    k: int = RRF_K,
) -> list[SearchResult]:
    """Merge two ranked lists with weighted Reciprocal Rank Fusion.

    Each list contributes `weight / (k + rank)` (rank is 1-based) to the
    row identified by (document_id, chunk_index). A row present in both
    lists gets source "both" and the sum of both contributions.

    Args:
        vector_matches: Vector hits in rank order
        lexical_matches: Lexical hits in rank order
        vector_weight: Weight of the vector ranking
        text_weight: Weight of the lexical ranking
        k: RRF smoothing constant

    Returns:
        list[SearchResult]: Fused rows ordered by score desc, then "both"
            first, then best raw rank, then identity
    """
    fused: dict[tuple[str, int], SearchResult] = {}

    for rank, match in enumerate(vector_matches, start=1):
        document_id, chunk_index = _vector_identity(match)
        key = (document_id, chunk_index)
        if key in fused:
            continue
        fused[key] = SearchResult(
            id=make_chunk_id(document_id, chunk_index),
            document_id=document_id,
            chunk_index=chunk_index,
            content="",
            score=vector_weight / (k + rank),
            source="vector",
            vector_rank=rank,
            vector_score=match.score,
        )

    for rank, match in enumerate(lexical_matches, start=1):
        key = (match.document_id, match.chunk_index)
        existing = fused.get(key)
        if existing is None:
            fused[key] = SearchResult(
                id=make_chunk_id(match.document_id, match.chunk_index),
                document_id=match.document_id,
                chunk_index=match.chunk_index,
                content=match.content,
                score=text_weight / (k + rank),
                source="text",
                text_rank=rank,
                text_score=match.score,
            )
        elif existing.text_rank is None:
            existing.score += text_weight / (k + rank)
            existing.source = "both"
            existing.text_rank = rank
            existing.text_score = match.score
            existing.content = match.content

    return sorted(fused.values(), key=_sort_key)


def render_context(results: list[SearchResult], max_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS) -> str:
    """Format results as numbered context blocks for an LLM prompt."""
    blocks = [
        f"[{n}] ({result.score * 100:.1f}%): {result.content.strip()}"
        for n, result in enumerate(results[:max_chunks], start=1)
    ]
    if not blocks:
        return NO_CONTEXT_FOUND
    return CONTEXT_DELIMITER.join(blocks)


class HybridSearchEngine:
    """Runs vector and lexical retrieval concurrently and fuses the results.

    All collaborators are injected; the engine holds no global state.
    """

    def __init__(
        self,
        embeddings: EmbeddingService,
        vector_index: VectorIndex,
        lexical: LexicalSearch,
        chunk_store: ChunkStore,
    ):
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.lexical = lexical
        self.chunk_store = chunk_store

    async def _vector_side(self, query: str, organization_id: str, top_k: int) -> list[VectorMatch]:
        embedding = await self.embeddings.embed(query)
        return await self.vector_index.query(
            embedding, {"organization_id": organization_id}, top_k, include_metadata=True
        )

    async def _retrieve(
        self, query: str, organization_id: str, options: SearchOptions
    ) -> tuple[list[VectorMatch], list[LexicalMatch]]:
        vector_result, text_result = await asyncio.gather(
            self._vector_side(query, organization_id, options.vector_top_k),
            self.lexical.search(query, organization_id, options.text_top_k),
            return_exceptions=True,
        )

        errors = [r for r in (vector_result, text_result) if isinstance(r, BaseException)]
        for error in errors:
            if isinstance(error, (asyncio.CancelledError, *_PASSTHROUGH_ERRORS)):
                raise error

        vector_failed = isinstance(vector_result, BaseException)
        text_failed = isinstance(text_result, BaseException)
        if vector_failed and text_failed:
            logger.error(f"❌ Both searches failed: {vector_result}; {text_result}")
            raise HybridSearchFailure("both") from vector_result
        if vector_failed:
            logger.error(f"❌ Vector search failed: {vector_result}")
            raise HybridSearchFailure("vector") from vector_result
        if text_failed:
            logger.error(f"❌ Lexical search failed: {text_result}")
            raise HybridSearchFailure("text") from text_result

        return vector_result, text_result

    @staticmethod
    def _check_tenant(matches: list[VectorMatch], organization_id: str) -> None:
        for match in matches:
            if match.metadata is not None and match.metadata.organization_id != organization_id:
                raise TenantIsolationViolation(f"Vector {match.id} belongs to another organization")

    async def _hydrate(self, results: list[SearchResult], organization_id: str) -> list[SearchResult]:
        missing = [r.id for r in results if r.source == "vector"]
        if not missing:
            return results

        try:
            chunks = await self.chunk_store.get_chunks(missing, organization_id)
        except StoreFailure as e:
            raise HybridSearchFailure("store", f"Chunk store unavailable: {e}") from e

        hydrated = []
        for result in results:
            if result.source == "vector":
                chunk = chunks.get(result.id)
                if chunk is None:
                    logger.warning(f"⚠️ Dropping orphan vector {result.id}: chunk row not found")
                    continue
                result.content = chunk.content
            hydrated.append(result)
        return hydrated

    async def hybrid_search(
        self,
        query: str,
        organization_id: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Search one organization's chunks with vector and full-text retrieval.

        Args:
            query: Free-text query (1-500 characters)
            organization_id: Owning organization, mandatory
            options: Search tunables (defaults to SearchOptions())

        Returns:
            list[SearchResult]: Fused results with content, best first

        Raises:
            ValidationError: If the query or options are invalid
            TenantIsolationViolation: If organization_id is missing or a
                match belongs to another organization
            HybridSearchFailure: If either side (or the chunk store) fails
        """
        if options is None:
            options = SearchOptions()
        query = validate_query(query)
        options.validate()
        if not organization_id:
            raise TenantIsolationViolation("Hybrid search issued without an organization_id")

        logger.info(f"🔍 Hybrid search for org {organization_id}: '{query[:80]}'")
        vector_matches, lexical_matches = await self._retrieve(query, organization_id, options)

        self._check_tenant(vector_matches, organization_id)

        fused = fuse_rankings(
            vector_matches,
            lexical_matches,
            vector_weight=options.vector_weight,
            text_weight=options.text_weight,
        )
        fused = [r for r in fused if r.score >= options.min_score]
        results = await self._hydrate(fused, organization_id)

        logger.info(
            f"✅ Hybrid search: {len(vector_matches)} vector + {len(lexical_matches)} text "
            f"→ {len(results)} results"
        )
        return results

    async def get_context(
        self,
        query: str,
        organization_id: str,
        max_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS,
        options: SearchOptions | None = None,
    ) -> str:
        """Render the top results as a context string for an LLM prompt.

        Returns:
            str: Numbered "[n] (score%): content" blocks, or NO_CONTEXT_FOUND
        """
        results = await self.hybrid_search(query, organization_id, options)
        return render_context(results, max_chunks)

    async def semantic_search(
        self,
        query: str,
        organization_id: str,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        limit: int = DEFAULT_SEARCH_LIMIT,
        document_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        """Vector-only search ranked by similarity.

        Args:
            query: Free-text query (1-500 characters)
            organization_id: Owning organization, mandatory
            threshold: Minimum similarity (0-1) a chunk must reach
            limit: Maximum number of results (1-100)
            document_ids: Restrict results to these documents

        Returns:
            list[SearchResult]: Hits with source "vector", most similar first

        Raises:
            ValidationError: If the query, threshold, limit or document_ids are invalid
            TenantIsolationViolation: If organization_id is missing or a
                match belongs to another organization
            HybridSearchFailure: If the vector side (or the chunk store) fails
        """
        query = validate_query(query)
        if (
            isinstance(threshold, bool)
            or not isinstance(threshold, (int, float))
            or not 0 <= threshold <= 1
        ):
            raise ValidationError("threshold must be a number between 0 and 1")
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_TOP_K:
            raise ValidationError(f"limit must be an integer between 1 and {MAX_TOP_K}")
        if document_ids is not None and (
            not isinstance(document_ids, list) or not all(isinstance(d, str) for d in document_ids)
        ):
            raise ValidationError("document_ids must be a list of strings")
        if not organization_id:
            raise TenantIsolationViolation("Semantic search issued without an organization_id")

        logger.info(f"🔍 Semantic search for org {organization_id}: '{query[:80]}'")
        # Filtering by document happens after retrieval, so ask for the full candidate pool
        top_k = MAX_TOP_K if document_ids else limit
        try:
            matches = await self._vector_side(query, organization_id, top_k)
        except _PASSTHROUGH_ERRORS:
            raise
        except Exception as e:
            logger.error(f"❌ Vector search failed: {e}")
            raise HybridSearchFailure("vector") from e

        self._check_tenant(matches, organization_id)

        wanted = set(document_ids) if document_ids else None
        results = []
        for match in matches:
            if match.score < threshold:
                continue
            document_id, chunk_index = _vector_identity(match)
            if wanted is not None and document_id not in wanted:
                continue
            results.append(
                SearchResult(
                    id=make_chunk_id(document_id, chunk_index),
                    document_id=document_id,
                    chunk_index=chunk_index,
                    content="",
                    score=match.score,
                    source="vector",
                    vector_rank=len(results) + 1,
                    vector_score=match.score,
                )
            )
            if len(results) == limit:
                break

        results = await self._hydrate(results, organization_id)
        logger.info(f"✅ Semantic search: {len(matches)} candidates → {len(results)} results")
        return results

    async def get_semantic_context(
        self,
        query: str,
        organization_id: str,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        limit: int = DEFAULT_SEARCH_LIMIT,
        document_ids: list[str] | None = None,
    ) -> str:
        """Render semantic search hits as context blocks, one per result."""
        results = await self.semantic_search(query, organization_id, threshold, limit, document_ids)
        return render_context(results, max_chunks=limit)
