"""Pytest configuration and shared fixtures for the test suite.

The fakes below implement the same async interfaces as the RavenDB, Ollama
and Redis backed adapters, so the engine, pipeline, routes and tools can be
exercised without external services.
"""

import hashlib
import math
import re

import pytest
import requests

from hybridrag.embedding.base import BatchEmbeddingMixin, ensure_dimensions
from hybridrag.errors import IndexFailure, LexicalSearchFailure, StoreFailure, TenantIsolationViolation
from hybridrag.service.database.models import ChunkRecord, DocumentRecord, VectorMetadata
from hybridrag.service.database.utils import cosine_similarity
from hybridrag.service.events import EventRelay, InMemoryEventBackend
from hybridrag.service.factory import build_services
from hybridrag.service.lexical import LexicalMatch
from hybridrag.service.vector_index import VectorMatch, require_organization

TEST_DIMENSIONS = 16
ORG_A = "org-a"
ORG_B = "org-b"

_WORD = re.compile(r"\w+")


# Service availability checks
def ollama_available() -> bool:
    """Check if Ollama server is running and accessible."""
    try:
        response = requests.get("http://localhost:11434/api/tags", timeout=2)
        return response.status_code == 200
    except requests.RequestException:
        return False


def ravendb_available() -> bool:
    """Check if RavenDB server is running and accessible."""
    try:
        response = requests.get("http://localhost:8080/databases", timeout=2)
        return response.status_code in (200, 401)
    except requests.RequestException:
        return False


class FakeEmbeddingService(BatchEmbeddingMixin):
    """Deterministic bag-of-words embeddings: each word hashes to one dimension."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS, batch_size: int = 100):
        self.model = "fake-embed"
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.requests: list[list[str]] = []
        self.error: Exception | None = None
        self.output_dimensions: int | None = None

    def vector_for(self, text: str) -> list[float]:
        size = self.output_dimensions or self.dimensions
        vector = [0.0] * size
        for word in _WORD.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[digest[0] % size] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def _embed_request(self, texts: list[str]) -> list[list[float]]:
        self.requests.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self.vector_for(text) for text in texts]


class FakeRepository:
    """In-memory DocumentRepository; records are copied on the way in and out."""

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.chunks: dict[str, dict] = {}
        self.fail_save_chunks = False
        self.fail_get_chunks = False
        self.fail_save_status: set[str] = set()

    async def save_document(self, record: DocumentRecord) -> DocumentRecord:
        if record.status in self.fail_save_status:
            raise StoreFailure(f"save_document failed: timeout writing {record.status}")
        self.documents[record.id] = record.to_dict()
        return record

    async def get_document(self, document_id: str, organization_id: str) -> DocumentRecord | None:
        data = self.documents.get(document_id)
        if data is None or data["organization_id"] != organization_id:
            return None
        return DocumentRecord.from_dict(data)

    async def list_documents(self, organization_id: str) -> list[DocumentRecord]:
        return [
            DocumentRecord.from_dict(data)
            for data in self.documents.values()
            if data["organization_id"] == organization_id
        ]

    async def delete_document(self, document_id: str, organization_id: str) -> bool:
        if await self.get_document(document_id, organization_id) is None:
            return False
        del self.documents[document_id]
        return True

    async def save_chunks(self, chunks: list[ChunkRecord]) -> int:
        if self.fail_save_chunks:
            raise StoreFailure("save_chunks failed: disk full")
        for chunk in chunks:
            self.chunks[chunk.id] = chunk.to_dict()
        return len(chunks)

    async def get_chunks(self, chunk_ids: list[str], organization_id: str) -> dict[str, ChunkRecord]:
        if self.fail_get_chunks:
            raise StoreFailure("get_chunks failed: connection reset")
        return {
            chunk_id: ChunkRecord.from_dict(self.chunks[chunk_id])
            for chunk_id in chunk_ids
            if chunk_id in self.chunks and self.chunks[chunk_id]["organization_id"] == organization_id
        }

    async def list_chunk_ids(self, document_id: str, organization_id: str) -> list[str]:
        rows = [
            data
            for data in self.chunks.values()
            if data["document_id"] == document_id and data["organization_id"] == organization_id
        ]
        return [row["id"] for row in sorted(rows, key=lambda row: row["chunk_index"])]

    async def delete_chunks(self, document_id: str, organization_id: str) -> list[str]:
        chunk_ids = await self.list_chunk_ids(document_id, organization_id)
        for chunk_id in chunk_ids:
            del self.chunks[chunk_id]
        return chunk_ids


class FakeVectorIndex:
    """In-memory vector index with cosine scoring and an organization filter."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS):
        self.dimensions = dimensions
        self.vectors: dict[str, tuple[list[float], VectorMetadata]] = {}
        self.failing_ids: set[str] = set()
        self.fail_queries = False
        self.query_calls = 0

    async def upsert(self, vector_id: str, vector: list[float], metadata: VectorMetadata) -> bool:
        ensure_dimensions(vector, self.dimensions)
        if vector_id in self.failing_ids:
            raise IndexFailure(f"Upsert of {vector_id} failed: timeout")
        self.vectors[vector_id] = (list(vector), metadata)
        return True

    async def query(self, vector, filter, top_k, include_metadata=True) -> list[VectorMatch]:
        self.query_calls += 1
        organization_id = require_organization(filter)
        ensure_dimensions(vector, self.dimensions)
        if self.fail_queries:
            raise IndexFailure("Vector query failed: index offline")
        matches = [
            VectorMatch(
                id=vector_id,
                score=cosine_similarity(vector, stored),
                metadata=metadata if include_metadata else None,
            )
            for vector_id, (stored, metadata) in self.vectors.items()
            if metadata.organization_id == organization_id
        ]
        matches.sort(key=lambda m: (-m.score, m.id))
        return matches[:top_k]

    async def delete(self, vector_id: str) -> bool:
        if vector_id in self.failing_ids:
            raise IndexFailure(f"Delete of {vector_id} failed: timeout")
        self.vectors.pop(vector_id, None)
        return True


class FakeLexicalSearch:
    """Term-count full-text search over a FakeRepository's chunk rows."""

    def __init__(self, repository: FakeRepository):
        self.repository = repository
        self.fail = False
        self.calls = 0

    async def search(self, query: str, organization_id: str, top_k: int) -> list[LexicalMatch]:
        self.calls += 1
        if not organization_id:
            raise TenantIsolationViolation("Lexical search issued without an organization_id")
        if self.fail:
            raise LexicalSearchFailure("Full-text search failed: index offline")
        terms = set(_WORD.findall(query.lower()))
        matches = []
        for row in self.repository.chunks.values():
            if row["organization_id"] != organization_id:
                continue
            words = _WORD.findall(row["content"].lower())
            score = float(sum(1 for word in words if word in terms))
            if score > 0:
                matches.append(
                    LexicalMatch(
                        chunk_id=row["id"],
                        document_id=row["document_id"],
                        chunk_index=row["chunk_index"],
                        content=row["content"],
                        score=score,
                    )
                )
        matches.sort(key=lambda m: (-m.score, m.chunk_id))
        return matches[:top_k]


@pytest.fixture
def embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def lexical(repository) -> FakeLexicalSearch:
    return FakeLexicalSearch(repository)


@pytest.fixture
def event_relay() -> EventRelay:
    return EventRelay(InMemoryEventBackend())


@pytest.fixture
def services(repository, embeddings, vector_index, lexical, event_relay):
    """RAGServices wired with in-memory fakes."""
    return build_services(
        repository=repository,
        embeddings=embeddings,
        vector_index=vector_index,
        lexical=lexical,
        events=event_relay,
    )


@pytest.fixture
def make_document(repository):
    """Factory fixture that stores a pending document and returns it.

    Returns:
        Async function (content, organization_id, document_id) -> DocumentRecord
    """

    async def _make(content: str, organization_id: str = ORG_A, document_id: str = "doc1"):
        record = DocumentRecord(
            id=document_id, organization_id=organization_id, name=f"{document_id}.txt", content=content
        )
        await repository.save_document(record)
        return record

    return _make


@pytest.fixture
def ravendb_store():
    """Provide RavenDB DocumentStore, skip if RavenDB not available."""
    if not ravendb_available():
        pytest.skip("RavenDB server not running on localhost:8080")

    from hybridrag.service.database import create_document_store

    store = create_document_store()
    yield store
    store.close()
