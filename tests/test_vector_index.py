"""Tests for the vector index adapters."""

from unittest.mock import MagicMock

import pytest

from hybridrag.errors import DimensionMismatchError, IndexFailure, TenantIsolationViolation
from hybridrag.service.database.models import VectorMetadata
from hybridrag.service.vector_index import RavenVectorIndex

from conftest import ORG_A, ORG_B, FakeVectorIndex


def mock_store(rows=None):
    """A DocumentStore mock whose session raw_query yields `rows`."""
    store = MagicMock()
    session = store.open_session.return_value.__enter__.return_value
    query = MagicMock()
    query.add_parameter.return_value = query
    query.__iter__.return_value = iter(rows or [])
    session.advanced.raw_query.return_value = query
    session.advanced.get_metadata_for.return_value = {}
    return store, session, query


def metadata(document_id="doc1", chunk_index=0, organization_id=ORG_A):
    return VectorMetadata(
        document_id=document_id,
        chunk_index=chunk_index,
        organization_id=organization_id,
        content_preview="preview",
    )


class TestRavenVectorIndexUpsert:
    @pytest.mark.asyncio
    async def test_upsert_stores_vector_document(self):
        store, session, _ = mock_store()
        index = RavenVectorIndex(store, dimensions=3)

        assert await index.upsert("doc1-0", [0.1, 0.2, 0.3], metadata()) is True

        entity, key = session.store.call_args.args
        assert key == "ChunkVectors/doc1-0"
        assert entity.embedding == [0.1, 0.2, 0.3]
        assert entity.organization_id == ORG_A
        assert entity.content_preview == "preview"
        session.save_changes.assert_called_once()

    @pytest.mark.asyncio
    async def test_upsert_rejects_wrong_dimension(self):
        store, session, _ = mock_store()
        index = RavenVectorIndex(store, dimensions=3)

        with pytest.raises(DimensionMismatchError):
            await index.upsert("doc1-0", [0.1, 0.2], metadata())

        session.store.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_error_becomes_index_failure(self):
        store, session, _ = mock_store()
        session.save_changes.side_effect = RuntimeError("server unavailable")
        index = RavenVectorIndex(store, dimensions=3)

        with pytest.raises(IndexFailure) as exc_info:
            await index.upsert("doc1-0", [0.1, 0.2, 0.3], metadata())

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestRavenVectorIndexQuery:
    @pytest.mark.asyncio
    async def test_query_requires_organization_filter(self):
        store, session, _ = mock_store()
        index = RavenVectorIndex(store, dimensions=2)

        with pytest.raises(TenantIsolationViolation):
            await index.query([1.0, 0.0], {}, top_k=5)
        with pytest.raises(TenantIsolationViolation):
            await index.query([1.0, 0.0], {"organization_id": ""}, top_k=5)

        session.advanced.raw_query.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_filters_by_organization_and_scores(self):
        rows = [
            {
                "id": "doc1-1",
                "organization_id": ORG_A,
                "document_id": "doc1",
                "chunk_index": 1,
                "content_preview": "second",
                "embedding": [0.0, 1.0],
                "@metadata": {"@index-score": 0.42},
            },
            {
                "id": "doc1-0",
                "organization_id": ORG_A,
                "document_id": "doc1",
                "chunk_index": 0,
                "content_preview": "first",
                "embedding": [1.0, 0.0],
                "@metadata": {},
            },
        ]
        store, session, query = mock_store(rows)
        index = RavenVectorIndex(store, dimensions=2)

        matches = await index.query([1.0, 0.0], {"organization_id": ORG_A}, top_k=5)

        rql = session.advanced.raw_query.call_args.args[0]
        assert "ChunkVectors/ByEmbedding" in rql
        assert "organization_id = $org" in rql
        assert "vector.search(embedding, $vector)" in rql
        assert "limit 5" in rql
        query.add_parameter.assert_any_call("org", ORG_A)

        # Cosine fallback (1.0) outranks the reported index score (0.42)
        assert [m.id for m in matches] == ["doc1-0", "doc1-1"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[1].score == pytest.approx(0.42)
        assert matches[0].metadata.document_id == "doc1"
        assert matches[0].metadata.chunk_index == 0

    @pytest.mark.asyncio
    async def test_query_without_metadata(self):
        rows = [
            {
                "id": "doc1-0",
                "organization_id": ORG_A,
                "document_id": "doc1",
                "chunk_index": 0,
                "@metadata": {"@index-score": 0.9},
            }
        ]
        store, _, _ = mock_store(rows)
        index = RavenVectorIndex(store, dimensions=2)

        matches = await index.query([1.0, 0.0], {"organization_id": ORG_A}, 5, include_metadata=False)

        assert matches[0].metadata is None

    @pytest.mark.asyncio
    async def test_cross_tenant_row_is_rejected(self):
        rows = [
            {
                "id": "doc9-0",
                "organization_id": ORG_B,
                "document_id": "doc9",
                "chunk_index": 0,
                "@metadata": {"@index-score": 0.9},
            }
        ]
        store, _, _ = mock_store(rows)
        index = RavenVectorIndex(store, dimensions=2)

        with pytest.raises(TenantIsolationViolation):
            await index.query([1.0, 0.0], {"organization_id": ORG_A}, top_k=5)

    @pytest.mark.asyncio
    async def test_query_backend_error(self):
        store, session, _ = mock_store()
        session.advanced.raw_query.side_effect = ConnectionError("refused")
        index = RavenVectorIndex(store, dimensions=2)

        with pytest.raises(IndexFailure):
            await index.query([1.0, 0.0], {"organization_id": ORG_A}, top_k=5)


class TestRavenVectorIndexDelete:
    @pytest.mark.asyncio
    async def test_delete_missing_id_is_ok(self):
        store, session, _ = mock_store()
        index = RavenVectorIndex(store, dimensions=2)

        assert await index.delete("never-stored-0") is True
        session.delete.assert_called_once_with("ChunkVectors/never-stored-0")

    @pytest.mark.asyncio
    async def test_delete_backend_error(self):
        store, session, _ = mock_store()
        session.save_changes.side_effect = RuntimeError("boom")
        index = RavenVectorIndex(store, dimensions=2)

        with pytest.raises(IndexFailure):
            await index.delete("doc1-0")


class TestTenantIsolationProperty:
    """A query scoped to one organization never sees another's vectors."""

    @pytest.mark.asyncio
    async def test_fake_index_honours_organization(self):
        index = FakeVectorIndex(dimensions=2)
        await index.upsert("a-0", [1.0, 0.0], metadata("a", 0, ORG_A))
        await index.upsert("b-0", [1.0, 0.0], metadata("b", 0, ORG_B))

        matches = await index.query([1.0, 0.0], {"organization_id": ORG_A}, top_k=10)

        assert [m.id for m in matches] == ["a-0"]
        assert all(m.metadata.organization_id == ORG_A for m in matches)
