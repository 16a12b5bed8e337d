"""Tests for the ingestion pipeline."""

import asyncio

import pytest

from hybridrag.chunking import ChunkingConfig
from hybridrag.errors import DimensionMismatchError, DocumentNotFoundError, IngestionStateError
from hybridrag.service.ingestion import MISSING_VECTORS_KEY, IngestionPipeline

from conftest import ORG_A, ORG_B, FakeVectorIndex


def words(n: int) -> str:
    return " ".join(f"word{i}" for i in range(n))


@pytest.fixture
def pipeline(repository, embeddings, vector_index):
    return IngestionPipeline(
        repository, embeddings, vector_index, ChunkingConfig(max_tokens=1000, overlap_tokens=200)
    )


class TestIngest:
    @pytest.mark.asyncio
    async def test_ingest_2500_words(self, pipeline, repository, vector_index, make_document):
        await make_document(words(2500))

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is True
        assert result.status == "processed"
        assert result.chunk_count == 3
        assert sorted(vector_index.vectors) == ["doc1-0", "doc1-1", "doc1-2"]
        assert sorted(repository.chunks) == ["doc1-0", "doc1-1", "doc1-2"]

        stored = repository.documents["doc1"]
        assert stored["status"] == "processed"
        assert stored["chunk_count"] == 3
        assert stored["processed_at"] is not None
        assert stored["error"] is None

    @pytest.mark.asyncio
    async def test_vectors_carry_tenant_metadata(self, pipeline, vector_index, make_document):
        await make_document(words(50), organization_id=ORG_B, document_id="docb")

        await pipeline.ingest("docb", ORG_B)

        _, metadata = vector_index.vectors["docb-0"]
        assert metadata.organization_id == ORG_B
        assert metadata.document_id == "docb"
        assert metadata.chunk_index == 0
        assert metadata.content_preview.startswith("word0 word1")

    @pytest.mark.asyncio
    async def test_raw_content_overrides_stored_content(self, pipeline, repository, make_document):
        await make_document("")

        result = await pipeline.ingest("doc1", ORG_A, raw_content="uploaded later")

        assert result.success is True
        assert repository.chunks["doc1-0"]["content"] == "uploaded later"

    @pytest.mark.asyncio
    async def test_unknown_document(self, pipeline):
        with pytest.raises(DocumentNotFoundError):
            await pipeline.ingest("missing", ORG_A)

    @pytest.mark.asyncio
    async def test_other_organization_cannot_ingest(self, pipeline, make_document):
        await make_document(words(10), organization_id=ORG_A)
        with pytest.raises(DocumentNotFoundError):
            await pipeline.ingest("doc1", ORG_B)

    @pytest.mark.asyncio
    async def test_processed_document_is_not_reingested(self, pipeline, make_document):
        await make_document(words(10))
        await pipeline.ingest("doc1", ORG_A)

        with pytest.raises(IngestionStateError):
            await pipeline.ingest("doc1", ORG_A)

    @pytest.mark.asyncio
    async def test_failed_document_can_be_retried(self, pipeline, embeddings, make_document):
        await make_document(words(10))
        embeddings.error = ConnectionError("refused")
        assert (await pipeline.ingest("doc1", ORG_A)).success is False

        embeddings.error = None
        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is True


class TestIngestFailures:
    @pytest.mark.asyncio
    async def test_empty_content(self, pipeline, repository, vector_index, make_document):
        await make_document("   \n ")

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.error == "empty content"
        assert repository.documents["doc1"]["status"] == "failed"
        assert repository.chunks == {}
        assert vector_index.vectors == {}

    @pytest.mark.asyncio
    async def test_embedding_failure(self, pipeline, repository, embeddings, make_document):
        await make_document(words(100))
        embeddings.error = TimeoutError("upstream timeout")

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.error == "embedding failure"
        assert repository.documents["doc1"]["error"] == "embedding failure"
        assert repository.chunks == {}

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_raised(self, repository, embeddings, make_document):
        pipeline = IngestionPipeline(repository, embeddings, FakeVectorIndex(dimensions=8))
        await make_document(words(100))

        with pytest.raises(DimensionMismatchError):
            await pipeline.ingest("doc1", ORG_A)

        stored = repository.documents["doc1"]
        assert stored["status"] == "failed"
        assert stored["error"] == "dimension mismatch"
        assert repository.chunks == {}

    @pytest.mark.asyncio
    async def test_storage_failure(self, pipeline, repository, vector_index, make_document):
        await make_document(words(100))
        repository.fail_save_chunks = True

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.error == "storage failure"
        assert vector_index.vectors == {}

    @pytest.mark.asyncio
    async def test_control_characters_only(self, pipeline, repository, vector_index, make_document):
        await make_document("\x00\x01 \x02")

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.error == "empty content"
        assert repository.documents["doc1"]["status"] == "failed"
        assert vector_index.vectors == {}

    @pytest.mark.asyncio
    async def test_processed_write_failure_settles_failed(self, pipeline, repository, make_document):
        await make_document(words(100))
        repository.fail_save_status = {"processed"}

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.status == "failed"
        assert result.error == "storage failure"
        stored = repository.documents["doc1"]
        assert stored["status"] == "failed"
        assert stored["processed_at"] is None

    @pytest.mark.asyncio
    async def test_unrecordable_failure_is_reported(self, pipeline, repository, make_document):
        await make_document(words(100))
        repository.fail_save_status = {"processed", "failed"}

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.status == "processing"
        assert result.error == "storage failure"

    @pytest.mark.asyncio
    async def test_unexpected_error_settles_failed_and_propagates(
        self, pipeline, repository, monkeypatch, make_document
    ):
        await make_document(words(100))

        async def broken_save_chunks(chunks):
            raise RuntimeError("serializer bug")

        monkeypatch.setattr(repository, "save_chunks", broken_save_chunks)

        with pytest.raises(RuntimeError, match="serializer bug"):
            await pipeline.ingest("doc1", ORG_A)

        stored = repository.documents["doc1"]
        assert stored["status"] == "failed"
        assert stored["error"] == "unexpected error"

    @pytest.mark.asyncio
    async def test_partial_upsert_marks_inconsistent(self, pipeline, repository, vector_index, make_document):
        await make_document(words(2500))
        vector_index.failing_ids = {"doc1-1"}

        result = await pipeline.ingest("doc1", ORG_A)

        assert result.success is False
        assert result.error == "vector upsert failure"
        assert result.inconsistent is True
        assert result.chunk_count == 3

        stored = repository.documents["doc1"]
        assert stored["status"] == "failed"
        assert stored["inconsistent"] is True
        assert stored["metadata"][MISSING_VECTORS_KEY] == ["doc1-1"]
        # Chunk rows stay; the missing vector is recorded for reconciliation
        assert len(repository.chunks) == 3
        assert sorted(vector_index.vectors) == ["doc1-0", "doc1-2"]

        with pytest.raises(IngestionStateError):
            await pipeline.ingest("doc1", ORG_A)

    @pytest.mark.asyncio
    async def test_caller_cancellation_does_not_interrupt_run(self, pipeline, repository, make_document):
        await make_document(words(2500))

        task = asyncio.ensure_future(pipeline.ingest("doc1", ORG_A))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        for _ in range(50):
            if repository.documents["doc1"]["status"] == "processed":
                break
            await asyncio.sleep(0.01)
        assert repository.documents["doc1"]["status"] == "processed"


class TestDeleteAndReconcile:
    @pytest.mark.asyncio
    async def test_delete_document_purges_everything(self, pipeline, repository, vector_index, make_document):
        await make_document(words(2500))
        await pipeline.ingest("doc1", ORG_A)

        orphans = await pipeline.delete_document("doc1", ORG_A)

        assert orphans == []
        assert "doc1" not in repository.documents
        assert repository.chunks == {}
        assert vector_index.vectors == {}

    @pytest.mark.asyncio
    async def test_delete_reports_orphan_vectors(self, pipeline, repository, vector_index, make_document):
        await make_document(words(2500))
        await pipeline.ingest("doc1", ORG_A)
        vector_index.failing_ids = {"doc1-2"}

        orphans = await pipeline.delete_document("doc1", ORG_A)

        assert orphans == ["doc1-2"]
        assert "doc1" not in repository.documents
        assert list(vector_index.vectors) == ["doc1-2"]

    @pytest.mark.asyncio
    async def test_delete_unknown_document(self, pipeline):
        with pytest.raises(DocumentNotFoundError):
            await pipeline.delete_document("missing", ORG_A)

    @pytest.mark.asyncio
    async def test_reconcile_then_reingest(self, pipeline, repository, vector_index, make_document):
        await make_document(words(2500))
        vector_index.failing_ids = {"doc1-1"}
        await pipeline.ingest("doc1", ORG_A)
        vector_index.failing_ids = set()

        document = await pipeline.reconcile("doc1", ORG_A)

        assert document.status == "pending"
        assert document.inconsistent is False
        assert document.error is None
        assert MISSING_VECTORS_KEY not in document.metadata
        assert repository.chunks == {}
        assert vector_index.vectors == {}

        result = await pipeline.ingest("doc1", ORG_A)
        assert result.success is True
        assert sorted(vector_index.vectors) == ["doc1-0", "doc1-1", "doc1-2"]

    @pytest.mark.asyncio
    async def test_reconcile_unknown_document(self, pipeline):
        with pytest.raises(DocumentNotFoundError):
            await pipeline.reconcile("missing", ORG_A)
