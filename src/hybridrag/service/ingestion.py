"""Document ingestion pipeline: chunk, embed, persist and index a document.

Status transitions: pending → processing → processed | failed.
"""

import asyncio
import logging
from dataclasses import dataclass

from hybridrag.chunking import ChunkingConfig, chunk_document
from hybridrag.constants import CONTENT_PREVIEW_LENGTH
from hybridrag.embedding.base import EmbeddingService, ensure_dimensions
from hybridrag.errors import (
    DimensionMismatchError,
    DocumentNotFoundError,
    EmbeddingFailure,
    IngestionStateError,
    StoreFailure,
    ValidationError,
)
from hybridrag.service.database.models import (
    ChunkRecord,
    DocumentRecord,
    DocumentStatus,
    VectorMetadata,
    make_chunk_id,
    utc_now,
)
from hybridrag.service.database.repository import DocumentRepository
from hybridrag.service.vector_index import VectorIndex

logger = logging.getLogger(__name__)

MISSING_VECTORS_KEY = "missing_vector_ids"


@dataclass
class IngestionResult:
    """Outcome of one ingestion run."""

    document_id: str
    chunk_count: int
    success: bool
    status: str
    error: str | None = None
    inconsistent: bool = False

    def to_dict(self) -> dict:
        return {
            "documentId": self.document_id,
            "chunkCount": self.chunk_count,
            "success": self.success,
            "status": self.status,
            "error": self.error,
            "inconsistent": self.inconsistent,
        }


class IngestionPipeline:
    """Turns a stored document into chunk rows and indexed vectors."""

    def __init__(
        self,
        repository: DocumentRepository,
        embeddings: EmbeddingService,
        vector_index: VectorIndex,
        chunking_config: ChunkingConfig | None = None,
    ):
        self.repository = repository
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.chunking_config = chunking_config or ChunkingConfig()

    async def ingest(
        self, document_id: str, organization_id: str, raw_content: str | None = None
    ) -> IngestionResult:
        """Ingest a document.

        The run is shielded: cancelling the caller does not interrupt it
        halfway between persisting chunk rows and upserting vectors.

        Args:
            document_id: Document to ingest
            organization_id: Owning organization
            raw_content: Text to ingest (defaults to the stored content)

        Returns:
            IngestionResult: Final status; failures are reported, not raised

        Raises:
            DocumentNotFoundError: If the document does not exist for the org
            IngestionStateError: If the document is already processed or
                needs reconciliation
            DimensionMismatchError: If embeddings do not match the index
        """
        return await asyncio.shield(self._ingest(document_id, organization_id, raw_content))

    async def _fail(
        self, document: DocumentRecord, reason: str, chunk_count: int = 0
    ) -> IngestionResult:
        document.status = DocumentStatus.FAILED.value
        document.error = reason
        await self.repository.save_document(document)
        logger.error(f"❌ Ingestion of {document.id} failed: {reason}")
        return IngestionResult(
            document_id=document.id,
            chunk_count=chunk_count,
            success=False,
            status=document.status,
            error=reason,
            inconsistent=document.inconsistent,
        )

    async def _ingest(
        self, document_id: str, organization_id: str, raw_content: str | None
    ) -> IngestionResult:
        document = await self.repository.get_document(document_id, organization_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if document.status == DocumentStatus.PROCESSED:
            raise IngestionStateError(f"Document {document_id} is already processed")
        if document.inconsistent:
            raise IngestionStateError(
                f"Document {document_id} is inconsistent; reconcile it before re-ingesting"
            )

        content = raw_content if raw_content is not None else document.content

        document.status = DocumentStatus.PROCESSING.value
        document.error = None
        await self.repository.save_document(document)
        logger.info(f"📥 Ingesting document {document_id} for org {organization_id}")

        try:
            return await self._process(document, content)
        except DimensionMismatchError:
            raise
        except StoreFailure as e:
            logger.error(f"❌ Store write failed while ingesting {document_id}: {e}", exc_info=True)
            return await self._settle_failed(document, "storage failure")
        except Exception:
            await self._settle_failed(document, "unexpected error")
            raise

    async def _settle_failed(self, document: DocumentRecord, reason: str) -> IngestionResult:
        """Move a document out of processing after an unexpected error."""
        document.processed_at = None
        try:
            return await self._fail(document, reason)
        except StoreFailure as e:
            logger.error(
                f"❌ Could not record failure of {document.id}; it is left in processing: {e}",
                exc_info=True,
            )
            return IngestionResult(
                document_id=document.id,
                chunk_count=0,
                success=False,
                status=DocumentStatus.PROCESSING.value,
                error=reason,
                inconsistent=document.inconsistent,
            )

    async def _process(self, document: DocumentRecord, content: str) -> IngestionResult:
        document_id = document.id
        organization_id = document.organization_id
        chunks = chunk_document(content, self.chunking_config)
        if not chunks:
            return await self._fail(document, "empty content")

        try:
            embeddings = await self.embeddings.embed_batch([chunk.content for chunk in chunks])
            for embedding in embeddings:
                ensure_dimensions(embedding, self.vector_index.dimensions)
        except DimensionMismatchError:
            await self._fail(document, "dimension mismatch")
            raise
        except ValidationError:
            # chunks made only of control characters are blank once cleaned
            return await self._fail(document, "empty content")
        except EmbeddingFailure:
            return await self._fail(document, "embedding failure")

        records = [
            ChunkRecord(
                id=make_chunk_id(document_id, chunk.metadata.chunk_index),
                organization_id=organization_id,
                document_id=document_id,
                chunk_index=chunk.metadata.chunk_index,
                content=chunk.content,
                token_count=chunk.metadata.token_count,
                metadata=chunk.metadata.to_dict(),
            )
            for chunk in chunks
        ]

        await self.repository.save_chunks(records)

        outcomes = await asyncio.gather(
            *(
                self.vector_index.upsert(
                    record.id,
                    embedding,
                    VectorMetadata(
                        document_id=document_id,
                        chunk_index=record.chunk_index,
                        organization_id=organization_id,
                        content_preview=record.content[:CONTENT_PREVIEW_LENGTH],
                    ),
                )
                for record, embedding in zip(records, embeddings)
            ),
            return_exceptions=True,
        )
        missing = [
            record.id
            for record, outcome in zip(records, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if missing:
            document.inconsistent = True
            document.metadata[MISSING_VECTORS_KEY] = missing
            return await self._fail(document, "vector upsert failure", chunk_count=len(records))

        document.status = DocumentStatus.PROCESSED.value
        document.chunk_count = len(records)
        document.processed_at = utc_now()
        await self.repository.save_document(document)
        logger.info(f"✅ Ingested {document_id}: {len(records)} chunks")

        return IngestionResult(
            document_id=document_id,
            chunk_count=len(records),
            success=True,
            status=document.status,
        )

    async def _purge(self, document_id: str, organization_id: str) -> list[str]:
        chunk_ids = await self.repository.delete_chunks(document_id, organization_id)
        outcomes = await asyncio.gather(
            *(self.vector_index.delete(chunk_id) for chunk_id in chunk_ids),
            return_exceptions=True,
        )
        orphans = [
            chunk_id
            for chunk_id, outcome in zip(chunk_ids, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if orphans:
            logger.warning(f"⚠️ {len(orphans)} orphan vectors left for {document_id}: {orphans}")
        return orphans

    async def delete_document(self, document_id: str, organization_id: str) -> list[str]:
        """Delete a document with its chunk rows and vectors.

        Returns:
            list[str]: Vector ids that could not be purged (orphans)

        Raises:
            DocumentNotFoundError: If the document does not exist for the org
        """
        document = await self.repository.get_document(document_id, organization_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        orphans = await self._purge(document_id, organization_id)
        await self.repository.delete_document(document_id, organization_id)
        logger.info(f"🗑️ Deleted document {document_id}")
        return orphans

    async def reconcile(self, document_id: str, organization_id: str) -> DocumentRecord:
        """Reset a document so it can be ingested again.

        Purges chunk rows and vectors, clears the inconsistent flag and
        sets the status back to pending. Only ever run on request.

        Returns:
            DocumentRecord: The reset document

        Raises:
            DocumentNotFoundError: If the document does not exist for the org
        """
        document = await self.repository.get_document(document_id, organization_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        await self._purge(document_id, organization_id)
        document.status = DocumentStatus.PENDING.value
        document.error = None
        document.inconsistent = False
        document.chunk_count = 0
        document.processed_at = None
        document.metadata.pop(MISSING_VECTORS_KEY, None)
        await self.repository.save_document(document)
        logger.info(f"🔧 Reconciled document {document_id}; status reset to pending")
        return document
