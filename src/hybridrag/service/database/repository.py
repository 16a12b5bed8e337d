"""Tenant-scoped persistence for documents and chunk rows.

The ravendb client is synchronous; every public method runs its session
work in a worker thread so callers can await it from the event loop.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ravendb import DocumentStore

from hybridrag.constants import CHUNKS_COLLECTION, DOCUMENTS_COLLECTION
from hybridrag.errors import RAGError, StoreFailure
from hybridrag.service.database.models import ChunkRecord, DocumentRecord, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocumentRepository:
    """Documents and chunk rows stored in RavenDB.

    Every read takes an organization_id; rows owned by another
    organization are treated as absent.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except RAGError:
            raise
        except Exception as e:
            logger.error(f"❌ Store operation '{operation}' failed: {e}")
            raise StoreFailure(f"{operation} failed: {e}") from e

    # Documents

    def _save_document(self, record: DocumentRecord) -> None:
        record.updated_at = utc_now()
        with self.store.open_session() as session:
            session.store(record, record.key)
            session.advanced.get_metadata_for(record)["@collection"] = DOCUMENTS_COLLECTION
            session.save_changes()

    async def save_document(self, record: DocumentRecord) -> DocumentRecord:
        """Insert or overwrite a document.

        Args:
            record: Document to persist

        Returns:
            DocumentRecord: The same record with updated_at refreshed
        """
        await self._run("save_document", self._save_document, record)
        return record

    def _get_document(self, document_id: str, organization_id: str) -> DocumentRecord | None:
        with self.store.open_session() as session:
            data = session.load(f"{DOCUMENTS_COLLECTION}/{document_id}", dict)
        if not data or data.get("organization_id") != organization_id:
            return None
        return DocumentRecord.from_dict(data)

    async def get_document(self, document_id: str, organization_id: str) -> DocumentRecord | None:
        """Load a document owned by organization_id, or None."""
        return await self._run("get_document", self._get_document, document_id, organization_id)

    def _list_documents(self, organization_id: str) -> list[DocumentRecord]:
        with self.store.open_session() as session:
            rows = list(
                session.advanced.raw_query(
                    f"from {DOCUMENTS_COLLECTION} where organization_id = $org "
                    "order by created_at desc",
                    object_type=dict,
                ).add_parameter("org", organization_id)
            )
        return [DocumentRecord.from_dict(row) for row in rows]

    async def list_documents(self, organization_id: str) -> list[DocumentRecord]:
        """List an organization's documents, newest first."""
        return await self._run("list_documents", self._list_documents, organization_id)

    def _delete_document(self, document_id: str, organization_id: str) -> bool:
        key = f"{DOCUMENTS_COLLECTION}/{document_id}"
        with self.store.open_session() as session:
            data = session.load(key, dict)
            if not data or data.get("organization_id") != organization_id:
                return False
            session.delete(key)
            session.save_changes()
        return True

    async def delete_document(self, document_id: str, organization_id: str) -> bool:
        """Delete a document row. Returns False when it does not exist for the org."""
        return await self._run(
            "delete_document", self._delete_document, document_id, organization_id
        )

    # Chunks

    def _save_chunks(self, chunks: list[ChunkRecord]) -> None:
        with self.store.open_session() as session:
            for chunk in chunks:
                session.store(chunk, chunk.key)
                session.advanced.get_metadata_for(chunk)["@collection"] = CHUNKS_COLLECTION
            session.save_changes()

    async def save_chunks(self, chunks: list[ChunkRecord]) -> int:
        """Persist chunk rows in a single session.

        Returns:
            int: Number of rows written
        """
        if not chunks:
            return 0
        await self._run("save_chunks", self._save_chunks, chunks)
        return len(chunks)

    def _get_chunks(self, chunk_ids: list[str], organization_id: str) -> dict[str, ChunkRecord]:
        keys = [f"{CHUNKS_COLLECTION}/{chunk_id}" for chunk_id in chunk_ids]
        with self.store.open_session() as session:
            loaded = session.load(keys, dict)
        chunks = {}
        for data in loaded.values():
            if data and data.get("organization_id") == organization_id:
                chunk = ChunkRecord.from_dict(data)
                chunks[chunk.id] = chunk
        return chunks

    async def get_chunks(self, chunk_ids: list[str], organization_id: str) -> dict[str, ChunkRecord]:
        """Batch-load chunk rows by id, keeping only the organization's rows.

        Args:
            chunk_ids: Chunk identifiers ({document_id}-{chunk_index})
            organization_id: Owning organization

        Returns:
            dict[str, ChunkRecord]: Found chunks keyed by id; missing ids are omitted
        """
        if not chunk_ids:
            return {}
        return await self._run("get_chunks", self._get_chunks, list(chunk_ids), organization_id)

    def _list_chunk_ids(self, document_id: str, organization_id: str) -> list[str]:
        with self.store.open_session() as session:
            rows = list(
                session.advanced.raw_query(
                    f"from {CHUNKS_COLLECTION} "
                    "where document_id = $doc and organization_id = $org",
                    object_type=dict,
                )
                .add_parameter("doc", document_id)
                .add_parameter("org", organization_id)
            )
        return sorted((row["id"] for row in rows), key=lambda cid: int(cid.rsplit("-", 1)[1]))

    async def list_chunk_ids(self, document_id: str, organization_id: str) -> list[str]:
        """Ids of a document's chunk rows, ordered by chunk index."""
        return await self._run(
            "list_chunk_ids", self._list_chunk_ids, document_id, organization_id
        )

    def _delete_chunks(self, chunk_ids: list[str]) -> None:
        with self.store.open_session() as session:
            for chunk_id in chunk_ids:
                session.delete(f"{CHUNKS_COLLECTION}/{chunk_id}")
            session.save_changes()

    async def delete_chunks(self, document_id: str, organization_id: str) -> list[str]:
        """Delete every chunk row of a document.

        Returns:
            list[str]: Ids of the deleted chunk rows
        """
        chunk_ids = await self.list_chunk_ids(document_id, organization_id)
        if chunk_ids:
            await self._run("delete_chunks", self._delete_chunks, chunk_ids)
        return chunk_ids
