"""Data models for RavenDB document storage.

Entities hash by identity (eq=False) because RavenDB's session tracks
stored objects in an identity map. All persisted fields are plain JSON
values so documents can be read back with `object_type=dict`.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from hybridrag.constants import CHUNKS_COLLECTION, DOCUMENTS_COLLECTION, VECTORS_COLLECTION


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    """Derive the id shared by a chunk row and its vector."""
    return f"{document_id}-{chunk_index}"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


def _known_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
    # Drops RavenDB bookkeeping such as @metadata and Id
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass(eq=False)
class DocumentRecord:
    """A tenant-owned unit of knowledge.

    `metadata` is an open map for passthrough fields (file size, page
    count, PDF title). Ingestion bookkeeping lives in the typed fields.

    Attributes:
        id: Document identifier (RavenDB key is Documents/{id})
        organization_id: Owning organization
        name: Display name
        content: Raw text content
        content_type: MIME type of the original upload
        size_bytes: Size of the original upload
        status: One of the DocumentStatus values
        chunk_count: Number of chunks after successful ingestion
        error: Failure reason when status is failed
        inconsistent: True when chunk rows exist without their vectors
    """

    id: str
    organization_id: str
    name: str = ""
    content: str = ""
    content_type: str = "text/plain"
    size_bytes: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    status: str = DocumentStatus.PENDING.value
    chunk_count: int = 0
    error: str | None = None
    inconsistent: bool = False
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    processed_at: str | None = None

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)

    @property
    def key(self) -> str:
        return f"{DOCUMENTS_COLLECTION}/{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary(self) -> dict[str, Any]:
        """Document fields without the raw content, for listings and API responses."""
        data = self.to_dict()
        data.pop("content")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentRecord":
        record = cls(**_known_fields(cls, data))
        record.metadata = dict(record.metadata or {})
        return record


@dataclass(eq=False)
class ChunkRecord:
    """A persisted chunk row.

    Vectors are not stored here. They live in the ChunkVectors collection
    under the same derived id.
    """

    id: str
    organization_id: str
    document_id: str
    chunk_index: int
    content: str
    token_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now)

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)

    @property
    def key(self) -> str:
        return f"{CHUNKS_COLLECTION}/{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChunkRecord":
        return cls(**_known_fields(cls, data))


@dataclass
class VectorMetadata:
    """Payload stored next to each vector in the vector index."""

    document_id: str
    chunk_index: int
    organization_id: str
    content_preview: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorMetadata":
        return cls(
            document_id=data["document_id"],
            chunk_index=int(data["chunk_index"]),
            organization_id=data["organization_id"],
            content_preview=data.get("content_preview", ""),
        )


@dataclass(eq=False)
class ChunkVector:
    """A vector entry as persisted in the ChunkVectors collection."""

    id: str
    organization_id: str
    document_id: str
    chunk_index: int
    embedding: list[float] = field(default_factory=list)
    content_preview: str = ""

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)

    @property
    def key(self) -> str:
        return f"{VECTORS_COLLECTION}/{self.id}"

    @property
    def payload(self) -> VectorMetadata:
        return VectorMetadata(
            document_id=self.document_id,
            chunk_index=self.chunk_index,
            organization_id=self.organization_id,
            content_preview=self.content_preview,
        )
