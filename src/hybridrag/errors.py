"""Error taxonomy for retrieval, ingestion and event relay components.

Components raise these typed errors (chained to the underlying cause) and the
orchestrating layers decide how they surface to users.
"""


class RAGError(Exception):
    """Base class for all HybridRAG errors."""


class ValidationError(RAGError, ValueError):
    """Malformed input: empty query, out-of-range weights or limits."""


class EmbeddingFailure(RAGError):
    """The upstream embedding service failed or returned a malformed response."""


class DimensionMismatchError(RAGError):
    """A vector does not match the configured embedding dimensionality.

    This is a deployment configuration error, never recovered at runtime.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected vector of dimension {expected}, got {actual}")


class IndexFailure(RAGError):
    """The vector index is unavailable or rejected an upsert, query or delete."""


class LexicalSearchFailure(RAGError):
    """The full-text search backend failed."""


class StoreFailure(RAGError):
    """The document/chunk store failed."""


class TenantIsolationViolation(RAGError, AssertionError):
    """A query was issued without an organization filter, or crossed tenants.

    Programming error; must never reach production query paths.
    """


class HybridSearchFailure(RAGError):
    """A hybrid search sub-query failed; no partial fusion is attempted.

    Attributes:
        side: Which side failed: "vector", "text", "both" or "store".
    """

    def __init__(self, side: str, message: str | None = None) -> None:
        self.side = side
        super().__init__(message or f"Hybrid search failed ({side} search unavailable)")


class DocumentNotFoundError(RAGError):
    """No document with the given id exists for the organization."""


class IngestionStateError(RAGError):
    """Ingestion was requested for a document in a state that forbids it."""


class EventRelayFailure(RAGError):
    """The event relay backend could not append or read events."""
