"""HybridRAG: tenant-scoped hybrid retrieval (vector + full-text) with RRF fusion."""

__version__ = "0.1.0"
