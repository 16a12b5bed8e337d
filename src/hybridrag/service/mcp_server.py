"""FastMCP server exposing hybrid search, context retrieval and ingestion as tools."""

import logging
import os
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP

from hybridrag.constants import (
    DEFAULT_MAX_CONTEXT_CHUNKS,
    DEFAULT_MIN_SCORE,
    DEFAULT_TEXT_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
)
from hybridrag.errors import (
    DocumentNotFoundError,
    HybridSearchFailure,
    IngestionStateError,
    ValidationError,
)
from hybridrag.service.factory import RAGServices, create_services
from hybridrag.service.hybrid import SearchOptions

# Configure logging
log_level = os.getenv("LOG_LEVEL", "DEBUG")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()
logger.debug("Environment variables loaded for MCP server")

# Create FastMCP instance
mcp = FastMCP("HybridRAG Retrieval")

_services: RAGServices | None = None


def configure(services: RAGServices) -> None:
    """Install the services used by the tools."""
    global _services
    _services = services


def get_services() -> RAGServices:
    global _services
    if _services is None:
        _services = create_services()
    return _services


async def hybrid_search_impl(
    services: RAGServices,
    query: str,
    organization_id: str,
    top_k: int = 5,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
    text_weight: float = DEFAULT_TEXT_WEIGHT,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[dict[str, Any]]:
    logger.debug(
        f"MCP Tool hybrid_search: query='{query[:100]}', org={organization_id}, top_k={top_k}"
    )
    options = SearchOptions(
        min_score=min_score, vector_weight=vector_weight, text_weight=text_weight
    )
    try:
        results = await services.search.hybrid_search(query, organization_id, options)
    except ValidationError as e:
        raise ValueError(f"Validation error: {e}") from e
    except HybridSearchFailure as e:
        logger.error(f"❌ MCP Tool: search unavailable ({e.side})", exc_info=True)
        raise ValueError(f"Search unavailable: {e.side} search failed") from e

    logger.info(f"✅ MCP Tool: Returning {min(len(results), top_k)} results")
    return [result.to_dict() for result in results[:top_k]]


async def get_rag_context_impl(
    services: RAGServices,
    query: str,
    organization_id: str,
    max_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS,
) -> str:
    try:
        return await services.search.get_context(query, organization_id, max_chunks=max_chunks)
    except ValidationError as e:
        raise ValueError(f"Validation error: {e}") from e
    except HybridSearchFailure as e:
        logger.error(f"❌ MCP Tool: context unavailable ({e.side})", exc_info=True)
        raise ValueError(f"Search unavailable: {e.side} search failed") from e


async def ingest_document_impl(
    services: RAGServices, document_id: str, organization_id: str
) -> dict[str, Any]:
    logger.info(f"📥 MCP Tool ingest_document: {document_id} (org {organization_id})")
    try:
        result = await services.ingestion.ingest(document_id, organization_id)
    except (DocumentNotFoundError, IngestionStateError) as e:
        logger.warning(f"⚠️ MCP Tool: {e}")
        return {"success": False, "documentId": document_id, "error": str(e)}
    return result.to_dict()


@mcp.tool()
async def hybrid_search(
    query: str,
    organization_id: str,
    top_k: int = 5,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
    text_weight: float = DEFAULT_TEXT_WEIGHT,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[dict[str, Any]]:
    """
    Searches an organization's knowledge base by combining semantic (vector)
    and keyword (full-text) search. Returns the best matching text chunks.
    Use this tool to find information to answer a user's question.

    Args:
        query: The search query text
        organization_id: Organization whose documents are searched
        top_k: Number of results to return (default: 5)
        vector_weight: Weight of semantic matches (0-1, default 0.7)
        text_weight: Weight of keyword matches (0-1, default 0.3)
        min_score: Minimum fused score (default 0)
    """
    return await hybrid_search_impl(
        get_services(), query, organization_id, top_k, vector_weight, text_weight, min_score
    )


@mcp.tool()
async def get_rag_context(
    query: str, organization_id: str, max_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS
) -> str:
    """
    Returns the most relevant chunks for a query formatted as numbered
    context blocks, ready to be placed into a prompt.

    Args:
        query: The search query text
        organization_id: Organization whose documents are searched
        max_chunks: Maximum number of context blocks (default: 5)
    """
    return await get_rag_context_impl(get_services(), query, organization_id, max_chunks)


@mcp.tool()
async def ingest_document(document_id: str, organization_id: str) -> dict[str, Any]:
    """
    Chunks, embeds and indexes a stored document so it becomes searchable.

    Args:
        document_id: Identifier of an existing document
        organization_id: Organization that owns the document

    Returns:
        dict with documentId, chunkCount, success, status, error and inconsistent
    """
    return await ingest_document_impl(get_services(), document_id, organization_id)


def main() -> None:
    """Entry point for the MCP server command-line interface."""
    logger.info("🚀 Starting HybridRAG MCP Server...")
    configure(create_services())
    host = os.getenv("MCP_HOST", "0.0.0.0")
    port = int(os.getenv("MCP_PORT", "8001"))
    mcp.run(transport="sse", host=host, port=port)


if __name__ == "__main__":
    main()
