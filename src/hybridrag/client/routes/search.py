"""Hybrid and semantic search API routes."""

import logging

from flask import Blueprint, jsonify, request

from hybridrag.client.routes.config import get_config, get_organization_id
from hybridrag.constants import (
    DEFAULT_MAX_CONTEXT_CHUNKS,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
)
from hybridrag.errors import HybridSearchFailure, TenantIsolationViolation, ValidationError
from hybridrag.service.hybrid import SearchOptions

logger = logging.getLogger(__name__)

search_bp = Blueprint("search", __name__)

# Request field -> SearchOptions attribute
_OPTION_FIELDS = {
    "vectorTopK": "vector_top_k",
    "textTopK": "text_top_k",
    "minScore": "min_score",
    "vectorWeight": "vector_weight",
    "textWeight": "text_weight",
}


def parse_search_options(data: dict) -> SearchOptions:
    """Build SearchOptions from a camelCase request body; unset fields keep defaults."""
    options = SearchOptions()
    for field_name, attribute in _OPTION_FIELDS.items():
        if data.get(field_name) is not None:
            setattr(options, attribute, data[field_name])
    return options


@search_bp.route("/api/rag/hybrid-search", methods=["POST"])
def hybrid_search():
    """Search the caller's organization.

    Expects JSON with:
        - query: Search text (required)
        - vectorTopK, textTopK, minScore, vectorWeight, textWeight: Optional tunables
        - returnContext: If true, respond with a rendered context string
        - maxChunks: Context blocks when returnContext is set (default: 5)

    Returns:
        JSON {results, query, resultCount} or {context, query}
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return jsonify({"error": "Unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    query = data.get("query", "")
    config = get_config()

    try:
        options = parse_search_options(data)
        if data.get("returnContext"):
            max_chunks = data.get("maxChunks", DEFAULT_MAX_CONTEXT_CHUNKS)
            if isinstance(max_chunks, bool) or not isinstance(max_chunks, int) or max_chunks < 1:
                raise ValidationError("maxChunks must be a positive integer")
            context = config.runner.run(
                config.services.search.get_context(
                    query, organization_id, max_chunks=max_chunks, options=options
                )
            )
            return jsonify({"context": context, "query": query})

        results = config.runner.run(
            config.services.search.hybrid_search(query, organization_id, options)
        )
        return jsonify(
            {
                "results": [result.to_dict() for result in results],
                "query": query,
                "resultCount": len(results),
            }
        )
    except ValidationError as e:
        logger.warning(f"⚠️ Invalid search request: {e}")
        return jsonify({"error": str(e)}), 400
    except HybridSearchFailure as e:
        logger.error(f"❌ Hybrid search failed ({e.side}): {e}", exc_info=True)
        return jsonify({"error": "Search unavailable", "failedSource": e.side}), 500
    except TenantIsolationViolation as e:
        logger.error(f"❌ Tenant isolation violation: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


@search_bp.route("/api/rag/search", methods=["POST"])
def semantic_search():
    """Vector-only similarity search over the caller's organization.

    Expects JSON with:
        - query: Search text (required)
        - threshold: Minimum similarity 0-1 (default: 0.7)
        - limit: Maximum results 1-100 (default: 10)
        - documentIds: Optional list of document ids to search within
        - format: "results" (default) or "context"

    Returns:
        JSON {results, query, resultCount, threshold} or {context, query}
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return jsonify({"error": "Unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    query = data.get("query", "")
    threshold = data.get("threshold", DEFAULT_SIMILARITY_THRESHOLD)
    limit = data.get("limit", DEFAULT_SEARCH_LIMIT)
    document_ids = data.get("documentIds")
    response_format = data.get("format", "results")
    config = get_config()
    search = config.services.search

    try:
        if response_format not in ("results", "context"):
            raise ValidationError("format must be 'results' or 'context'")
        if response_format == "context":
            context = config.runner.run(
                search.get_semantic_context(query, organization_id, threshold, limit, document_ids)
            )
            return jsonify({"context": context, "query": query})

        results = config.runner.run(
            search.semantic_search(query, organization_id, threshold, limit, document_ids)
        )
        return jsonify(
            {
                "results": [result.to_dict() for result in results],
                "query": query,
                "resultCount": len(results),
                "threshold": threshold,
            }
        )
    except ValidationError as e:
        logger.warning(f"⚠️ Invalid search request: {e}")
        return jsonify({"error": str(e)}), 400
    except HybridSearchFailure as e:
        logger.error(f"❌ Semantic search failed ({e.side}): {e}", exc_info=True)
        return jsonify({"error": "Search unavailable", "failedSource": e.side}), 500
    except TenantIsolationViolation as e:
        logger.error(f"❌ Tenant isolation violation: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500
