"""Document management API routes: create, list, inspect, delete and ingest."""

import logging
import uuid

from flask import Blueprint, jsonify, request

from hybridrag.client.routes.config import get_config, get_organization_id
from hybridrag.errors import DocumentNotFoundError, IngestionStateError
from hybridrag.service.database.models import DocumentRecord

logger = logging.getLogger(__name__)

documents_bp = Blueprint("documents", __name__)


def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def _not_found(document_id: str):
    return jsonify({"error": f"Document {document_id} not found"}), 404


@documents_bp.route("/api/rag/documents", methods=["POST"])
def create_document():
    """Store a new document and optionally ingest it right away.

    Expects JSON with:
        - name: Display name (required)
        - content: Raw text (required)
        - contentType: MIME type (default: text/plain)
        - metadata: Optional passthrough map
        - ingest: If true, run the ingestion pipeline before responding

    Returns:
        201 with {document} or {document, ingestion}
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    content = data.get("content")
    if not name or not isinstance(content, str):
        return jsonify({"error": "name and content are required"}), 400
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        return jsonify({"error": "metadata must be an object"}), 400

    config = get_config()
    document = DocumentRecord(
        id=uuid.uuid4().hex,
        organization_id=organization_id,
        name=name,
        content=content,
        content_type=data.get("contentType") or "text/plain",
        size_bytes=len(content.encode("utf-8")),
        metadata=metadata,
    )
    config.runner.run(config.services.repository.save_document(document))
    logger.info(f"📄 Created document {document.id} ({name}) for org {organization_id}")

    body = {"document": document.summary()}
    if data.get("ingest"):
        result = config.runner.run(config.services.ingestion.ingest(document.id, organization_id))
        body["ingestion"] = result.to_dict()
        body["document"]["status"] = result.status
    return jsonify(body), 201


@documents_bp.route("/api/rag/documents", methods=["GET"])
def list_documents():
    """List the organization's documents (without content)."""
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    config = get_config()
    documents = config.runner.run(config.services.repository.list_documents(organization_id))
    return jsonify({"documents": [doc.summary() for doc in documents], "count": len(documents)})


@documents_bp.route("/api/rag/documents/<document_id>", methods=["GET"])
def get_document(document_id: str):
    """Return a document's status and metadata."""
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    config = get_config()
    document = config.runner.run(
        config.services.repository.get_document(document_id, organization_id)
    )
    if document is None:
        return _not_found(document_id)
    return jsonify({"document": document.summary()})


@documents_bp.route("/api/rag/documents/<document_id>", methods=["DELETE"])
def delete_document(document_id: str):
    """Delete a document, its chunks and its vectors."""
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    config = get_config()
    try:
        orphans = config.runner.run(
            config.services.ingestion.delete_document(document_id, organization_id)
        )
    except DocumentNotFoundError:
        return _not_found(document_id)
    return jsonify({"success": True, "documentId": document_id, "orphanedVectors": orphans})


@documents_bp.route("/api/rag/documents/<document_id>/ingest", methods=["POST"])
def ingest_document(document_id: str):
    """Run the ingestion pipeline for a stored document.

    Returns:
        200 with the ingestion result (success may be false), 404 for an
        unknown document, 409 when the document cannot be ingested again
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    data = request.get_json(silent=True) or {}
    config = get_config()
    try:
        result = config.runner.run(
            config.services.ingestion.ingest(
                document_id, organization_id, raw_content=data.get("content")
            )
        )
    except DocumentNotFoundError:
        return _not_found(document_id)
    except IngestionStateError as e:
        logger.warning(f"⚠️ {e}")
        return jsonify({"error": str(e)}), 409
    return jsonify(result.to_dict())


@documents_bp.route("/api/rag/documents/<document_id>/reconcile", methods=["POST"])
def reconcile_document(document_id: str):
    """Purge a document's chunks and vectors and reset it to pending."""
    organization_id = get_organization_id()
    if organization_id is None:
        return _unauthorized()

    config = get_config()
    try:
        document = config.runner.run(
            config.services.ingestion.reconcile(document_id, organization_id)
        )
    except DocumentNotFoundError:
        return _not_found(document_id)
    return jsonify({"document": document.summary()})
