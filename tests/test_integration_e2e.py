"""End-to-end integration tests against real RavenDB and Ollama servers."""

import uuid

import pytest

from hybridrag.service.database.models import DocumentRecord

from conftest import ollama_available, ravendb_available

TEXT = (
    "Neutron scattering is a technique for probing the atomic structure of materials. "
    "Small-angle scattering measures nanoscale features such as polymers and proteins. "
    "Reflectometry studies thin films and interfaces. "
) * 20


@pytest.fixture
def live_services():
    if not ravendb_available():
        pytest.skip("RavenDB server not running on localhost:8080")
    if not ollama_available():
        pytest.skip("Ollama server not running on localhost:11434")

    from hybridrag.service.factory import create_services

    return create_services()


class TestRAGPipelineIntegration:
    """Ingest a document, then find it with hybrid search."""

    @pytest.mark.integration
    @pytest.mark.requires_ollama
    @pytest.mark.requires_ravendb
    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_ingest_then_search(self, live_services):
        organization_id = f"e2e-{uuid.uuid4().hex[:8]}"
        document = DocumentRecord(
            id=uuid.uuid4().hex, organization_id=organization_id, name="e2e.txt", content=TEXT
        )
        services = live_services

        try:
            await services.repository.save_document(document)
            result = await services.ingestion.ingest(document.id, organization_id)
            assert result.success, result.error
            assert result.chunk_count >= 1

            results = await services.search.hybrid_search("thin film reflectometry", organization_id)
            assert results
            assert all(r.document_id == document.id for r in results)

            assert await services.search.hybrid_search("thin film reflectometry", "other-org") == []
        finally:
            await services.ingestion.delete_document(document.id, organization_id)
            await services.aclose()
