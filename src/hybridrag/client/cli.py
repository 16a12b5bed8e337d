"""Command-line interface for HybridRAG using Click."""

from pathlib import Path

import click
from dotenv import load_dotenv

from hybridrag.client.cli_helpers import (
    ensure_database_exists,
    format_search_result,
    get_database_info,
    run_with_services,
)
from hybridrag.client.ingest import find_documents, load_document
from hybridrag.constants import (
    DEFAULT_MIN_SCORE,
    DEFAULT_TEXT_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
    get_embedding_model,
)
from hybridrag.errors import (
    DocumentNotFoundError,
    HybridSearchFailure,
    IngestionStateError,
    RAGError,
    ValidationError,
)
from hybridrag.service.database import database_exists, delete_database
from hybridrag.service.factory import RAGServices
from hybridrag.service.hybrid import SearchOptions

# Load environment variables
load_dotenv()

organization_option = click.option(
    "--organization",
    "-o",
    "organization_id",
    required=True,
    envvar="HYBRIDRAG_ORGANIZATION_ID",
    help="Organization that owns the documents (env: HYBRIDRAG_ORGANIZATION_ID)",
)


@click.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@organization_option
@click.option(
    "--create-database",
    "create_database_flag",
    is_flag=True,
    default=False,
    help="Create the RavenDB database if it doesn't exist",
)
def ingest(directory: Path, organization_id: str, create_database_flag: bool) -> None:
    """Ingest PDF, text and markdown files from DIRECTORY.

    Example:
        hybridrag-ingest documents/ -o acme
        hybridrag-ingest documents/ -o acme --create-database
    """
    ensure_database_exists(create_if_missing=create_database_flag, directory=str(directory))

    paths = find_documents(directory)
    if not paths:
        click.echo(f"No supported files found in '{directory}'")
        return

    click.echo(f"Found {len(paths)} file(s)")
    click.echo(f"Using embedding model: {get_embedding_model()}")
    click.echo(f"Organization: {organization_id}\n")

    documents = []
    for path in paths:
        try:
            documents.append(load_document(path, organization_id))
        except Exception as e:
            click.echo(f"  ✗ Error reading {path.name}: {e}", err=True)

    async def run(services: RAGServices) -> int:
        succeeded = 0
        for document in documents:
            await services.repository.save_document(document)
            result = await services.ingestion.ingest(document.id, organization_id)
            if result.success:
                succeeded += 1
                click.echo(f"  ✓ {document.name}: {result.chunk_count} chunks ({document.id})")
            else:
                click.echo(f"  ✗ {document.name}: {result.error} ({document.id})", err=True)
        return succeeded

    try:
        succeeded = run_with_services(run)
    except RAGError as e:
        click.echo(f"\n✗ Ingestion aborted: {e}", err=True)
        raise click.Abort()

    click.echo(f"\n✓ Ingestion complete! {succeeded} of {len(documents)} document(s) processed.")
    if succeeded < len(documents):
        raise click.Abort()


@click.command()
@click.argument("query", type=str)
@organization_option
@click.option("--top-k", type=int, default=5, help="Number of results to show (default: 5)")
@click.option("--vector-weight", type=float, default=DEFAULT_VECTOR_WEIGHT, show_default=True)
@click.option("--text-weight", type=float, default=DEFAULT_TEXT_WEIGHT, show_default=True)
@click.option("--min-score", type=float, default=DEFAULT_MIN_SCORE, show_default=True)
@click.option(
    "--context",
    "as_context",
    is_flag=True,
    default=False,
    help="Print the rendered LLM context instead of a result list",
)
def search(
    query: str,
    organization_id: str,
    top_k: int,
    vector_weight: float,
    text_weight: float,
    min_score: float,
    as_context: bool,
) -> None:
    """Search documents with hybrid (vector + full-text) search.

    QUERY is the text to search for.

    Example:
        hybridrag-search "quantum mechanics" -o acme
        hybridrag-search "machine learning" -o acme --top-k 3 --context
    """
    ensure_database_exists()

    options = SearchOptions(
        min_score=min_score, vector_weight=vector_weight, text_weight=text_weight
    )
    click.echo(f"🔍 Searching for: '{query}'\n")

    async def run(services: RAGServices):
        if as_context:
            return await services.search.get_context(
                query, organization_id, max_chunks=top_k, options=options
            )
        return await services.search.hybrid_search(query, organization_id, options)

    try:
        output = run_with_services(run)
    except ValidationError as e:
        click.echo(f"✗ Invalid search: {e}", err=True)
        raise click.Abort()
    except HybridSearchFailure as e:
        click.echo(f"✗ Search unavailable ({e.side} search failed): {e.__cause__}", err=True)
        click.echo("\nPlease ensure the embedding service and RavenDB are running.", err=True)
        raise click.Abort()

    if as_context:
        click.echo(output)
        return
    if not output:
        click.echo("No results found.")
        return

    results = output[:top_k]
    click.echo(f"✅ Found {len(output)} result(s), showing {len(results)}:\n")
    for i, result in enumerate(results, 1):
        click.echo(format_search_result(i, result))


@click.command()
@organization_option
def documents(organization_id: str) -> None:
    """List an organization's documents and their ingestion status.

    Example:
        hybridrag-documents -o acme
    """
    ensure_database_exists()

    async def run(services: RAGServices):
        return await services.repository.list_documents(organization_id)

    records = run_with_services(run)
    if not records:
        click.echo(f"No documents for organization '{organization_id}'")
        return

    for record in records:
        flag = " ⚠️ inconsistent" if record.inconsistent else ""
        error = f" - {record.error}" if record.error else ""
        click.echo(
            f"{record.id}  {record.status:<10}  {record.chunk_count:>4} chunks  "
            f"{record.name}{error}{flag}"
        )

    _, _, counts = get_database_info()
    if counts is not None:
        summary = ", ".join(f"{name}: {count}" for name, count in counts.items())
        click.echo(f"\n📊 Database totals - {summary}")


@click.command()
@click.argument("document_id", type=str)
@organization_option
@click.option(
    "--ingest/--no-ingest",
    "reingest",
    default=False,
    help="Ingest the document again after resetting it",
)
def reconcile(document_id: str, organization_id: str, reingest: bool) -> None:
    """Purge a document's chunks and vectors and reset it to pending.

    Use this for documents left inconsistent by a failed vector upsert.

    Example:
        hybridrag-reconcile 3f2a... -o acme --ingest
    """
    ensure_database_exists()

    async def run(services: RAGServices):
        document = await services.ingestion.reconcile(document_id, organization_id)
        click.echo(f"🔧 Document {document.id} reset to {document.status}")
        if reingest:
            return await services.ingestion.ingest(document_id, organization_id)
        return None

    try:
        result = run_with_services(run)
    except (DocumentNotFoundError, IngestionStateError) as e:
        click.echo(f"✗ {e}", err=True)
        raise click.Abort()

    if result is not None:
        if result.success:
            click.echo(f"✓ Re-ingested: {result.chunk_count} chunks")
        else:
            click.echo(f"✗ Re-ingestion failed: {result.error}", err=True)
            raise click.Abort()


@click.command()
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete_db(yes: bool) -> None:
    """Drop the whole RavenDB database, for every organization.

    Documents, chunk rows, vectors and both search indexes are removed.
    There is no undo.

    Example:
        hybridrag-delete-db          # asks first
        hybridrag-delete-db --yes
    """
    url, db_name, counts = get_database_info()

    if not database_exists():
        click.echo(f"✓ Nothing to do: database '{db_name}' does not exist at {url}")
        return

    if not yes:
        click.echo(f"⚠️  Database '{db_name}' at {url} will be dropped for ALL organizations.")
        if counts is not None:
            for name, count in counts.items():
                click.echo(f"   {name:<15} {count:>8}")
        click.echo("")
        if not click.confirm(f"Drop '{db_name}'?", default=False):
            click.echo("Deletion cancelled.")
            return

    click.echo(f"🗑️  Dropping '{db_name}'...")
    try:
        delete_database()
    except Exception as e:
        click.echo(f"✗ Could not drop '{db_name}': {e}", err=True)
        raise click.Abort()

    click.echo(f"✓ Database '{db_name}' successfully deleted.")
    click.echo("Recreate it with: hybridrag-ingest <directory> -o <org> --create-database")


if __name__ == "__main__":
    ingest()
