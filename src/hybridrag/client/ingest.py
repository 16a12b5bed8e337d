"""Load PDF and plain-text files as documents ready for ingestion."""

import logging
import uuid
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF
from dotenv import load_dotenv

from hybridrag.service.database.models import DocumentRecord

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
}


def extract_text_from_pdf(pdf_path: Path) -> str:
    """Extract all text from a PDF file.

    Args:
        pdf_path: Path to the PDF file

    Returns:
        str: Concatenated text from all pages
    """
    with fitz.open(pdf_path) as doc:
        return "".join(page.get_text() for page in doc)


def extract_pdf_metadata(pdf_path: Path) -> dict[str, Any]:
    """Collect page count and the PDF's own title/author fields."""
    with fitz.open(pdf_path) as doc:
        metadata: dict[str, Any] = {"page_count": len(doc)}
        pdf_metadata = doc.metadata or {}
    if pdf_metadata.get("title"):
        metadata["title"] = pdf_metadata["title"]
    if pdf_metadata.get("author"):
        metadata["author"] = pdf_metadata["author"]
    if pdf_metadata.get("creationDate"):
        metadata["pdf_creation_date"] = pdf_metadata["creationDate"]
    return metadata


def find_documents(directory: Path) -> list[Path]:
    """Supported files directly inside a directory, sorted by name."""
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in CONTENT_TYPES)


def load_document(path: Path, organization_id: str) -> DocumentRecord:
    """Read a file into a pending DocumentRecord.

    Args:
        path: A .pdf, .txt or .md file
        organization_id: Owning organization

    Returns:
        DocumentRecord: New document with extracted text and file metadata

    Raises:
        ValueError: If the file type is not supported
    """
    suffix = path.suffix.lower()
    if suffix not in CONTENT_TYPES:
        raise ValueError(f"Unsupported file type: {path.suffix}")

    file_stat = path.stat()
    metadata: dict[str, Any] = {
        "source_filename": path.name,
        "modification_date": file_stat.st_mtime,
    }
    if suffix == ".pdf":
        content = extract_text_from_pdf(path)
        metadata.update(extract_pdf_metadata(path))
    else:
        content = path.read_text(encoding="utf-8")

    logger.info(f"📄 Loaded {path.name}: {len(content)} characters")
    return DocumentRecord(
        id=uuid.uuid4().hex,
        organization_id=organization_id,
        name=path.name,
        content=content,
        content_type=CONTENT_TYPES[suffix],
        size_bytes=file_stat.st_size,
        metadata=metadata,
    )
