"""Document text extraction for uploaded files (PDF via PyMuPDF, DOCX via python-docx, plain text).

The pipeline only needs "given a file, produce text or fail": every format-specific
problem is raised as ExtractionError so callers can report it per file.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import fitz  # PyMuPDF
from docx import Document
from docx.oxml.table import CT_Tbl
from docx.oxml.text.paragraph import CT_P
from docx.table import Table

from recruitflow.core.errors import ExtractionError
from recruitflow.schemas.batch import UploadedFile

logger = logging.getLogger(__name__)


def parse_pdf_content(file_content: bytes) -> str:
    """Extract text page by page, each page prefixed with a '--- Page N ---' marker."""
    with fitz.open(stream=file_content, filetype="pdf") as doc:
        pages = []
        for i, page in enumerate(doc, start=1):
            # sort=True reads top-to-bottom, left-to-right
            pages.append(f"--- Page {i} ---\n{page.get_text('text', sort=True).strip()}")
    return "\n\n".join(pages)


def parse_text_content(file_content: bytes) -> str:
    """Helper for plain text files"""
    return file_content.decode("utf-8", errors="ignore")


def _extract_text_from_xml(element) -> str:
    """
    Collect text from an XML element recursively.
    Catches text inside Text Boxes (w:txbxContent) which python-docx paragraphs miss.
    """
    text_parts = []
    for node in element.iter():
        if node.tag.endswith('}t'):
            if node.text:
                text_parts.append(node.text)
        elif node.tag.endswith('}br') or node.tag.endswith('}cr') or node.tag.endswith('}p'):
            text_parts.append('\n')
        elif node.tag.endswith('}tab'):
            text_parts.append('\t')
    return "".join(text_parts).strip()


def parse_docx_content(file_content: bytes) -> str:
    """Body paragraphs and tables in document order; table rows joined with ' | '."""
    doc = Document(io.BytesIO(file_content))
    full_text = []
    for element in doc.element.body:
        if isinstance(element, CT_P):
            para_text = _extract_text_from_xml(element)
            if para_text:
                full_text.append(para_text)
        elif isinstance(element, CT_Tbl):
            table = Table(element, doc)
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    full_text.append(" | ".join(row_text))
    return "\n".join(full_text)


def read_upload_bytes(upload: UploadedFile) -> bytes:
    if upload.content is not None:
        return upload.content
    if upload.path:
        return Path(upload.path).read_bytes()
    raise ExtractionError(upload.filename, "no content")


def extract_text(upload: UploadedFile) -> str:
    """
    Main entry point: pick the parser from the file extension.
    Raises ExtractionError for unreadable files and for files with no text at all.
    """
    ext = Path(upload.filename).suffix.lower()
    try:
        data = read_upload_bytes(upload)
        if ext == ".pdf":
            text = parse_pdf_content(data)
        elif ext == ".docx":
            text = parse_docx_content(data)
        else:
            text = parse_text_content(data)
    except ExtractionError:
        raise
    except Exception as e:
        logger.error("Error reading %s: %s", upload.filename, e)
        raise ExtractionError(upload.filename, str(e)) from e

    if not text.strip():
        raise ExtractionError(upload.filename, "no extractable text")
    logger.debug("Extracted %d chars from %s", len(text), upload.filename)
    return text
