"""
Page text acquisition for the extraction pipeline.

PDF: PyMuPDF (fitz) opens the document and extracts each page's text layer.
Documents live in a single data directory and are addressed by file name.

A page whose text cannot be read yields "" (the page is skipped, not failed);
a document that cannot be opened at all raises DocumentUnavailableError.
"""

import logging
from pathlib import Path
from typing import List, Protocol

import fitz  # PyMuPDF

from extraction.errors import DocumentUnavailableError
from ingestion.normalizer import normalize_text

log = logging.getLogger(__name__)


class TextSource(Protocol):
    def get_page_count(self, document: str) -> int: ...

    def get_page_text(self, document: str, page_number: int) -> str: ...

    def list_documents(self) -> List[str]: ...


class PdfTextSource:
    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def _path(self, document: str) -> Path:
        # Only bare file names inside data_dir are addressable
        if not document or Path(document).name != document:
            raise DocumentUnavailableError(f"Invalid document name: {document!r}")
        path = self.data_dir / document
        if not path.is_file():
            raise DocumentUnavailableError(f"Document not found: {document}")
        return path

    def _open(self, document: str) -> "fitz.Document":
        path = self._path(document)
        try:
            return fitz.open(str(path))
        except Exception as e:
            raise DocumentUnavailableError(f"Cannot open {document}: {e}") from e

    def get_page_count(self, document: str) -> int:
        doc = self._open(document)
        try:
            return doc.page_count
        finally:
            doc.close()

    def get_page_text(self, document: str, page_number: int) -> str:
        """Normalized text of a 1-based page; "" when the page has no readable text."""
        doc = self._open(document)
        try:
            if not 1 <= page_number <= doc.page_count:
                log.warning("%s: page %d out of range (1-%d)", document, page_number, doc.page_count)
                return ""
            try:
                raw = doc.load_page(page_number - 1).get_text("text")
            except Exception as e:
                log.warning("%s: failed to read page %d: %s", document, page_number, e)
                return ""
            return normalize_text(raw)
        finally:
            doc.close()

    def list_documents(self) -> List[str]:
        if not self.data_dir.is_dir():
            log.warning("PDF data directory %s does not exist", self.data_dir)
            return []
        return sorted(
            p.name for p in self.data_dir.iterdir()
            if p.is_file() and p.suffix.lower() == ".pdf"
        )
