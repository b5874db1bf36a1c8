"""
Ingestion Package

Page text acquisition for extraction:
1. Open (PyMuPDF) → page text layer
2. Normalize (unicode/text cleanup) → clean single-line text
"""

from .normalizer import normalize_text
from .pdf_text import PdfTextSource, TextSource

__all__ = [
    "normalize_text",
    "PdfTextSource",
    "TextSource",
]
