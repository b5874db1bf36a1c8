"""
Unicode and Text Normalization
Cleans PDF page text before it is embedded in the extraction prompt.

Answer markers (✓ ✅) are deliberately kept: the model uses them to find the
correct option.
"""

import logging
import re

log = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """
    Normalize text to remove PDF artifacts and clean up formatting.

    Removes:
    - CID artifacts from PDF: (cid:123)
    - Private Use Area characters (custom PDF symbols/bullets)
    - Unicode control characters and zero-width spaces

    Normalizes:
    - Spaces, hyphens, quotes; all whitespace runs collapse to a single space.
    """
    if not text or not text.strip():
        return ""

    # Remove CID artifacts (PDF encoding errors like "(cid:123)")
    text = re.sub(r'\(cid:\d+\)', '', text)

    # Remove Private Use Area (PUA) characters: U+E000..U+F8FF
    text = re.sub(r'[\uE000-\uF8FF]', '', text)

    # Control characters become spaces so words on adjacent lines stay apart
    text = re.sub(r'[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F]', ' ', text)
    text = re.sub(r'[\u200B-\u200D\uFEFF]', '', text)

    # Normalize different types of spaces to regular space
    text = re.sub(r'[\u00A0\u2000-\u200A\u202F\u205F]', ' ', text)

    # Normalize hyphens/dashes to regular hyphen
    text = re.sub(r'[\u2010-\u2015\u2212]', '-', text)

    # Normalize quotes
    text = re.sub(r'[\u201C\u201D]', '"', text)  # Smart double quotes → "
    text = re.sub(r'[\u2018\u2019]', "'", text)  # Smart single quotes → '

    # Remove multiple spaces, tabs, newlines → single space
    text = re.sub(r'\s+', ' ', text)

    return text.strip()
