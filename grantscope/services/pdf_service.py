"""PDF text extraction.

Text is pulled page by page with PyPDF2. Scanned returns come back nearly
empty; they are logged but not OCR'd.
"""
from __future__ import annotations

import io
import logging
from typing import List

import PyPDF2

from grantscope.errors import PDFExtractionError

logger = logging.getLogger(__name__)

# Below this many characters the document is probably a scan
SCANNED_TEXT_THRESHOLD = 500


def looks_like_pdf(data: bytes) -> bool:
    return (data or b"")[:1024].lstrip().startswith(b"%PDF")


def text_is_meaningful(text: str) -> bool:
    s = (text or "").strip()
    if len(s) < SCANNED_TEXT_THRESHOLD:
        return False
    alpha = sum(1 for ch in s if ch.isalpha())
    ratio = alpha / max(len(s), 1)
    return ratio >= 0.25


def extract_text(data: bytes) -> str:
    """Return the plain text of a PDF held in memory."""
    logger.info("Processing PDF buffer of size: %d bytes", len(data or b""))
    try:
        reader = PyPDF2.PdfReader(io.BytesIO(data))
        parts: List[str] = []
        for page in reader.pages:
            parts.append(page.extract_text() or "")
    except Exception as e:
        raise PDFExtractionError(f"Failed to extract text from PDF: {e}") from e

    text = "\n".join(parts).strip()
    if not text:
        raise PDFExtractionError("Failed to extract text from PDF: No text content found")

    logger.info("Extracted text length: %d characters", len(text))
    if not text_is_meaningful(text):
        logger.warning("PDF appears to be scanned or has limited text (%d characters)", len(text))
    return text
