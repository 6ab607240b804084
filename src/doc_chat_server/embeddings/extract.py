"""
Text Extraction

Turns an uploaded file into plain text, dispatching on its mime type.
PDF extraction also records where each page begins in the joined text so
chunks can be attributed to a page.
"""

from __future__ import annotations

import bisect
import logging
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

from docx import Document as DocxDocument
from pypdf import PdfReader

from ..core.errors import UnsupportedMediaType

logger = logging.getLogger("chat.extract")

MIME_TEXT = "text/plain"
MIME_PDF = "application/pdf"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SUPPORTED_MIME_TYPES = (MIME_PDF, MIME_DOCX, MIME_TEXT)


class ExtractedText(NamedTuple):
    text: str
    page_count: int
    # Offset of each page's first character in ``text``; empty when the
    # format has no notion of pages.
    page_starts: Tuple[int, ...] = ()

    def page_at(self, offset: int) -> Optional[int]:
        """Return the 1-based page containing ``offset``, if pages are known."""
        if not self.page_starts:
            return None
        return bisect.bisect_right(self.page_starts, offset)


def extract_text(path: str, mime_type: str) -> ExtractedText:
    """
    Extract text from a stored upload.

    Raises
    ------
    UnsupportedMediaType
        If the mime type is not one of SUPPORTED_MIME_TYPES.
    """
    logger.debug("Extracting text from %s (%s)", path, mime_type)

    if mime_type == MIME_TEXT:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        return ExtractedText(text=text, page_count=1)

    if mime_type == MIME_PDF:
        reader = PdfReader(path)
        parts: List[str] = []
        page_starts: List[int] = []
        offset = 0
        for page in reader.pages:
            page_text = page.extract_text() or ""
            page_starts.append(offset)
            parts.append(page_text)
            offset += len(page_text) + 1  # joined with "\n"
        return ExtractedText(
            text="\n".join(parts),
            page_count=len(reader.pages),
            page_starts=tuple(page_starts),
        )

    if mime_type == MIME_DOCX:
        doc = DocxDocument(path)
        text = "\n".join(p.text for p in doc.paragraphs)
        return ExtractedText(text=text, page_count=1)

    raise UnsupportedMediaType(f"Unsupported file type: {mime_type}")
