"""
Document Chunker

Splits extracted document text into overlapping, fixed-size windows.

Each window is at most ``chunk_size`` characters and ends, where possible,
right after a natural boundary (paragraph break, line break, sentence end,
space). The next window starts exactly ``chunk_overlap`` characters before
the previous one ended, so the chunks tile the text without gaps:

    chunks[0] + "".join(c[overlap:] for c in chunks[1:]) == text
"""

from __future__ import annotations

from typing import List, NamedTuple, Sequence

DEFAULT_SEPARATORS = ("\n\n", "\n", ". ", " ")


class TextChunk(NamedTuple):
    index: int
    start: int
    text: str


class DocumentChunker:
    """
    Deterministic overlapping-window splitter.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive; got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must not be negative; got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = tuple(s for s in separators if s)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> List[str]:
        return [chunk.text for chunk in self.split_with_offsets(text)]

    def split_with_offsets(self, text: str) -> List[TextChunk]:
        """
        Split ``text`` and report where each chunk starts in it.

        Empty input yields no chunks; any non-empty input yields at least one.
        """
        chunks: List[TextChunk] = []
        length = len(text)
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._find_boundary(text, start, end)

            chunks.append(TextChunk(len(chunks), start, text[start:end]))

            if end >= length:
                break
            start = end - self.chunk_overlap

        return chunks

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find_boundary(self, text: str, start: int, end: int) -> int:
        """
        Return the cut position for the window ``text[start:end]``.

        The cut must land past ``start + chunk_overlap`` so the next window
        starts strictly after this one.
        """
        lowest = start + self.chunk_overlap + 1

        for separator in self.separators:
            position = text.rfind(separator, lowest, end)
            if position != -1:
                return position + len(separator)

        return end
