"""Sliding-window text chunking with boundary snapping.

A token is one character of extracted text. Counting characters keeps chunk
offsets exact and the result independent of any model tokenizer, so chunking is
a pure function of (text, window, overlap, tolerance).

Every window is cut at the hard limit unless a natural boundary lies within the
tolerance zone just before it. Boundaries are tried in this order: paragraph
break, sentence end, line break, whitespace. The next window starts overlap
characters before the previous cut.
"""

import re

from pydantic import BaseModel, Field

from shared.exceptions.errors import InvalidInput
from shared.models.document import ChunkSpan

_SENTENCE_END = re.compile(r"[.!?][\"')\]]*\s")
_WHITESPACE = re.compile(r"\s")


class ChunkingConfig(BaseModel):
    """Chunker options.

    Attributes:
        window_tokens:      Maximum chunk length in characters.
        overlap_tokens:     Characters shared by consecutive chunks.
        boundary_tolerance: Share of the window searched backwards for a boundary.
    """

    window_tokens: int = Field(default=1000)
    overlap_tokens: int = Field(default=200)
    boundary_tolerance: float = Field(default=0.1, ge=0.0, le=0.5)


def _validate(window_tokens: int, overlap_tokens: int) -> None:
    if window_tokens < 1:
        raise InvalidInput(f"window_tokens must be >= 1, got {window_tokens}.")
    if overlap_tokens < 0:
        raise InvalidInput(f"overlap_tokens must be >= 0, got {overlap_tokens}.")
    if overlap_tokens >= window_tokens:
        raise InvalidInput(
            f"overlap_tokens ({overlap_tokens}) must be smaller than window_tokens ({window_tokens})."
        )


def _last_match(pattern: re.Pattern, text: str, lo: int, hi: int) -> int | None:
    cut = None
    for match in pattern.finditer(text, lo, hi):
        cut = match.end()
    return cut


def _find_boundary(text: str, lo: int, hi: int) -> int | None:
    """Return the best cut position in (lo, hi], or None when there is no boundary."""
    if hi <= lo:
        return None

    paragraph = text.rfind("\n\n", lo, hi)
    if paragraph != -1 and paragraph + 2 > lo:
        return paragraph + 2

    sentence = _last_match(_SENTENCE_END, text, lo, hi)
    if sentence is not None:
        return sentence

    line = text.rfind("\n", lo, hi)
    if line != -1:
        return line + 1

    space = _last_match(_WHITESPACE, text, lo, hi)
    if space is not None:
        return space

    return None


def chunk_text(
    text: str,
    window_tokens: int,
    overlap_tokens: int,
    boundary_tolerance: float = 0.1,
) -> list[ChunkSpan]:
    """Split text into overlapping windows.

    Args:
        text (str): Extracted document text.
        window_tokens (int): Maximum chunk length.
        overlap_tokens (int): Overlap between consecutive chunks.
        boundary_tolerance (float): Share of the window that may be given up to
            end a chunk on a natural boundary.

    Returns:
        list[ChunkSpan]: Chunks in order; chunk.text == text[start_offset:end_offset].
            Empty for empty or whitespace-only text.

    Raises:
        InvalidInput: If overlap_tokens >= window_tokens or either is out of range.
    """
    _validate(window_tokens, overlap_tokens)
    if not text or not text.strip():
        return []

    length = len(text)
    step = window_tokens - overlap_tokens
    # never give up more than half a step, so every window advances
    tolerance = max(0, min(int(window_tokens * boundary_tolerance), step // 2))

    spans: list[ChunkSpan] = []
    start = 0
    while True:
        hard_end = min(start + window_tokens, length)
        if hard_end >= length:
            end = length
        else:
            end = _find_boundary(text, hard_end - tolerance, hard_end) or hard_end

        spans.append(ChunkSpan(index=len(spans), text=text[start:end], start_offset=start, end_offset=end))
        if end >= length:
            return spans
        start = end - overlap_tokens


class TextChunker:
    """Chunker bound to one configuration."""

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or ChunkingConfig()
        _validate(self.config.window_tokens, self.config.overlap_tokens)

    def chunk(self, text: str) -> list[ChunkSpan]:
        return chunk_text(
            text,
            window_tokens=self.config.window_tokens,
            overlap_tokens=self.config.overlap_tokens,
            boundary_tolerance=self.config.boundary_tolerance,
        )
