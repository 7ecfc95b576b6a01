"""Split extracted document text into overlapping, boundary-aware chunks."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

LOGGER = logging.getLogger(__name__)

# How far back from the tentative end we look for a natural break.
BOUNDARY_LOOKBACK = 200

_SENTENCE_TERMINATORS = frozenset(".!?")
_PREVIEW_CHARS = 100


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A contiguous slice of the trimmed source text.

    ``start_index`` and ``end_index`` describe the half-open window the chunk
    was cut from. ``text`` is that window with surrounding whitespace removed,
    so it may be slightly shorter than ``end_index - start_index``.
    """

    text: str
    start_index: int
    end_index: int


@dataclass(slots=True)
class ChunkingConfig:
    chunk_size: int = 1000
    overlap: int = 200
    min_chunk_size: int = 100

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if self.overlap < 0:
            raise ValueError("overlap must be a non-negative integer")
        if self.min_chunk_size < 0:
            raise ValueError("min_chunk_size must be a non-negative integer")
        if self.overlap >= self.chunk_size:
            LOGGER.warning(
                "Chunk overlap %s is not smaller than chunk size %s; chunking will "
                "advance one character at a time",
                self.overlap,
                self.chunk_size,
            )
        if self.min_chunk_size > self.chunk_size:
            LOGGER.warning(
                "min_chunk_size %s exceeds chunk_size %s; most chunks will be dropped",
                self.min_chunk_size,
                self.chunk_size,
            )


@dataclass(slots=True)
class ChunkPreview:
    preview: str
    size: int


@dataclass(slots=True)
class ChunkingPreview:
    """Summary of how a text would be chunked, used for debugging."""

    total_chunks: int
    average_chunk_size: int
    chunks: List[ChunkPreview] = field(default_factory=list)


def _sentence_break(text: str, window_start: int, window_end: int) -> Optional[int]:
    """Return the offset just past the last ``[.!?]\\s+`` run inside the window."""

    position = window_end - 2
    while position >= window_start:
        if text[position] in _SENTENCE_TERMINATORS and text[position + 1].isspace():
            end = position + 2
            while end < window_end and text[end].isspace():
                end += 1
            return end
        position -= 1
    return None


def find_boundary(text: str, start: int, end: int) -> int:
    """Move ``end`` back to the nearest natural boundary after ``start``.

    Sentence endings win over paragraph breaks, which win over spaces. When
    the lookback window holds none of them ``end`` is returned unchanged.
    """

    window_start = max(end - BOUNDARY_LOOKBACK, start)

    sentence_end = _sentence_break(text, window_start, end)
    if sentence_end is not None:
        return sentence_end

    window = text[window_start:end]
    paragraph = window.rfind("\n\n")
    if paragraph > 0:
        return window_start + paragraph + 2

    space = window.rfind(" ")
    if space > 0:
        return window_start + space

    return end


def chunk_text(text: str, config: Optional[ChunkingConfig] = None) -> List[TextChunk]:
    """Split *text* into overlapping chunks at sentence, paragraph or word breaks.

    Offsets refer to the text after leading and trailing whitespace has been
    removed. Candidates shorter than ``min_chunk_size`` are dropped, so a
    whitespace-only or very short input yields an empty list.
    """

    config = config or ChunkingConfig()
    if not text:
        return []

    clean_text = text.strip()
    text_length = len(clean_text)
    chunks: List[TextChunk] = []
    start = 0

    while start < text_length:
        end = min(start + config.chunk_size, text_length)
        if end < text_length:
            end = find_boundary(clean_text, start, end)

        candidate = clean_text[start:end].strip()
        if len(candidate) >= config.min_chunk_size:
            chunks.append(TextChunk(text=candidate, start_index=start, end_index=end))

        if end >= text_length:
            break

        # Always move forward, even when the overlap swallows the whole window.
        start = max(end - config.overlap, start + 1)

    LOGGER.debug("Split %s characters into %s chunks", text_length, len(chunks))
    return chunks


def preview_chunking(text: str, config: Optional[ChunkingConfig] = None) -> ChunkingPreview:
    chunks = chunk_text(text, config)
    if not chunks:
        return ChunkingPreview(total_chunks=0, average_chunk_size=0)

    average = round(sum(len(chunk.text) for chunk in chunks) / len(chunks))
    previews = [
        ChunkPreview(
            preview=chunk.text[:_PREVIEW_CHARS] + ("..." if len(chunk.text) > _PREVIEW_CHARS else ""),
            size=len(chunk.text),
        )
        for chunk in chunks
    ]
    return ChunkingPreview(total_chunks=len(chunks), average_chunk_size=average, chunks=previews)


__all__ = [
    "BOUNDARY_LOOKBACK",
    "ChunkPreview",
    "ChunkingConfig",
    "ChunkingPreview",
    "TextChunk",
    "chunk_text",
    "find_boundary",
    "preview_chunking",
]
