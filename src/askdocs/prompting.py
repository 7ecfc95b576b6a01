"""Prompt assembly for grounded answers and one-line document summaries."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

CONTEXT_DELIMITER = "\n\n---\n\n"
SUMMARY_MAX_CHARS = 4000


def _load_template(name: str) -> str:
    """Read and trim the contents of a template file."""
    return (_PROMPTS_DIR / name).read_text(encoding="utf-8").strip()


_GROUNDED_TEMPLATE = _load_template("grounded.txt")
_SUMMARY_TEMPLATE = _load_template("summary.txt")

NO_CONTEXT_PROMPT = _load_template("no_context.txt")
DEFAULT_SYSTEM_PROMPT = _load_template("system.txt")
SUMMARY_SYSTEM_PROMPT = _load_template("summary_system.txt")


@dataclass(slots=True)
class RetrievedChunk:
    """A chunk returned by similarity search, scored against one question."""

    text: str
    document_label: str
    score: float
    chunk_id: Optional[int] = None
    document_id: Optional[int] = None


def format_context_block(chunk: RetrievedChunk) -> str:
    return f"[Document: {chunk.document_label}]\n{chunk.text}"


def build_grounded_prompt(chunks: Sequence[RetrievedChunk]) -> str:
    """Compose the system prompt that anchors the answer in *chunks*.

    Chunks are used in the order given. An empty sequence yields
    :data:`NO_CONTEXT_PROMPT`.
    """

    if not chunks:
        return NO_CONTEXT_PROMPT

    blocks: List[str] = [format_context_block(chunk) for chunk in chunks]
    return _GROUNDED_TEMPLATE.format(context=CONTEXT_DELIMITER.join(blocks))


def build_summary_prompt(content: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    return _SUMMARY_TEMPLATE.format(content=content.strip()[:max_chars])


__all__ = [
    "CONTEXT_DELIMITER",
    "DEFAULT_SYSTEM_PROMPT",
    "NO_CONTEXT_PROMPT",
    "RetrievedChunk",
    "SUMMARY_MAX_CHARS",
    "SUMMARY_SYSTEM_PROMPT",
    "build_grounded_prompt",
    "build_summary_prompt",
    "format_context_block",
]
