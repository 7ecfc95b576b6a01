"""Whitespace clean-up applied to every extracted document."""
from __future__ import annotations

import re
import unicodedata

_HORIZONTAL_SPACE_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

# Control characters other than tab and newline are dropped, along with the
# invisible soft hyphen, zero-width space and byte order mark PDF text often
# carries. Page breaks become line breaks.
_TRANSLATION = {
    **dict.fromkeys([*range(0x00, 0x09), *range(0x0E, 0x20), 0x7F, 0xAD, 0x200B, 0xFEFF]),
    0x0B: "\n",
    0x0C: "\n",
}


def normalize_text(text: str) -> str:
    """NFC-normalise *text*, collapse runs of spaces and keep at most one blank line."""

    text = unicodedata.normalize("NFC", text).replace("\r\n", "\n").replace("\r", "\n")
    text = text.translate(_TRANSLATION)
    lines = (_HORIZONTAL_SPACE_RE.sub(" ", line).strip() for line in text.split("\n"))
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()
