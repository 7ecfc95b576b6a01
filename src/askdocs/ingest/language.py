"""Tag extracted documents with their dominant language."""
from __future__ import annotations

import logging
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect_langs

LOGGER = logging.getLogger(__name__)

# Deterministic results across runs.
DetectorFactory.seed = 0

SAMPLE_CHARS = 5000
MIN_LETTERS = 20
MIN_PROBABILITY = 0.5


def detect_language(text: str) -> Optional[str]:
    """ISO 639-1 code of *text*, or ``None`` when it is too short or too mixed to tell."""

    sample = text[:SAMPLE_CHARS]
    if sum(char.isalpha() for char in sample) < MIN_LETTERS:
        return None
    try:
        candidates = detect_langs(sample)
    except LangDetectException as error:
        LOGGER.debug("Language detection failed: %s", error)
        return None
    best = candidates[0]
    if best.prob < MIN_PROBABILITY:
        LOGGER.debug("No dominant language (best guess %s at %.2f)", best.lang, best.prob)
        return None
    return best.lang
