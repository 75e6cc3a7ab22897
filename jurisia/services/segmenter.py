"""
Paragraph-aware text segmentation.

Splitting strategy (in priority order):
  1. Primary    - the whole text, when it fits in ``max_chunk_size``
  2. Secondary  - blank-line paragraph boundaries, greedily packed
  3. Last-resort - hard character split for a single oversized paragraph

Every paragraph keeps its own trailing blank-line separator, so no separator
is ever inserted or dropped: ``"".join(segment_text(t)) == t`` for any ``t``.
An empty document segments to ``[""]``.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from jurisia.config import settings

logger = logging.getLogger(__name__)

ELISION_MARKER = "\n...\n"

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


# ---------------------------------------------------------------------------
# Splitting helpers
# ---------------------------------------------------------------------------

def _paragraph_units(text: str) -> List[str]:
    """Split into paragraphs, each carrying the separator that follows it."""
    units: List[str] = []
    start = 0
    for match in _PARAGRAPH_BREAK.finditer(text):
        units.append(text[start:match.end()])
        start = match.end()
    if start < len(text):
        units.append(text[start:])
    return units


def _hard_split(unit: str, size: int) -> List[str]:
    return [unit[i:i + size] for i in range(0, len(unit), size)]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def segment_text(text: str, max_chunk_size: Optional[int] = None) -> List[str]:
    """
    Split ``text`` into chunks of at most ``max_chunk_size`` characters.

    Args:
        text:           Document text.
        max_chunk_size: Chunk ceiling (defaults to ``settings.SEGMENT_MAX_CHARS``).

    Returns:
        ``[text]`` when the text already fits, otherwise paragraph-packed
        chunks whose concatenation is exactly ``text``.
    """
    size = settings.SEGMENT_MAX_CHARS if max_chunk_size is None else max_chunk_size
    if size <= 0:
        raise ValueError("max_chunk_size must be positive")

    if len(text) <= size:
        return [text]

    chunks: List[str] = []
    current = ""

    for unit in _paragraph_units(text):
        if len(unit) > size:
            # Oversized paragraph: flush, then cut at character boundaries.
            # The tail piece stays open so following paragraphs can join it.
            if current:
                chunks.append(current)
            pieces = _hard_split(unit, size)
            chunks.extend(pieces[:-1])
            current = pieces[-1]
            continue

        if len(current) + len(unit) > size:
            chunks.append(current)
            current = unit
        else:
            current += unit

    if current:
        chunks.append(current)

    logger.debug("segment_text: %d chars -> %d chunks (max %d)", len(text), len(chunks), size)
    return chunks


def build_analysis_view(
    text: str,
    ceiling: Optional[int] = None,
    max_chunk_size: Optional[int] = None,
) -> str:
    """
    Reduce a long document to ``first_chunk + "\\n...\\n" + last_chunk``.

    Texts no longer than ``ceiling`` (default ``settings.ANALYSIS_MAX_CHARS``)
    are returned unchanged.
    """
    limit = settings.ANALYSIS_MAX_CHARS if ceiling is None else ceiling
    if len(text) <= limit:
        return text

    chunks = segment_text(text, max_chunk_size)
    if len(chunks) == 1:
        return chunks[0]

    logger.info(
        "Document of %d chars reduced to head/tail view (%d chunks)", len(text), len(chunks)
    )
    return chunks[0] + ELISION_MARKER + chunks[-1]
