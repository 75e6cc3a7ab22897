"""
Extractive summary built from paragraph positions.

The first two paragraphs feed the introduction, the last two the conclusion,
and the paragraphs in between supply key points and main arguments.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from jurisia.models.schemas import DocumentSummary, SummaryOutline
from jurisia.utils.helpers import split_paragraphs, truncate_text

logger = logging.getLogger(__name__)

MIN_SUMMARY_CHARS = 100
MAX_KEY_POINTS = 5
MIN_KEY_POINTS = 3
MAX_MAIN_ARGUMENTS = 3

_SENTENCE_END = re.compile(r"[.!?]+")


def _key_points(middle: List[str]) -> List[str]:
    points: List[str] = []

    for paragraph in middle:
        if len(paragraph) > 100:
            sentences = [s for s in _SENTENCE_END.split(paragraph) if s.strip()]
            if sentences:
                points.append(sentences[0].strip() + ".")

    # Too few long paragraphs: top up with short ones
    if len(points) < MIN_KEY_POINTS:
        for paragraph in middle:
            if 30 < len(paragraph) <= 100 and len(points) < MAX_KEY_POINTS:
                points.append(paragraph.strip())

    return points[:MAX_KEY_POINTS]


def summarize(text: Optional[str]) -> Optional[DocumentSummary]:
    """
    Summarize ``text``.

    Returns None for missing text or text shorter than 100 characters.
    """
    if not text or len(text) < MIN_SUMMARY_CHARS:
        return None

    paragraphs = split_paragraphs(text)
    if not paragraphs:
        return None

    count = len(paragraphs)
    introduction = " ".join(paragraphs[:2])
    conclusion = " ".join(paragraphs[max(0, count - 2):])
    middle = paragraphs[min(2, count):max(0, count - 2)]

    main_arguments = [truncate_text(p, 150) for p in middle if len(p) > 80][:MAX_MAIN_ARGUMENTS]
    overview = f"{introduction[:100]}... {conclusion[:100]}...".strip()

    return DocumentSummary(
        overview=overview,
        key_points=_key_points(middle),
        outline=SummaryOutline(
            introduction=truncate_text(introduction, 200),
            main_arguments=main_arguments,
            conclusion=truncate_text(conclusion, 200),
        ),
    )
