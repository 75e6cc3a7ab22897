"""
Heuristic structure analyzer for Brazilian legal documents.

Each non-empty paragraph is matched against ``SECTION_RULES`` (an ordered,
first-match-wins table of compiled patterns).  Paragraphs whose first line
looks like a heading are emitted even when no rule matches, as kind ``other``.

Public API
----------
SECTION_RULES                       ordered rule table
classify_paragraph(paragraph)       -> Optional[SectionKind]
is_title_line(line)                 -> bool
iter_quotations(text)               -> Iterator[Match] (15+ char quotations)
iter_paragraphs(text)               -> Iterator[(offset, paragraph)]
analyze_sections(text)              -> List[DocumentSection]
"""
from __future__ import annotations

import dataclasses
import logging
import re
from typing import Iterator, List, Match, Optional, Pattern, Tuple

from jurisia.models.schemas import DocumentSection, SectionKind

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 300
TITLE_PREVIEW_CHARS = 50


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class SectionRule:
    """Tag paragraphs matching ``pattern`` with ``kind``."""

    kind: SectionKind
    pattern: Pattern[str]
    quotations: bool = False

    def matches(self, paragraph: str) -> bool:
        if self.pattern.search(paragraph) is not None:
            return True
        return self.quotations and next(iter_quotations(paragraph), None) is not None


# One complete quotation per match, so a closing mark is never reused as an
# opening one.
QUOTATION_RE = re.compile(r"[\"“]([^\"“”]*)[\"”]|[‘']([^'‘’]*)['’]")
MIN_QUOTATION_CHARS = 15


def iter_quotations(text: str) -> Iterator[Match[str]]:
    """Yield quotation matches whose quoted text has at least 15 characters."""
    for match in QUOTATION_RE.finditer(text):
        quoted = match.group(1) if match.group(1) is not None else match.group(2)
        if len(quoted) >= MIN_QUOTATION_CHARS:
            yield match


INTRODUCTION_PATTERN = re.compile(
    r"\b(INTRODU[ÇC][ÃA]O|CONSIDERA[ÇC][ÕO]ES\s+INICIAIS)\b", re.IGNORECASE
)
DEVELOPMENT_PATTERN = re.compile(
    r"\b(DESENVOLVIMENTO|FUNDAMENTA[ÇC][ÃA]O|AN[ÁA]LISE|M[ÉE]RITO)\b", re.IGNORECASE
)
ARGUMENTATION_PATTERN = re.compile(
    r"\b(ARGUMENTOS?|ARGUMENTA[ÇC][ÃA]O|DAS\s+RAZ[ÕO]ES)\b", re.IGNORECASE
)
CONCLUSION_PATTERN = re.compile(
    r"\b(CONCLUS[ÃA]O|CONSIDERA[ÇC][ÕO]ES\s+FINAIS|DISPOSITIVO)\b", re.IGNORECASE
)
CITATION_PATTERN = re.compile(
    r"\b(CITANDO|SEGUNDO|CONFORME|DE\s+ACORDO\s+COM)\b",
    re.IGNORECASE,
)

SECTION_RULES: Tuple[SectionRule, ...] = (
    SectionRule(SectionKind.INTRODUCTION, INTRODUCTION_PATTERN),
    SectionRule(SectionKind.DEVELOPMENT, DEVELOPMENT_PATTERN),
    SectionRule(SectionKind.ARGUMENTATION, ARGUMENTATION_PATTERN),
    SectionRule(SectionKind.CONCLUSION, CONCLUSION_PATTERN),
    SectionRule(SectionKind.CITATION, CITATION_PATTERN, quotations=True),
)

# Heading: starts with an uppercase letter or digit, then only word
# characters, whitespace and light punctuation.
_TITLE_RE = re.compile(r"^[A-ZÀ-Ý0-9][\w\s\-—–.,:;()]+$")

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def classify_paragraph(paragraph: str) -> Optional[SectionKind]:
    """Return the kind of the first rule that matches, or None."""
    for rule in SECTION_RULES:
        if rule.matches(paragraph):
            return rule.kind
    return None


def is_title_line(line: str) -> bool:
    return bool(_TITLE_RE.match(line))


def iter_paragraphs(text: str) -> Iterator[Tuple[int, str]]:
    """
    Yield ``(offset, paragraph)`` for every paragraph, blank ones included.

    The running offset advances by the paragraph length plus the length of
    the blank-line separator actually consumed (2 for a plain ``"\\n\\n"``).
    """
    start = 0
    for match in _PARAGRAPH_BREAK.finditer(text):
        yield start, text[start:match.start()]
        start = match.end()
    yield start, text[start:]


def _first_line(paragraph: str) -> str:
    return paragraph.strip().split("\n")[0]


def _preview_title(stripped: str) -> str:
    if len(stripped) > TITLE_PREVIEW_CHARS:
        return stripped[:TITLE_PREVIEW_CHARS] + "..."
    return stripped


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def analyze_sections(text: str) -> List[DocumentSection]:
    """
    Classify the paragraphs of ``text`` into document sections.

    Args:
        text: Document text (paragraphs separated by blank lines).

    Returns:
        Sections in document order; ``start_offset`` is non-decreasing.
    """
    if not text:
        return []

    sections: List[DocumentSection] = []

    for offset, paragraph in iter_paragraphs(text):
        stripped = paragraph.strip()
        if not stripped:
            continue

        title_line = _first_line(paragraph)
        is_title = is_title_line(title_line)
        kind = classify_paragraph(paragraph)

        if kind is None:
            if not is_title:
                continue
            kind = SectionKind.OTHER

        sections.append(
            DocumentSection(
                kind=kind,
                title=title_line if is_title else _preview_title(stripped),
                start_offset=offset,
                excerpt=stripped[:EXCERPT_CHARS],
                level=1 if is_title else 2,
            )
        )

    logger.debug("analyze_sections: %d sections found", len(sections))
    return sections
