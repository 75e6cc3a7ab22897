"""
Problem detectors for legal documents.

Four independent, pure detectors plus a combined entry point:

  detect_missing_sections(text, sections, completeness=False)
  detect_wrong_order(sections)
  detect_terminology(text)
  detect_citations(text)
  detect_problems(text, sections)       - all of the above (completeness on)

Descriptions and suggestions are user-facing and written in Portuguese.
"""
from __future__ import annotations

import dataclasses
import functools
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from jurisia.models.schemas import DocumentProblem, DocumentSection, ProblemKind, SectionKind, Severity
from jurisia.services.structure_analyzer import iter_quotations

logger = logging.getLogger(__name__)


SECTION_LABELS: Dict[SectionKind, str] = {
    SectionKind.INTRODUCTION: "introdução",
    SectionKind.DEVELOPMENT: "desenvolvimento",
    SectionKind.ARGUMENTATION: "argumentação",
    SectionKind.CONCLUSION: "conclusão",
    SectionKind.CITATION: "citação",
    SectionKind.OTHER: "outro",
}


# ---------------------------------------------------------------------------
# Missing sections
# ---------------------------------------------------------------------------

_MISSING_MESSAGES: Dict[SectionKind, Tuple[str, str]] = {
    SectionKind.INTRODUCTION: (
        "O documento não possui uma introdução clara",
        "Adicione uma seção introdutória que contextualize o documento",
    ),
    SectionKind.DEVELOPMENT: (
        "O documento não possui um desenvolvimento consistente",
        "Adicione uma seção de desenvolvimento com a argumentação principal",
    ),
    SectionKind.CONCLUSION: (
        "O documento não possui uma conclusão",
        "Adicione uma seção de conclusão resumindo os pontos principais",
    ),
}


def _missing_location(kind: SectionKind, text: str) -> int:
    if kind is SectionKind.INTRODUCTION:
        return 0
    if kind is SectionKind.DEVELOPMENT:
        return len(text) // 3
    return max(len(text) - 1, 0)


def detect_missing_sections(
    text: str,
    sections: Sequence[DocumentSection],
    completeness: bool = False,
) -> List[DocumentProblem]:
    """
    Flag essential section kinds absent from ``sections``.

    The basic variant checks introduction and conclusion (severity medium);
    the completeness variant also requires development (severity high).
    """
    if completeness:
        required = (SectionKind.INTRODUCTION, SectionKind.DEVELOPMENT, SectionKind.CONCLUSION)
        severity = Severity.HIGH
    else:
        required = (SectionKind.INTRODUCTION, SectionKind.CONCLUSION)
        severity = Severity.MEDIUM

    present = {section.kind for section in sections}
    problems: List[DocumentProblem] = []

    for kind in required:
        if kind in present:
            continue
        description, suggestion = _MISSING_MESSAGES[kind]
        problems.append(
            DocumentProblem(
                kind=ProblemKind.MISSING_SECTION,
                description=description,
                location=_missing_location(kind, text),
                suggestion=suggestion,
                severity=severity,
            )
        )

    return problems


# ---------------------------------------------------------------------------
# Section order (fold over a small state)
# ---------------------------------------------------------------------------

CANONICAL_ORDER: Tuple[SectionKind, ...] = (
    SectionKind.INTRODUCTION,
    SectionKind.DEVELOPMENT,
    SectionKind.ARGUMENTATION,
    SectionKind.CONCLUSION,
)


@dataclasses.dataclass(frozen=True)
class OrderState:
    """Last canonical kind seen plus the problems accumulated so far."""

    last_kind: Optional[SectionKind] = None
    problems: Tuple[DocumentProblem, ...] = ()


def order_step(state: OrderState, section: DocumentSection) -> OrderState:
    """Advance the order check by one section."""
    if section.kind not in CANONICAL_ORDER:
        return state

    problems = state.problems
    if state.last_kind is not None and (
        CANONICAL_ORDER.index(section.kind) < CANONICAL_ORDER.index(state.last_kind)
    ):
        problems = problems + (
            DocumentProblem(
                kind=ProblemKind.WRONG_ORDER,
                description=f'A seção "{section.title}" está fora da ordem lógica esperada',
                location=section.start_offset,
                suggestion=(
                    "Considere mover esta seção para depois da seção de "
                    f"{SECTION_LABELS[state.last_kind]}"
                ),
                severity=Severity.MEDIUM,
            ),
        )

    return OrderState(last_kind=section.kind, problems=problems)


def detect_wrong_order(sections: Sequence[DocumentSection]) -> List[DocumentProblem]:
    """Report every backward transition in the canonical section order."""
    final = functools.reduce(order_step, sections, OrderState())
    return list(final.problems)


# ---------------------------------------------------------------------------
# Terminology
# ---------------------------------------------------------------------------

TERMINOLOGY_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ("autor", "requerente", "demandante", "postulante"),
    ("réu", "requerido", "demandado", "pólo passivo"),
    ("sentença", "decisão", "acórdão"),
    ("recurso", "apelação", "agravo"),
    ("processo", "ação", "demanda", "lide"),
    ("juiz", "magistrado", "julgador"),
)


@functools.lru_cache(maxsize=None)
def _term_pattern(term: str) -> re.Pattern:
    return re.compile(r"\b" + re.escape(term) + r"\b", re.IGNORECASE)


def detect_terminology(text: str) -> List[DocumentProblem]:
    """
    Flag mixed use of synonyms within a terminology group.

    When two or more terms of a group occur, every term other than the most
    frequent one is reported at its first occurrence.
    """
    problems: List[DocumentProblem] = []

    for group in TERMINOLOGY_GROUPS:
        occurrences = []
        for term in group:
            matches = list(_term_pattern(term).finditer(text))
            if matches:
                occurrences.append((term, len(matches), matches[0].start()))

        if len(occurrences) < 2:
            continue

        # Stable sort: ties keep the group's declared order
        occurrences.sort(key=lambda occ: occ[1], reverse=True)
        dominant = occurrences[0][0]

        for term, _count, first_index in occurrences[1:]:
            problems.append(
                DocumentProblem(
                    kind=ProblemKind.TERMINOLOGY,
                    description=f'Inconsistência terminológica: uso de "{term}" e "{dominant}"',
                    location=first_index,
                    suggestion=f'Padronize o uso para "{dominant}" em todo o documento',
                    severity=Severity.LOW,
                )
            )

    return problems


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------

# Parenthetical source reference right after a quotation
_SOURCE_REFERENCE_RE = re.compile(r"\s*\([^)]+\)")
# "artigo", "lei", "decreto" (and plurals) not followed by a number ("nº 123" and "n.º 123" count)
_UNNUMBERED_PROVISION_RE = re.compile(
    r"\b(?:artigos?|leis?|decretos?)\b(?!\s*(?:n\.?\s*[º°o]?\.?\s*)?\d)",
    re.IGNORECASE,
)


def detect_citations(text: str) -> List[DocumentProblem]:
    """Flag unreferenced quotations (high) and unnumbered legal provisions (medium)."""
    problems: List[DocumentProblem] = []

    for match in iter_quotations(text):
        if _SOURCE_REFERENCE_RE.match(text, match.end()):
            continue
        problems.append(
            DocumentProblem(
                kind=ProblemKind.INVALID_CITATION,
                description="Citação sem referência clara à fonte",
                location=match.start(),
                suggestion="Adicione a referência completa após a citação, indicando autor, obra e página",
                severity=Severity.HIGH,
            )
        )

    for match in _UNNUMBERED_PROVISION_RE.finditer(text):
        problems.append(
            DocumentProblem(
                kind=ProblemKind.INVALID_CITATION,
                description="Referência a dispositivo legal sem número específico",
                location=match.start(),
                suggestion="Especifique o número do dispositivo legal mencionado",
                severity=Severity.MEDIUM,
            )
        )

    return problems


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------

def detect_problems(text: str, sections: Sequence[DocumentSection]) -> List[DocumentProblem]:
    """Run every detector; the missing-section check uses the completeness variant."""
    problems = [
        *detect_missing_sections(text, sections, completeness=True),
        *detect_wrong_order(sections),
        *detect_terminology(text),
        *detect_citations(text),
    ]
    logger.debug("detect_problems: %d problems", len(problems))
    return problems
