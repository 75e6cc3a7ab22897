"""
Local improvement suggestions derived from detected problems.
"""
from __future__ import annotations

from collections import Counter
from typing import List, Sequence

from jurisia.models.schemas import DocumentProblem, ProblemKind

SHORT_DOCUMENT_CHARS = 1000
LONG_DOCUMENT_CHARS = 10000

TERMINOLOGY_SUGGESTION = (
    "Considere revisar a terminologia utilizada em todo o documento para manter "
    "consistência e precisão técnica."
)
CITATION_SUGGESTION = (
    "Verifique todas as citações e referências para garantir que estejam completas "
    "e sigam o padrão correto."
)
ORDER_SUGGESTION = (
    "Reorganize as seções do documento para seguir uma ordem lógica que facilite a compreensão."
)
SHORT_SUGGESTION = (
    "O documento é relativamente curto. Considere expandir a argumentação com mais "
    "detalhes e referências."
)
LONG_SUGGESTION = (
    "O documento é extenso. Considere revisar para remover redundâncias e tornar o "
    "texto mais conciso."
)
# Appended when fewer than two suggestions were produced
DEFAULT_SUGGESTIONS = (
    "Considere adicionar mais referências a jurisprudência relevante para fortalecer "
    "seus argumentos.",
    "Revise o documento para garantir que todos os termos técnicos estejam corretos e "
    "apropriados ao contexto.",
)


def generate_suggestions(text: str, problems: Sequence[DocumentProblem]) -> List[str]:
    """Return at least two suggestions based on problem kinds and document length."""
    by_kind = Counter(problem.kind for problem in problems)
    suggestions: List[str] = []

    if by_kind[ProblemKind.TERMINOLOGY] > 2:
        suggestions.append(TERMINOLOGY_SUGGESTION)
    if by_kind[ProblemKind.INVALID_CITATION]:
        suggestions.append(CITATION_SUGGESTION)
    if by_kind[ProblemKind.WRONG_ORDER]:
        suggestions.append(ORDER_SUGGESTION)

    if len(text) < SHORT_DOCUMENT_CHARS:
        suggestions.append(SHORT_SUGGESTION)
    elif len(text) > LONG_DOCUMENT_CHARS:
        suggestions.append(LONG_SUGGESTION)

    if len(suggestions) < 2:
        suggestions.extend(DEFAULT_SUGGESTIONS)

    return suggestions
