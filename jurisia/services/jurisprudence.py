"""
Legal reference extraction and jurisprudence lookup.

``extract_legal_references`` pulls statute and court-decision citations out
of free text (used to annotate chat replies).  ``JurisprudenceService``
asks the text-completion service for decisions on a theme, parses the fixed
block format it is prompted with, and caches the result for a day.  When the
provider fails a deterministic contingency result is returned instead,
marked ``degraded=True`` and never cached.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from typing import List, Optional, Tuple

from jurisia.services.llm_client import LLMServiceError, TokenUsage
from jurisia.services.response_cache import ResponseCache
from jurisia.utils.helpers import generate_hash

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Legal reference extraction
# ---------------------------------------------------------------------------

_CODES = r"(?:CF|CPC|CC|CDC|CLT|CTN|CP|CPP|ECA|Constituição\s+Federal)"

_LAW_RE = re.compile(
    r"\b(?:Lei(?:\s+Complementar)?|Decreto(?:-Lei)?|Medida\s+Provisória)"
    r"\s+(?:n\.?\s*[º°o]?\.?\s*)?\d[\d.]*(?:/\d{2,4})?"
    r"|\bart(?:igo)?s?\.?\s*\d+[º°]?(?:\s+d[ao]\s+" + _CODES + r")?",
    re.IGNORECASE,
)
_CASE_LAW_RE = re.compile(
    r"\b(?:REsp|RE|AgRg|AgInt|HC|MS|ADI|ADPF|ARE|RHC|EDcl)\s+(?:n\.?\s*[º°o]?\.?\s*)?\d[\d.]*(?:/[A-Z]{2})?"
    r"|\bSúmula(?:\s+Vinculante)?\s+(?:n\.?\s*[º°o]?\.?\s*)?\d+(?:\s+do\s+(?:STF|STJ|TST))?",
)


@dataclasses.dataclass(frozen=True)
class LegalReferences:
    laws: Tuple[str, ...] = ()
    case_law: Tuple[str, ...] = ()


def _unique_matches(pattern: re.Pattern, text: str) -> Tuple[str, ...]:
    seen = []
    for match in pattern.finditer(text):
        value = " ".join(match.group(0).split())
        if value not in seen:
            seen.append(value)
    return tuple(seen)


def extract_legal_references(text: str) -> LegalReferences:
    """Statutes/articles and court decisions cited in ``text``, in order of appearance."""
    if not text:
        return LegalReferences()
    return LegalReferences(
        laws=_unique_matches(_LAW_RE, text),
        case_law=_unique_matches(_CASE_LAW_RE, text),
    )


# ---------------------------------------------------------------------------
# Jurisprudence lookup
# ---------------------------------------------------------------------------

_SEARCH_PROMPT = """\
Localize {limit} jurisprudências relevantes sobre o tema "{theme}"{term_clause}.
Responda com jurisprudências recentes e relevantes no seguinte formato:

JURISPRUDÊNCIA 1:
Tribunal: [nome do tribunal]
Número: [número do processo/acórdão]
Data: [data do julgamento]
Ementa: [texto resumido da ementa]
URL: [link para o documento, se disponível]

JURISPRUDÊNCIA 2:
...

Além disso, indique a legislação aplicável ao tema, citando os artigos específicos.

LEGISLAÇÃO RELACIONADA:
- [citação da lei/artigo 1]
- [citação da lei/artigo 2]

Prefira decisões de tribunais superiores (STF, STJ) ou que tenham estabelecido precedentes importantes.\
"""

_BLOCK_SPLIT_RE = re.compile(r"JURISPRUD[ÊE]NCIA\s+\d+\s*:", re.IGNORECASE)
_LEGISLATION_RE = re.compile(r"LEGISLA[ÇC][ÃA]O\s+RELACIONADA[:\s]*\n(.*)", re.IGNORECASE | re.DOTALL)
_SUMMARY_RE = re.compile(
    r"Ementa:\s*(.+?)(?=\n\s*(?:URL:|LEGISLA[ÇC][ÃA]O)|\Z)", re.IGNORECASE | re.DOTALL
)

NOT_SPECIFIED = "Não especificado"
CONTINGENCY_MODEL = "contingência"
CONTINGENCY_COURTS = ("STF", "STJ", "TRF-1", "TJSP", "TST")
CONTINGENCY_ENTRIES = 3


@dataclasses.dataclass(frozen=True)
class JurisprudenceEntry:
    court: str
    number: str
    date: str
    summary: str
    url: Optional[str] = None
    relevance: int = 1


@dataclasses.dataclass(frozen=True)
class JurisprudenceResult:
    theme: str
    answer: str
    model_id: str
    decisions: Tuple[JurisprudenceEntry, ...] = ()
    related_legislation: Tuple[str, ...] = ()
    token_usage: TokenUsage = TokenUsage()
    degraded: bool = False


def score_relevance(summary: str, term: Optional[str]) -> int:
    """1 = term absent, 2 = present once, 3 = repeated or leading the summary."""
    if not term:
        return 1
    haystack = summary.lower()
    needle = term.lower()
    if needle not in haystack:
        return 1
    if haystack.count(needle) > 1 or haystack.startswith(needle):
        return 3
    return 2


def _field(block: str, label: str) -> Optional[str]:
    match = re.search(rf"{label}:\s*([^\n]+)", block, re.IGNORECASE)
    return match.group(1).strip() if match else None


def parse_decisions(answer: str, term: Optional[str] = None) -> List[JurisprudenceEntry]:
    """Parse ``JURISPRUDÊNCIA n:`` blocks; text before the first block is ignored."""
    legislation_start = _LEGISLATION_RE.search(answer)
    body = answer[:legislation_start.start()] if legislation_start else answer

    entries: List[JurisprudenceEntry] = []
    for block in _BLOCK_SPLIT_RE.split(body)[1:]:
        if not block.strip():
            continue
        summary_match = _SUMMARY_RE.search(block)
        summary = " ".join(summary_match.group(1).split()) if summary_match else "Não disponível"
        entries.append(
            JurisprudenceEntry(
                court=_field(block, "Tribunal") or NOT_SPECIFIED,
                number=_field(block, "N[úu]mero") or NOT_SPECIFIED,
                date=_field(block, "Data") or NOT_SPECIFIED,
                summary=summary,
                url=_field(block, "URL"),
                relevance=score_relevance(summary, term),
            )
        )
    return entries


def parse_legislation(answer: str) -> List[str]:
    match = _LEGISLATION_RE.search(answer)
    if not match:
        return []
    items = []
    for line in match.group(1).splitlines():
        line = line.strip()
        if line.startswith("-") or re.match(r"^\d+\.", line):
            cleaned = re.sub(r"^(?:-|\d+\.)\s*", "", line).strip()
            if cleaned:
                items.append(cleaned)
    return items


def contingency_result(theme: str, limit: int = CONTINGENCY_ENTRIES) -> JurisprudenceResult:
    """Deterministic placeholder used while the provider is unavailable."""
    tag = generate_hash(theme.lower())[:6].upper()
    decisions = tuple(
        JurisprudenceEntry(
            court=CONTINGENCY_COURTS[index % len(CONTINGENCY_COURTS)],
            number=f"CONTINGENCIA-{tag}-{index + 1}",
            date="Não disponível",
            summary=(
                f'Ementa indisponível para o tema "{theme}". Resultado gerado em modo de '
                "contingência porque o serviço principal não está disponível."
            ),
        )
        for index in range(min(CONTINGENCY_ENTRIES, limit))
    )
    answer = (
        f"# Jurisprudências para {theme} (MODO CONTINGÊNCIA)\n\n"
        "NOTA: Este resultado é simulado porque o serviço principal está temporariamente indisponível.\n\n"
        + "\n\n".join(f"## {d.court} - {d.number}\nData: {d.date}\n\n{d.summary}" for d in decisions)
    )
    return JurisprudenceResult(
        theme=theme,
        answer=answer,
        model_id=CONTINGENCY_MODEL,
        decisions=decisions,
        related_legislation=("(Sugestões de legislação temporariamente indisponíveis)",),
        degraded=True,
    )


class JurisprudenceService:
    """
    Args:
        cache: ``ResponseCache`` for lookups (one-day TTL in production).
        llm:   Text-completion service exposing ``complete``.
    """

    def __init__(self, cache: ResponseCache, llm) -> None:
        self.cache = cache
        self.llm = llm

    @staticmethod
    def cache_key(theme: str, term: Optional[str], limit: int) -> str:
        return f"jurisprudence:{theme.strip().lower()}:{(term or '').strip().lower()}:{limit}"

    async def search(self, theme: str, term: Optional[str] = None, limit: int = 5) -> JurisprudenceResult:
        key = self.cache_key(theme, term, limit)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Jurisprudence cache hit for theme '%s'", theme)
            return cached

        term_clause = f' relacionadas especificamente ao termo "{term}"' if term else ""
        prompt = _SEARCH_PROMPT.format(limit=limit, theme=theme, term_clause=term_clause)

        try:
            completion = await self.llm.complete(prompt)
        except LLMServiceError as exc:
            logger.warning("Jurisprudence lookup for '%s' degraded: %s", theme, exc)
            return contingency_result(theme, limit)

        result = JurisprudenceResult(
            theme=theme,
            answer=completion.text,
            model_id=completion.model_id,
            decisions=tuple(parse_decisions(completion.text, term)[:limit]),
            related_legislation=tuple(parse_legislation(completion.text)),
            token_usage=completion.token_usage,
        )
        self.cache.set(key, result)
        logger.info("Jurisprudence lookup for '%s': %d decisions", theme, len(result.decisions))
        return result
