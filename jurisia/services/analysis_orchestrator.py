"""
Contextual analysis pipeline.

Stages (each cache-checked independently)::

    view ──► sections ─┐
         └─► summary  ─┴─► problems(sections) ──► suggestions(problems)

In ``llm`` mode every stage asks the text-completion service for JSON and
falls back to the local heuristic when the call or its payload fails
(``Degraded``).  In ``local`` mode the heuristics are the primary source
(``Ok``).  Unexpected exceptions make a stage ``Unavailable`` and its slot
is rendered empty; ``analyze`` itself never raises.

Public API
----------
ContextualAnalysisOrchestrator.analyze(document_text, document_id, document_name)
    -> ContextualAnalysis
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from jurisia.config import settings
from jurisia.models.schemas import (
    ContextualAnalysis,
    DocumentProblem,
    DocumentSection,
    DocumentStructure,
    DocumentSummary,
    ProblemKind,
    SectionKind,
    Severity,
    SummaryOutline,
)
from jurisia.services.llm_client import LLMResponseError, LLMServiceError
from jurisia.services.problem_detectors import detect_problems
from jurisia.services.response_cache import ResponseCache, make_fingerprint
from jurisia.services.segmenter import build_analysis_view
from jurisia.services.stage_result import Degraded, Ok, StageResult, Unavailable, render
from jurisia.services.structure_analyzer import EXCERPT_CHARS, analyze_sections
from jurisia.services.suggestions import generate_suggestions
from jurisia.services.summarizer import summarize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SECTIONS_PROMPT = """\
Analise o documento jurídico a seguir e identifique todas as seções estruturais presentes.

Para cada seção, determine:
1. kind: introduction, development, conclusion, argumentation, citation ou other
2. title: um título descritivo baseado no conteúdo
3. startOffset: o índice aproximado onde a seção começa (caracteres desde o início)
4. excerpt: um trecho representativo do conteúdo (até 300 caracteres)
5. level: o nível hierárquico (1 para seções principais, 2 para subseções)

Documento:
\"\"\"
{document}
\"\"\"

Retorne APENAS um objeto JSON no formato:
{{"sections": [{{"kind": "...", "title": "...", "startOffset": 0, "excerpt": "...", "level": 1}}]}}\
"""

_SUMMARY_PROMPT = """\
Gere um resumo completo do documento jurídico a seguir, contendo:
1. overview: um resumo geral (até 500 caracteres)
2. keyPoints: os pontos principais abordados (3 a 5 pontos)
3. outline: introdução, argumentos principais e conclusão

Documento:
\"\"\"
{document}
\"\"\"

Retorne APENAS um objeto JSON no formato:
{{"overview": "...", "keyPoints": ["..."], "outline": {{"introduction": "...", "mainArguments": ["..."], "conclusion": "..."}}}}\
"""

_PROBLEMS_PROMPT = """\
Analise o documento jurídico a seguir e identifique problemas estruturais, lógicos e de conteúdo.

Seções já identificadas:
{sections}

Para cada problema, determine:
1. kind: inconsistency, missing_section, wrong_order, invalid_citation ou terminology
2. description: descrição clara do problema
3. location: posição aproximada no texto (caracteres desde o início)
4. suggestion: como corrigir o problema
5. severity: high, medium ou low

Considere especialmente inconsistências na argumentação, seções essenciais ausentes,
problemas de ordem, citações incompletas e uso inconsistente de terminologia jurídica.

Documento:
\"\"\"
{document}
\"\"\"

Retorne APENAS um objeto JSON no formato:
{{"problems": [{{"kind": "...", "description": "...", "location": 0, "suggestion": "...", "severity": "..."}}]}}\
"""

_SUGGESTIONS_PROMPT = """\
Com base no documento jurídico a seguir e nos problemas já identificados, forneça de 3 a 5
sugestões concretas e acionáveis para aprimorá-lo (estrutura, argumentação, clareza,
coerência e precisão jurídica), sem repetir os problemas listados.

Problemas identificados:
{problems}

Documento:
\"\"\"
{document}
\"\"\"

Retorne APENAS um objeto JSON no formato:
{{"suggestions": ["..."]}}\
"""


# ---------------------------------------------------------------------------
# Payload coercion (LLM JSON → domain models)
# ---------------------------------------------------------------------------

_SECTION_KIND_ALIASES: Dict[str, SectionKind] = {
    "introducao": SectionKind.INTRODUCTION,
    "introdução": SectionKind.INTRODUCTION,
    "desenvolvimento": SectionKind.DEVELOPMENT,
    "conclusao": SectionKind.CONCLUSION,
    "conclusão": SectionKind.CONCLUSION,
    "argumentacao": SectionKind.ARGUMENTATION,
    "argumentação": SectionKind.ARGUMENTATION,
    "citacao": SectionKind.CITATION,
    "citação": SectionKind.CITATION,
    "outro": SectionKind.OTHER,
}
_PROBLEM_KIND_ALIASES: Dict[str, ProblemKind] = {
    "inconsistencia": ProblemKind.INCONSISTENCY,
    "inconsistência": ProblemKind.INCONSISTENCY,
    "falta_secao": ProblemKind.MISSING_SECTION,
    "ordem_incorreta": ProblemKind.WRONG_ORDER,
    "citacao_invalida": ProblemKind.INVALID_CITATION,
    "terminologia": ProblemKind.TERMINOLOGY,
}
_SEVERITY_ALIASES: Dict[str, Severity] = {
    "alta": Severity.HIGH,
    "media": Severity.MEDIUM,
    "média": Severity.MEDIUM,
    "baixa": Severity.LOW,
}


def _enum_value(raw: Any, enum_cls, aliases: Dict[str, Any], default):
    key = str(raw or "").strip().lower()
    try:
        return enum_cls(key)
    except ValueError:
        return aliases.get(key, default)


def _items(payload: Any, key: str) -> List[Any]:
    if isinstance(payload, dict):
        payload = payload.get(key)
    if not isinstance(payload, list):
        raise LLMResponseError(f"Expected a list under '{key}'")
    return payload


def coerce_sections(payload: Any) -> List[DocumentSection]:
    try:
        sections = [
            DocumentSection(
                kind=_enum_value(item.get("kind"), SectionKind, _SECTION_KIND_ALIASES, SectionKind.OTHER),
                title=str(item.get("title") or "").strip(),
                start_offset=max(0, int(item.get("startOffset") or 0)),
                excerpt=str(item.get("excerpt") or "")[:EXCERPT_CHARS],
                level=max(1, int(item.get("level") or 1)),
            )
            for item in _items(payload, "sections")
        ]
    except (AttributeError, TypeError, ValueError, ValidationError) as exc:
        raise LLMResponseError(f"Invalid sections payload: {exc}") from exc
    # Offsets from the model are approximate; keep them non-decreasing
    return sorted(sections, key=lambda section: section.start_offset)


def coerce_problems(payload: Any) -> List[DocumentProblem]:
    try:
        return [
            DocumentProblem(
                kind=_enum_value(item.get("kind"), ProblemKind, _PROBLEM_KIND_ALIASES, ProblemKind.INCONSISTENCY),
                description=str(item.get("description") or "").strip(),
                location=max(0, int(item.get("location") or 0)),
                suggestion=item.get("suggestion") or None,
                severity=_enum_value(item.get("severity"), Severity, _SEVERITY_ALIASES, Severity.MEDIUM),
            )
            for item in _items(payload, "problems")
        ]
    except (AttributeError, TypeError, ValueError, ValidationError) as exc:
        raise LLMResponseError(f"Invalid problems payload: {exc}") from exc


def coerce_summary(payload: Any) -> DocumentSummary:
    if not isinstance(payload, dict) or not payload.get("overview"):
        raise LLMResponseError("Summary payload has no overview")
    outline = payload.get("outline") or {}
    try:
        return DocumentSummary(
            overview=str(payload["overview"]),
            key_points=[str(point) for point in (payload.get("keyPoints") or [])][:5],
            outline=SummaryOutline(
                introduction=outline.get("introduction"),
                main_arguments=[str(arg) for arg in (outline.get("mainArguments") or [])],
                conclusion=outline.get("conclusion"),
            ),
        )
    except (AttributeError, TypeError, ValidationError) as exc:
        raise LLMResponseError(f"Invalid summary payload: {exc}") from exc


def coerce_suggestions(payload: Any) -> List[str]:
    suggestions = [str(item).strip() for item in _items(payload, "suggestions") if str(item).strip()]
    if not suggestions:
        raise LLMResponseError("Suggestions payload is empty")
    return suggestions


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ContextualAnalysisOrchestrator:
    """
    Args:
        cache:          Shared ``ResponseCache`` for stage results.
        llm:            Text-completion service (``GroqLLMService``-like).
        history_store:  Object with ``append_analysis_history`` (optional).
        mode:           "llm" | "local"; defaults to the resolved setting.
                        Without an ``llm`` the mode is always "local".
    """

    STAGES = ("sections", "summary", "problems", "suggestions")

    def __init__(
        self,
        cache: ResponseCache,
        llm: Optional[Any] = None,
        history_store: Optional[Any] = None,
        mode: Optional[str] = None,
        analysis_max_chars: Optional[int] = None,
        segment_max_chars: Optional[int] = None,
        prefix_chars: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.llm = llm
        self.history_store = history_store
        resolved = (mode or settings.resolved_analysis_mode()).lower()
        self.mode = resolved if llm is not None else "local"
        self.analysis_max_chars = (
            settings.ANALYSIS_MAX_CHARS if analysis_max_chars is None else analysis_max_chars
        )
        self.segment_max_chars = (
            settings.SEGMENT_MAX_CHARS if segment_max_chars is None else segment_max_chars
        )
        self.prefix_chars = settings.CACHE_KEY_PREFIX_CHARS if prefix_chars is None else prefix_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze(
        self,
        document_text: str,
        document_id: Optional[str] = None,
        document_name: Optional[str] = None,
    ) -> ContextualAnalysis:
        """Run the full pipeline; never raises."""
        try:
            analysis = await self._run_pipeline(document_text, document_id)
        except Exception as exc:
            logger.exception("Analysis pipeline failed for document %s", document_id)
            analysis = ContextualAnalysis(
                improvement_suggestions=[],
                stage_status={stage: Unavailable(str(exc)).status.value for stage in self.STAGES},
            )

        if document_id and self.history_store is not None:
            await self._record_history(document_id, document_name, analysis)

        return analysis

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(self, document_text: str, document_id: Optional[str]) -> ContextualAnalysis:
        view = build_analysis_view(document_text, self.analysis_max_chars, self.segment_max_chars)

        sections_result, summary_result = await asyncio.gather(
            self._run_stage(
                "sections", view, document_id,
                remote=lambda: self._sections_remote(view),
                local=lambda: analyze_sections(view),
            ),
            self._run_stage(
                "summary", view, document_id,
                remote=lambda: self._summary_remote(view),
                local=lambda: summarize(view),
            ),
        )
        sections = render(sections_result, [])

        problems_result = await self._run_stage(
            "problems", view, document_id,
            remote=lambda: self._problems_remote(view, sections),
            local=lambda: detect_problems(view, sections),
        )
        problems = render(problems_result, [])

        suggestions_result = await self._run_stage(
            "suggestions", view, document_id,
            remote=lambda: self._suggestions_remote(view, problems),
            local=lambda: generate_suggestions(view, problems),
        )

        results = {
            "sections": sections_result,
            "summary": summary_result,
            "problems": problems_result,
            "suggestions": suggestions_result,
        }
        structure = None
        if not (isinstance(sections_result, Unavailable) and isinstance(problems_result, Unavailable)):
            structure = DocumentStructure(sections=sections, problems=problems)

        return ContextualAnalysis(
            structure=structure,
            summary=render(summary_result, None),
            improvement_suggestions=render(suggestions_result, []),
            stage_status={name: result.status.value for name, result in results.items()},
        )

    async def _run_stage(
        self,
        name: str,
        view: str,
        document_id: Optional[str],
        remote: Callable[[], Awaitable[Any]],
        local: Callable[[], Any],
    ) -> StageResult:
        key = make_fingerprint(name, view, document_id, self.prefix_chars)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Stage '%s' served from cache", name)
            return Ok(cached)

        try:
            if self.mode == "llm":
                try:
                    value = await remote()
                except LLMServiceError as exc:
                    logger.warning("Stage '%s' falling back to local heuristics: %s", name, exc)
                    return Degraded(local(), reason=str(exc))
            else:
                value = local()
        except Exception as exc:
            logger.exception("Stage '%s' unavailable", name)
            return Unavailable(reason=str(exc))

        self.cache.set(key, value)
        return Ok(value)

    # ------------------------------------------------------------------
    # Remote stage implementations
    # ------------------------------------------------------------------

    async def _sections_remote(self, view: str) -> List[DocumentSection]:
        payload = await self.llm.complete_json(_SECTIONS_PROMPT.format(document=view))
        return coerce_sections(payload)

    async def _summary_remote(self, view: str) -> DocumentSummary:
        payload = await self.llm.complete_json(_SUMMARY_PROMPT.format(document=view))
        return coerce_summary(payload)

    async def _problems_remote(self, view: str, sections: List[DocumentSection]) -> List[DocumentProblem]:
        sections_json = json.dumps(
            [s.model_dump(mode="json", by_alias=True) for s in sections], ensure_ascii=False
        )
        payload = await self.llm.complete_json(
            _PROBLEMS_PROMPT.format(document=view, sections=sections_json)
        )
        return coerce_problems(payload)

    async def _suggestions_remote(self, view: str, problems: List[DocumentProblem]) -> List[str]:
        problems_json = json.dumps(
            [p.model_dump(mode="json", by_alias=True) for p in problems], ensure_ascii=False
        )
        payload = await self.llm.complete_json(
            _SUGGESTIONS_PROMPT.format(document=view, problems=problems_json)
        )
        return coerce_suggestions(payload)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def _record_history(
        self,
        document_id: str,
        document_name: Optional[str],
        analysis: ContextualAnalysis,
    ) -> None:
        payload = {
            "kind": "analysis",
            "document_name": document_name,
            "analysis": analysis.model_dump(mode="json", by_alias=True),
        }
        try:
            await self.history_store.append_analysis_history(document_id, payload)
        except Exception as exc:
            logger.error("Failed to store analysis history for document %s: %s", document_id, exc)
