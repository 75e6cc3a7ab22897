"""Tests for legal reference extraction and the jurisprudence lookup."""
import pytest

from jurisia.services.jurisprudence import (
    CONTINGENCY_MODEL,
    JurisprudenceService,
    contingency_result,
    extract_legal_references,
    parse_decisions,
    parse_legislation,
    score_relevance,
)
from jurisia.services.llm_client import LLMRateLimitError


ANSWER = """\
Seguem as jurisprudências solicitadas.

JURISPRUDÊNCIA 1:
Tribunal: STJ
Número: REsp 1.737.412/SE
Data: 05/02/2019
Ementa: Dano moral coletivo. Dano moral decorrente de cobrança abusiva.
URL: https://www.stj.jus.br/exemplo

JURISPRUDÊNCIA 2:
Tribunal: TJSP
Número: Apelação 1000000-00.2020.8.26.0100
Data: 10/03/2021
Ementa: Repetição de indébito em dobro por cobrança indevida.

LEGISLAÇÃO RELACIONADA:
- Lei nº 8.078/90, art. 42
- Código Civil, art. 186
Prefira sempre fontes oficiais.
"""


def test_parse_decisions_reads_every_block():
    decisions = parse_decisions(ANSWER, term="dano moral")

    assert len(decisions) == 2
    first, second = decisions
    assert first.court == "STJ"
    assert first.number == "REsp 1.737.412/SE"
    assert first.date == "05/02/2019"
    assert first.url == "https://www.stj.jus.br/exemplo"
    assert first.summary.startswith("Dano moral coletivo.")
    assert first.relevance == 3
    assert second.url is None
    assert second.relevance == 1
    assert "LEGISLAÇÃO" not in second.summary


def test_missing_fields_are_marked():
    decisions = parse_decisions("JURISPRUDÊNCIA 1:\nEmenta: Texto da ementa.")
    assert decisions[0].court == "Não especificado"
    assert decisions[0].summary == "Texto da ementa."


def test_answer_without_blocks_has_no_decisions():
    assert parse_decisions("Não encontrei jurisprudência sobre o tema.") == []


def test_parse_legislation():
    assert parse_legislation(ANSWER) == ["Lei nº 8.078/90, art. 42", "Código Civil, art. 186"]
    assert parse_legislation("sem legislação") == []


@pytest.mark.parametrize(
    "summary, term, expected",
    [
        ("Qualquer texto", None, 1),
        ("Sobre contratos", "usucapião", 1),
        ("Trata de usucapião especial", "usucapião", 2),
        ("Usucapião especial urbana", "usucapião", 3),
        ("usucapião e mais usucapião", "usucapião", 3),
    ],
)
def test_score_relevance(summary, term, expected):
    assert score_relevance(summary, term) == expected


def test_contingency_result_is_deterministic():
    first = contingency_result("Dano moral", 5)
    second = contingency_result("dano moral", 5)

    assert first.degraded
    assert first.model_id == CONTINGENCY_MODEL
    assert len(first.decisions) == 3
    assert [d.number for d in first.decisions] == [d.number for d in second.decisions]
    assert [d.court for d in first.decisions] == ["STF", "STJ", "TRF-1"]
    assert len(contingency_result("Dano moral", 1).decisions) == 1


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_parses_and_caches(jurisprudence_cache, make_llm):
    llm = make_llm(reply=ANSWER)
    service = JurisprudenceService(cache=jurisprudence_cache, llm=llm)

    first = await service.search("Cobrança indevida", term="dano moral", limit=5)
    second = await service.search("cobrança indevida ", term="Dano Moral", limit=5)

    assert len(llm.calls) == 1
    assert first is second
    assert first.degraded is False
    assert len(first.decisions) == 2
    assert first.related_legislation == ("Lei nº 8.078/90, art. 42", "Código Civil, art. 186")
    assert "dano moral" in llm.calls[0]


@pytest.mark.asyncio
async def test_limit_is_part_of_the_cache_key(jurisprudence_cache, make_llm):
    llm = make_llm(reply=ANSWER)
    service = JurisprudenceService(cache=jurisprudence_cache, llm=llm)

    limited = await service.search("Cobrança indevida", limit=1)
    await service.search("Cobrança indevida", limit=5)

    assert len(llm.calls) == 2
    assert len(limited.decisions) == 1


@pytest.mark.asyncio
async def test_provider_failure_returns_uncached_contingency(jurisprudence_cache, make_llm):
    llm = make_llm(fail_always=LLMRateLimitError("slow down", 429))
    service = JurisprudenceService(cache=jurisprudence_cache, llm=llm)

    first = await service.search("Usucapião")
    second = await service.search("Usucapião")

    assert first.degraded and second.degraded
    assert len(llm.calls) == 2
    assert first == second


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------

def test_extract_legal_references():
    text = (
        "Nos termos do art. 5º da CF e do artigo 927 do CC, bem como da Lei nº 8.078/90, "
        "aplica-se a Súmula 37 do STJ. Ver REsp 1.234.567/SP e, novamente, a Lei nº 8.078/90."
    )
    refs = extract_legal_references(text)

    assert refs.laws == ("art. 5º da CF", "artigo 927 do CC", "Lei nº 8.078/90")
    assert refs.case_law == ("Súmula 37 do STJ", "REsp 1.234.567/SP")


def test_extract_legal_references_from_empty_text():
    refs = extract_legal_references("")
    assert refs.laws == () and refs.case_law == ()
