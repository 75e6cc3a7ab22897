"""Tests for the local problem detectors."""
from jurisia.models.schemas import DocumentSection, ProblemKind, SectionKind, Severity
from jurisia.services.problem_detectors import (
    OrderState,
    detect_citations,
    detect_missing_sections,
    detect_problems,
    detect_terminology,
    detect_wrong_order,
    order_step,
)
from jurisia.services.structure_analyzer import analyze_sections


def _section(kind: SectionKind, offset: int, title: str = "SEÇÃO") -> DocumentSection:
    return DocumentSection(kind=kind, title=title, start_offset=offset, excerpt=title, level=1)


# ---------------------------------------------------------------------------
# Missing sections
# ---------------------------------------------------------------------------

NO_CONCLUSION = (
    "INTRODUÇÃO\n\n"
    "esta petição trata de cobrança indevida.\n\n"
    "DESENVOLVIMENTO\n\n"
    "o requerido cobrou valores já pagos pelo consumidor."
)


def test_missing_conclusion_is_reported_at_the_end():
    sections = analyze_sections(NO_CONCLUSION)
    problems = detect_missing_sections(NO_CONCLUSION, sections, completeness=True)

    assert len(problems) == 1
    problem = problems[0]
    assert problem.kind is ProblemKind.MISSING_SECTION
    assert problem.severity is Severity.HIGH
    assert problem.location == len(NO_CONCLUSION) - 1
    assert "conclusão" in problem.description


def test_basic_variant_is_medium_and_ignores_development():
    sections = [_section(SectionKind.INTRODUCTION, 0), _section(SectionKind.CONCLUSION, 50)]
    assert detect_missing_sections("x" * 100, sections) == []

    problems = detect_missing_sections("x" * 100, [])
    assert [p.location for p in problems] == [0, 99]
    assert all(p.severity is Severity.MEDIUM for p in problems)


def test_completeness_variant_places_development_at_one_third():
    problems = detect_missing_sections("x" * 90, [], completeness=True)
    assert [p.location for p in problems] == [0, 30, 89]


def test_missing_sections_on_empty_text():
    problems = detect_missing_sections("", [], completeness=True)
    assert [p.location for p in problems] == [0, 0, 0]


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

def test_in_order_sections_produce_no_problem():
    sections = [
        _section(SectionKind.INTRODUCTION, 0),
        _section(SectionKind.CITATION, 10),
        _section(SectionKind.DEVELOPMENT, 20),
        _section(SectionKind.CONCLUSION, 30),
    ]
    assert detect_wrong_order(sections) == []


def test_conclusion_before_introduction():
    sections = [
        _section(SectionKind.CONCLUSION, 0, "CONCLUSÃO"),
        _section(SectionKind.INTRODUCTION, 40, "INTRODUÇÃO"),
    ]
    problems = detect_wrong_order(sections)

    assert len(problems) == 1
    assert problems[0].kind is ProblemKind.WRONG_ORDER
    assert problems[0].location == 40
    assert problems[0].severity is Severity.MEDIUM
    assert "INTRODUÇÃO" in problems[0].description
    assert problems[0].suggestion == "Considere mover esta seção para depois da seção de conclusão"


def test_every_backward_transition_is_reported():
    sections = [
        _section(SectionKind.CONCLUSION, 0),
        _section(SectionKind.DEVELOPMENT, 10),
        _section(SectionKind.INTRODUCTION, 20),
    ]
    assert [p.location for p in detect_wrong_order(sections)] == [10, 20]


def test_order_step_ignores_non_canonical_kinds():
    state = OrderState(last_kind=SectionKind.CONCLUSION)
    assert order_step(state, _section(SectionKind.OTHER, 5)) is state
    assert order_step(state, _section(SectionKind.CITATION, 5)) is state


# ---------------------------------------------------------------------------
# Terminology
# ---------------------------------------------------------------------------

MIXED_TERMS = (
    "O autor celebrou contrato. O autor pagou as parcelas. "
    "O autor foi surpreendido com a cobrança. O requerente pede indenização."
)


def test_minority_term_is_flagged_against_the_dominant_one():
    problems = detect_terminology(MIXED_TERMS)

    assert len(problems) == 1
    problem = problems[0]
    assert problem.kind is ProblemKind.TERMINOLOGY
    assert problem.severity is Severity.LOW
    assert problem.location == MIXED_TERMS.index("requerente")
    assert '"requerente"' in problem.description
    assert problem.suggestion == 'Padronize o uso para "autor" em todo o documento'


def test_terms_match_whole_words_only():
    assert detect_terminology("O autorizado requer o registro do requerimento.") == []


def test_tie_keeps_declared_group_order():
    problems = detect_terminology("O juiz e o magistrado.")
    assert len(problems) == 1
    assert "magistrado" in problems[0].description
    assert problems[0].suggestion.endswith('"juiz" em todo o documento')


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------

def test_quote_without_source_is_high_severity():
    text = 'Diz a doutrina: "a boa-fé objetiva é princípio geral" sem mais.'
    problems = detect_citations(text)

    assert len(problems) == 1
    assert problems[0].severity is Severity.HIGH
    assert problems[0].location == text.index('"')


def test_quote_followed_by_reference_is_accepted():
    text = '"a boa-fé objetiva é princípio geral" (TARTUCE, 2020, p. 45).'
    assert detect_citations(text) == []


def test_short_quote_is_ignored():
    assert detect_citations('O termo "mora" aparece.') == []


def test_unnumbered_provision_is_medium_severity():
    text = "Conforme a lei aplicável ao caso."
    problems = detect_citations(text)

    assert len(problems) == 1
    assert problems[0].severity is Severity.MEDIUM
    assert problems[0].location == text.index("lei")


def test_numbered_provisions_are_accepted():
    assert detect_citations("Nos termos da Lei 8.078, artigo 42, e da Lei nº 10.406.") == []


def test_abbreviated_number_marker_is_accepted():
    assert detect_citations("Aplica-se a Lei n.º 8.078/90 e o Decreto n. 2.181/97.") == []


def test_consecutive_referenced_quotes_are_accepted():
    text = (
        'Diz a corte: "a boa-fé objetiva rege os contratos" (STJ, REsp 1.000) e ainda: '
        '"o dano moral dispensa prova do prejuízo" (STF, RE 2.000).'
    )
    assert detect_citations(text) == []


def test_only_the_unreferenced_quote_is_flagged():
    text = (
        '"a boa-fé objetiva rege os contratos" (STJ, REsp 1.000). Depois: '
        '"o dano moral dispensa prova do prejuízo" sem fonte.'
    )
    problems = detect_citations(text)

    assert len(problems) == 1
    assert problems[0].location == text.index('"o dano')


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------

def test_detect_problems_is_deterministic():
    text = NO_CONCLUSION + "\n\n" + MIXED_TERMS
    sections = analyze_sections(text)
    assert detect_problems(text, sections) == detect_problems(text, sections)


def test_detect_problems_combines_detectors():
    text = NO_CONCLUSION + "\n\n" + MIXED_TERMS
    kinds = {p.kind for p in detect_problems(text, analyze_sections(text))}
    assert kinds == {ProblemKind.MISSING_SECTION, ProblemKind.TERMINOLOGY}
