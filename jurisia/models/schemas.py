"""
Pydantic schemas for the analysis domain and request/response validation.

All models serialize with camelCase aliases (``startOffset``,
``improvementSuggestions`` …) so the JSON matches what the web client
expects, while Python code uses snake_case attribute names.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from enum import Enum


class CamelModel(BaseModel):
    """Base model: camelCase JSON, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    """Immutable snapshot; safe to cache and share between requests."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# Enums
class SectionKind(str, Enum):
    """Structural role of a document paragraph."""

    INTRODUCTION = "introduction"
    DEVELOPMENT = "development"
    CONCLUSION = "conclusion"
    ARGUMENTATION = "argumentation"
    CITATION = "citation"
    OTHER = "other"


class ProblemKind(str, Enum):
    """Category of a detected document problem."""

    INCONSISTENCY = "inconsistency"
    MISSING_SECTION = "missing_section"
    WRONG_ORDER = "wrong_order"
    INVALID_CITATION = "invalid_citation"
    TERMINOLOGY = "terminology"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Analysis domain
# ---------------------------------------------------------------------------

class DocumentSection(FrozenCamelModel):
    """A paragraph classified by the structure analyzer."""

    kind: SectionKind
    title: str
    start_offset: int = Field(..., ge=0)
    excerpt: str
    level: int = Field(1, ge=1)


class DocumentProblem(FrozenCamelModel):
    """A structural, terminological or citation problem."""

    kind: ProblemKind
    description: str
    location: int = Field(0, ge=0)
    suggestion: Optional[str] = None
    severity: Severity


class SummaryOutline(FrozenCamelModel):
    introduction: Optional[str] = None
    main_arguments: List[str] = []
    conclusion: Optional[str] = None


class DocumentSummary(FrozenCamelModel):
    overview: str
    key_points: List[str] = Field(default_factory=list, max_length=5)
    outline: SummaryOutline = SummaryOutline()


class DocumentStructure(FrozenCamelModel):
    sections: List[DocumentSection] = []
    problems: List[DocumentProblem] = []


class ContextualAnalysis(FrozenCamelModel):
    """Aggregate returned by the analysis endpoint."""

    structure: Optional[DocumentStructure] = None
    summary: Optional[DocumentSummary] = None
    improvement_suggestions: Optional[List[str]] = None
    # stage name → "ok" | "degraded" | "unavailable"
    stage_status: Dict[str, str] = {}


# ---------------------------------------------------------------------------
# Analysis endpoint
# ---------------------------------------------------------------------------

class AnalysisRequest(CamelModel):
    """Body of POST /api/documents/analysis."""

    document_text: str = Field(..., min_length=1)
    document_name: Optional[str] = None
    document_id: Optional[str] = None

    @field_validator("document_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("documentText must not be blank")
        return value


class DocumentHistoryResponse(CamelModel):
    id: int
    document_id: str
    kind: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ---------------------------------------------------------------------------
# Chat & conversations
# ---------------------------------------------------------------------------

class ChatHistoryItem(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ChatSendRequest(CamelModel):
    """Body of POST /api/chat/send."""

    message: str
    history: List[ChatHistoryItem] = []
    conversation_id: Optional[str] = None


class TokenUsageSchema(CamelModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class LegalReferencesSchema(CamelModel):
    laws: List[str] = []
    case_law: List[str] = []


class ChatSendResponse(CamelModel):
    state: str
    reply: str
    attempts: int
    conversation_id: Optional[str] = None
    failure_kind: Optional[str] = None
    status_history: List[str] = []
    model_id: Optional[str] = None
    token_usage: TokenUsageSchema = TokenUsageSchema()
    references: LegalReferencesSchema = LegalReferencesSchema()


class ConversationCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)


class ConversationResponse(CamelModel):
    id: str
    owner_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class MessageResponse(CamelModel):
    content: str
    role: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Jurisprudence
# ---------------------------------------------------------------------------

class JurisprudenceSearchRequest(CamelModel):
    theme: str = Field(..., min_length=1, max_length=200)
    term: Optional[str] = Field(None, max_length=200)
    limit: int = Field(5, ge=1, le=10)


class JurisprudenceEntrySchema(CamelModel):
    court: str
    number: str
    date: str
    summary: str
    url: Optional[str] = None
    relevance: int = 1


class JurisprudenceSearchResponse(CamelModel):
    theme: str
    answer: str
    model_id: str
    decisions: List[JurisprudenceEntrySchema] = []
    related_legislation: List[str] = []
    degraded: bool = False


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    llm: str
    analysis_mode: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
