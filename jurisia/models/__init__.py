"""Database and schema models for JurisIA."""
from jurisia.models.database_models import (
    Conversation,
    DocumentHistory,
    Message,
    MessageRole,
)
from jurisia.models.schemas import (
    AnalysisRequest,
    ContextualAnalysis,
    DocumentProblem,
    DocumentSection,
    DocumentStructure,
    DocumentSummary,
    HealthCheckResponse,
    ProblemKind,
    SectionKind,
    Severity,
    SummaryOutline,
)

__all__ = [
    # Database models
    "Conversation",
    "DocumentHistory",
    "Message",
    "MessageRole",
    # Pydantic schemas
    "AnalysisRequest",
    "ContextualAnalysis",
    "DocumentProblem",
    "DocumentSection",
    "DocumentStructure",
    "DocumentSummary",
    "HealthCheckResponse",
    "ProblemKind",
    "SectionKind",
    "Severity",
    "SummaryOutline",
]
