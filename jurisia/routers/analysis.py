"""
Document analysis endpoints.

Route summary
-------------
POST /api/documents/analysis                 - contextual analysis of a document
GET  /api/documents/{document_id}/history    - stored analyses for a document
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from jurisia.dependencies.services import get_analysis_orchestrator, get_conversation_store
from jurisia.models.schemas import AnalysisRequest, ContextualAnalysis, DocumentHistoryResponse
from jurisia.services.analysis_orchestrator import ContextualAnalysisOrchestrator
from jurisia.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analysis", response_model=ContextualAnalysis, response_model_by_alias=True)
async def analyze_document(
    request: AnalysisRequest,
    orchestrator: ContextualAnalysisOrchestrator = Depends(get_analysis_orchestrator),
):
    """
    Analyze a document's structure, summary and improvement points.

    Always answers 200 with a best-effort result; ``stageStatus`` marks the
    stages that fell back to heuristics (``degraded``) or produced nothing
    (``unavailable``).
    """
    logger.info(
        "Analysis requested: document_id=%s chars=%d mode=%s",
        request.document_id,
        len(request.document_text),
        orchestrator.mode,
    )
    return await orchestrator.analyze(
        request.document_text,
        document_id=request.document_id,
        document_name=request.document_name,
    )


@router.get(
    "/{document_id}/history",
    response_model=List[DocumentHistoryResponse],
    response_model_by_alias=True,
)
async def document_history(
    document_id: str,
    limit: int = Query(10, ge=1, le=100),
    store: ConversationStore = Depends(get_conversation_store),
):
    """Most recent analyses stored for ``document_id``."""
    entries = await store.load_analysis_history(document_id, limit=limit)
    return [DocumentHistoryResponse.model_validate(entry) for entry in entries]
