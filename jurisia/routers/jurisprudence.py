"""
Jurisprudence lookup endpoint.

POST /api/jurisprudence/search - decisions and related legislation for a theme
"""
import logging

from fastapi import APIRouter, Depends

from jurisia.dependencies.services import get_jurisprudence_service
from jurisia.models.schemas import (
    JurisprudenceEntrySchema,
    JurisprudenceSearchRequest,
    JurisprudenceSearchResponse,
)
from jurisia.services.jurisprudence import JurisprudenceService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search", response_model=JurisprudenceSearchResponse, response_model_by_alias=True)
async def search_jurisprudence(
    request: JurisprudenceSearchRequest,
    service: JurisprudenceService = Depends(get_jurisprudence_service),
):
    result = await service.search(request.theme, term=request.term, limit=request.limit)
    return JurisprudenceSearchResponse(
        theme=result.theme,
        answer=result.answer,
        model_id=result.model_id,
        decisions=[
            JurisprudenceEntrySchema(
                court=entry.court,
                number=entry.number,
                date=entry.date,
                summary=entry.summary,
                url=entry.url,
                relevance=entry.relevance,
            )
            for entry in result.decisions
        ],
        related_legislation=list(result.related_legislation),
        degraded=result.degraded,
    )
