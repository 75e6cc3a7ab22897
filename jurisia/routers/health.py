"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime
import logging

from jurisia.config import settings
from jurisia.database import get_db
from jurisia.dependencies.services import get_llm_service
from jurisia.models.schemas import HealthCheckResponse
from jurisia.services.llm_client import GroqLLMService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    llm: GroqLLMService = Depends(get_llm_service),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of the database and the LLM provider
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    # The provider is optional: without a key analysis runs on local heuristics
    llm_status = "configured" if llm.is_configured else "not_configured"
    analysis_mode = settings.resolved_analysis_mode() if llm.is_configured else "local"

    overall_status = "healthy" if db_status == "ok" and llm.is_configured else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        llm=llm_status,
        analysis_mode=analysis_mode,
        timestamp=datetime.utcnow(),
    )
