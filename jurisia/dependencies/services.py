"""
Service providers for FastAPI routes.

Process-wide objects (the two caches and the LLM client) are built once in
the application lifespan and kept on ``app.state``; the providers below only
look them up.  Tests swap any of them through ``app.dependency_overrides``.
"""
from __future__ import annotations

import logging

from fastapi import Depends, Request

from jurisia.config import settings
from jurisia.database import AsyncSessionLocal
from jurisia.services.analysis_orchestrator import ContextualAnalysisOrchestrator
from jurisia.services.chat_service import ChatSendOrchestrator
from jurisia.services.conversation_store import ConversationStore
from jurisia.services.jurisprudence import JurisprudenceService
from jurisia.services.llm_client import GroqLLMService
from jurisia.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Builders (called from the lifespan)
# ---------------------------------------------------------------------------

def build_analysis_cache() -> ResponseCache:
    return ResponseCache(
        "analysis",
        default_ttl=settings.ANALYSIS_CACHE_TTL,
        check_period=settings.ANALYSIS_CACHE_CHECK_PERIOD,
    )


def build_jurisprudence_cache() -> ResponseCache:
    return ResponseCache(
        "jurisprudence",
        default_ttl=settings.JURISPRUDENCE_CACHE_TTL,
        check_period=settings.JURISPRUDENCE_CACHE_CHECK_PERIOD,
    )


def build_llm_service() -> GroqLLMService:
    return GroqLLMService()


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

def get_analysis_cache(request: Request) -> ResponseCache:
    return request.app.state.analysis_cache


def get_jurisprudence_cache(request: Request) -> ResponseCache:
    return request.app.state.jurisprudence_cache


def get_llm_service(request: Request) -> GroqLLMService:
    return request.app.state.llm_service


def get_conversation_store() -> ConversationStore:
    return ConversationStore(AsyncSessionLocal)


def get_analysis_orchestrator(
    cache: ResponseCache = Depends(get_analysis_cache),
    llm: GroqLLMService = Depends(get_llm_service),
    store: ConversationStore = Depends(get_conversation_store),
) -> ContextualAnalysisOrchestrator:
    return ContextualAnalysisOrchestrator(cache=cache, llm=llm, history_store=store)


def get_chat_orchestrator(
    llm: GroqLLMService = Depends(get_llm_service),
    store: ConversationStore = Depends(get_conversation_store),
) -> ChatSendOrchestrator:
    return ChatSendOrchestrator(llm=llm, store=store)


def get_jurisprudence_service(
    cache: ResponseCache = Depends(get_jurisprudence_cache),
    llm: GroqLLMService = Depends(get_llm_service),
) -> JurisprudenceService:
    return JurisprudenceService(cache=cache, llm=llm)
