"""
Chat endpoint.

POST /api/chat/send - send a message with bounded retries and a deadline.

The endpoint answers 200 for every terminal state; failed and timed-out
sends carry the classified degraded message in ``reply``.  A conversationId
that the caller does not own answers 404 before anything is sent.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from jurisia.dependencies.auth import get_optional_user_id
from jurisia.dependencies.services import get_chat_orchestrator
from jurisia.models.schemas import (
    ChatSendRequest,
    ChatSendResponse,
    LegalReferencesSchema,
    TokenUsageSchema,
)
from jurisia.services.chat_service import ChatOutcome, ChatSendOrchestrator, ConversationNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(outcome: ChatOutcome) -> ChatSendResponse:
    return ChatSendResponse(
        state=outcome.state.value,
        reply=outcome.reply,
        attempts=outcome.attempts,
        conversation_id=outcome.conversation_id,
        failure_kind=outcome.failure_kind.value if outcome.failure_kind else None,
        status_history=[state.value for state in outcome.status_history],
        model_id=outcome.model_id,
        token_usage=TokenUsageSchema(
            prompt=outcome.token_usage.prompt,
            completion=outcome.token_usage.completion,
            total=outcome.token_usage.total,
        ),
        references=LegalReferencesSchema(
            laws=list(outcome.references.laws),
            case_law=list(outcome.references.case_law),
        ),
    )


@router.post("/send", response_model=ChatSendResponse, response_model_by_alias=True)
async def send_message(
    request: ChatSendRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    orchestrator: ChatSendOrchestrator = Depends(get_chat_orchestrator),
):
    """Send a chat message; ChatValidationError is mapped to 400 by the app."""
    try:
        outcome = await orchestrator.send(
            request.message,
            history=request.history,
            conversation_id=request.conversation_id,
            owner_id=user_id,
        )
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation {request.conversation_id} not found.",
        )
    logger.info(
        "Chat send finished: state=%s attempts=%d conversation=%s",
        outcome.state.value,
        outcome.attempts,
        outcome.conversation_id,
    )
    return _to_response(outcome)
