"""
Conversation endpoints (user-scoped through X-User-Id).

Route summary
-------------
POST /api/conversations                        - create conversation
GET  /api/conversations                        - list user's conversations
GET  /api/conversations/{conversation_id}/messages - messages in order
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from jurisia.dependencies.auth import get_current_user_id
from jurisia.dependencies.services import get_conversation_store
from jurisia.models.schemas import ConversationCreateRequest, ConversationResponse, MessageResponse
from jurisia.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ConversationResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    request: ConversationCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: ConversationStore = Depends(get_conversation_store),
):
    conversation_id = await store.create_conversation(user_id, request.title)
    conversation = await store.get_conversation(conversation_id)
    return ConversationResponse.model_validate(conversation)


@router.get("", response_model=List[ConversationResponse], response_model_by_alias=True)
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    store: ConversationStore = Depends(get_conversation_store),
):
    conversations = await store.list_conversations(user_id)
    return [ConversationResponse.model_validate(c) for c in conversations]


@router.get(
    "/{conversation_id}/messages",
    response_model=List[MessageResponse],
    response_model_by_alias=True,
)
async def list_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ConversationStore = Depends(get_conversation_store),
):
    conversation = await store.get_conversation(conversation_id)
    if conversation is None or conversation.owner_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation {conversation_id} not found.",
        )
    return [MessageResponse(**message) for message in await store.load_messages(conversation_id)]
