"""
Conversation / document-history store backed by SQLAlchemy.

Each operation runs in its own short-lived session and commits on success,
so a failed write never poisons the caller's session.  Orchestrators treat
every method here as best-effort and only log failures.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jurisia.models.database_models import Conversation, DocumentHistory, Message, MessageRole

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Args:
        session_factory: ``async_sessionmaker`` producing ``AsyncSession``s
                         (``AsyncSessionLocal`` in production).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Conversations & messages
    # ------------------------------------------------------------------

    async def create_conversation(self, owner_id: str, title: str) -> str:
        async with self._session_factory() as session:
            conversation = Conversation(owner_id=owner_id, title=title)
            session.add(conversation)
            await session.commit()
            logger.info("Created conversation %s for owner %s", conversation.id, owner_id)
            return conversation.id

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        async with self._session_factory() as session:
            return await session.get(Conversation, conversation_id)

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.owner_id == owner_id)
                .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
            )
            return list(result.scalars().all())

    async def append_message(
        self,
        conversation_id: str,
        content: str,
        role: Union[MessageRole, str],
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                Message(conversation_id=conversation_id, content=content, role=MessageRole(role))
            )
            await session.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=func.now())
            )
            await session.commit()

    async def load_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Messages in insertion order as ``{content, role, created_at}`` dicts."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.id)
            )
            return [
                {
                    "content": message.content,
                    "role": message.role.value,
                    "created_at": message.created_at,
                }
                for message in result.scalars().all()
            ]

    # ------------------------------------------------------------------
    # Document history
    # ------------------------------------------------------------------

    async def append_analysis_history(
        self,
        document_id: str,
        payload: Dict[str, Any],
        kind: str = "analysis",
    ) -> None:
        async with self._session_factory() as session:
            session.add(DocumentHistory(document_id=document_id, kind=kind, payload=payload))
            await session.commit()
            logger.debug("Stored %s history for document %s", kind, document_id)

    async def load_analysis_history(self, document_id: str, limit: int = 10) -> List[DocumentHistory]:
        """Most recent entries first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentHistory)
                .where(DocumentHistory.document_id == document_id)
                .order_by(DocumentHistory.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
