"""
SQLAlchemy ORM models for the JurisIA conversation and history store.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid

from jurisia.database import Base


# Enums
class MessageRole(str, enum.Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


def _new_id() -> str:
    return str(uuid.uuid4())


# Models
class Conversation(Base):
    """Chat conversation owned by a user."""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )


class Message(Base):
    """Single message inside a conversation."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    role = Column(SQLEnum(MessageRole), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")


class DocumentHistory(Base):
    """Analysis (or other assistant interaction) recorded against a document."""

    __tablename__ = "document_history"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(String(255), nullable=False, index=True)
    kind = Column(String(50), nullable=False, default="analysis")
    payload = Column(JSON, nullable=True)  # serialized ContextualAnalysis, etc.
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
