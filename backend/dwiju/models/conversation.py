"""Conversation and message models for chat history persistence."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

DEFAULT_TITLE = "New Chat"
MESSAGE_ROLES = ("user", "assistant", "system")
INPUT_TYPES = ("text", "voice", "vision")


class Conversation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="account.id", index=True)
    session_id: str = Field(index=True, unique=True)
    title: str = Field(default=DEFAULT_TITLE)

    # Completion settings
    model: str
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=4000)
    language: str = Field(default="en")
    persona: str = Field(default="dwiju")

    is_active: bool = Field(default=True, index=True)

    # Derived from the messages, recomputed by the ledger after every mutation
    message_count: int = Field(default=0)
    token_count: int = Field(default=0)

    last_activity: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatMessage(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("conversation_id", "message_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    message_id: str
    conversation_id: int = Field(foreign_key="conversation.id", index=True)
    role: str  # "user" | "assistant" | "system"
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Metadata
    tokens: int = Field(default=0)
    model: Optional[str] = None
    response_time_ms: Optional[int] = None
    language: Optional[str] = None
    input_type: str = Field(default="text")  # "text" | "voice" | "vision"
    attachments: list[dict] = Field(default_factory=list, sa_column=Column(JSON))


def message_to_dict(msg: ChatMessage) -> dict:
    return {
        "id": msg.message_id,
        "role": msg.role,
        "content": msg.content,
        "timestamp": msg.created_at.isoformat(),
        "metadata": {
            "tokens": msg.tokens,
            "model": msg.model,
            "responseTime": msg.response_time_ms,
            "language": msg.language,
            "inputType": msg.input_type,
            "attachments": msg.attachments or [],
        },
    }


def conversation_to_dict(conv: Conversation, messages: list[ChatMessage] | None = None) -> dict:
    data = {
        "sessionId": conv.session_id,
        "title": conv.title,
        "totalMessages": conv.message_count,
        "totalTokens": conv.token_count,
        "isActive": conv.is_active,
        "lastActivity": conv.last_activity.isoformat(),
        "createdAt": conv.created_at.isoformat(),
    }
    if messages is not None:
        data["settings"] = {
            "model": conv.model,
            "temperature": conv.temperature,
            "maxTokens": conv.max_tokens,
            "language": conv.language,
            "persona": conv.persona,
        }
        data["messages"] = [message_to_dict(m) for m in messages]
    return data
