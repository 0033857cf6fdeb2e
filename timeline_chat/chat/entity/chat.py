# timeline_chat/chat/entity/chat.py
"""
Models for chat messages and sessions.
These models represent the structure of chat session data, both in memory
and in the session store's JSON files.
"""

import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import List, Optional, Literal


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class WireMessage(BaseModel):
    """Outbound message handed to a provider client."""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatMessage(BaseModel):
    """One turn in a conversation. ``system`` is never stored as a turn."""
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    agent: Optional[str] = None  # model id, assistant messages only
    is_error: bool = False  # local error notice, never sent to a provider or persisted
    is_partial: bool = False  # reply cut short by a provider failure

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, agent: Optional[str] = None) -> "ChatMessage":
        return cls(role="assistant", content=content, agent=agent)

    def to_wire(self) -> WireMessage:
        return WireMessage(role=self.role, content=self.content)


class ChatSession(BaseModel):
    """A persisted, named conversation."""
    id: str = Field(default_factory=new_id)
    title: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    messages: List[ChatMessage] = Field(default_factory=list)
    agent: Optional[str] = None


class SessionSummary(BaseModel):
    """List item for the chat history panel."""
    id: str
    title: str
    last_message: Optional[str] = None
    last_message_at: datetime
    message_count: int = 0
