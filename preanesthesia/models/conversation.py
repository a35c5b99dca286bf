"""MongoDB schema for conversations."""

from pydantic import BaseModel, Field
from typing import List
from datetime import datetime
from preanesthesia.models.status import MessageRole
from preanesthesia.utils.time_utils import utc_now
import uuid


class ConversationMessage(BaseModel):
    """Individual message in a conversation."""

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True


class Conversation(BaseModel):
    """Append-only conversation document, one per session key."""

    session_key: str
    messages: List[ConversationMessage] = Field(default_factory=list)
    message_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
