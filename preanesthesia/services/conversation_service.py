"""Conversation store: append-only, session-key scoped message log."""

from preanesthesia.models.conversation import Conversation, ConversationMessage
from preanesthesia.models.status import MessageRole
from preanesthesia.config.database import get_conversations_collection
from preanesthesia.config.settings import settings
from preanesthesia.utils.time_utils import utc_now
from pymongo.errors import DuplicateKeyError
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for persisting and replaying patient conversations."""

    async def _ensure_conversation(self, session_key: str) -> bool:
        """
        Create the conversation with its greeting if it does not exist yet.

        Insert-if-absent is a single upsert, so however many times this runs
        a conversation receives exactly one greeting, as its first message.

        Returns:
            True if this call created the conversation
        """
        now = utc_now()
        greeting = ConversationMessage(
            role=MessageRole.ASSISTANT,
            content=settings.greeting_message,
            created_at=now,
        )

        collection = await get_conversations_collection()
        try:
            result = await collection.update_one(
                {"session_key": session_key},
                {
                    "$setOnInsert": {
                        "messages": [greeting.model_dump()],
                        "message_count": 1,
                        "created_at": now,
                        "updated_at": now,
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # A concurrent upsert created it first; theirs carries the greeting
            return False

        if result.upserted_id is not None:
            logger.info(f"Bootstrapped conversation for session {_short(session_key)}")
            return True
        return False

    async def bootstrap(self, session_key: str) -> List[ConversationMessage]:
        """
        Initialize a conversation and return its messages.

        Args:
            session_key: Patient session key

        Returns:
            Ordered messages, starting with the greeting
        """
        await self._ensure_conversation(session_key)
        return await self.list_messages(session_key)

    async def list_messages(self, session_key: str) -> List[ConversationMessage]:
        """
        Get the ordered messages of a conversation.

        Reading never creates a conversation.

        Args:
            session_key: Patient session key

        Returns:
            Messages in append order, empty if the conversation does not exist
        """
        collection = await get_conversations_collection()
        doc = await collection.find_one({"session_key": session_key})

        if doc:
            return Conversation(**doc).messages
        return []

    async def append_message(
        self, session_key: str, role: MessageRole, content: str
    ) -> ConversationMessage:
        """
        Append a message to a conversation.

        Args:
            session_key: Patient session key
            role: Message role ("user" or "assistant")
            content: Message content

        Returns:
            The stored ConversationMessage
        """
        await self._ensure_conversation(session_key)

        message = ConversationMessage(role=role, content=content)

        collection = await get_conversations_collection()
        await collection.update_one(
            {"session_key": session_key},
            {
                "$push": {"messages": message.model_dump()},
                "$inc": {"message_count": 1},
                "$set": {"updated_at": message.created_at},
            },
        )
        return message


def _short(session_key: str) -> str:
    """Loggable prefix of a session key."""
    return session_key[:8] + "..."


# Global service instance
_conversation_service: Optional[ConversationService] = None


def get_conversation_service() -> ConversationService:
    """Get or create ConversationService instance."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService()
    return _conversation_service
