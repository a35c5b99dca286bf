"""A patient turn: persist, relay, persist the reply."""

from preanesthesia.models.conversation import ConversationMessage
from preanesthesia.models.status import MessageRole, RecommendationSource
from preanesthesia.services.conversation_service import get_conversation_service
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.recommendation_service import get_recommendation_service
from preanesthesia.services.relay_service import get_relay_service
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class ChatService:
    """Runs conversation turns against the agent relay."""

    async def send_message(
        self, session_key: str, content: str
    ) -> Tuple[ConversationMessage, ConversationMessage]:
        """
        Store a patient message, relay it and store the agent's reply.

        The patient message is written before the relay call, so a relay
        failure keeps the input and leaves the turn open for a retry. Sending
        the same text again while it is still the unanswered last message
        retries that turn instead of storing a second copy.

        Args:
            session_key: Patient session key
            content: Patient message text

        Returns:
            (user message, assistant message)

        Raises:
            RelayError: If the agent could not answer
        """
        conversation_service = get_conversation_service()

        pending = await self._unanswered_message(session_key)
        if pending is not None and pending.content == content:
            logger.info("Retrying unanswered patient message")
            user_message = pending
        else:
            user_message = await conversation_service.append_message(
                session_key, MessageRole.USER, content
            )

        # Not transactional with the message write
        try:
            await get_patient_service().mark_in_progress(session_key)
        except Exception as e:
            logger.warning(f"Could not mark patient in progress: {e}")

        reply = await get_relay_service().relay(session_key, content)

        assistant_message = await conversation_service.append_message(
            session_key, MessageRole.ASSISTANT, reply.answer
        )

        if reply.recommendations:
            await get_recommendation_service().create_recommendation(
                session_key, reply.recommendations, RecommendationSource.AGENT
            )

        return user_message, assistant_message

    async def _unanswered_message(
        self, session_key: str
    ) -> Optional[ConversationMessage]:
        """The last message if it is a patient message with no reply yet."""
        messages = await get_conversation_service().list_messages(session_key)
        if messages and messages[-1].role == MessageRole.USER:
            return messages[-1]
        return None


# Global service instance
_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get or create ChatService instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
