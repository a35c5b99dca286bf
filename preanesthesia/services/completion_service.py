"""Completion gate and recommendation tracking.

Two signals meet here: whether the agent has produced a recommendation for
the session, and whether the patient asks to finish. A session may keep
going after its first recommendation; it may not finish before one exists.
"""

from preanesthesia.config.settings import settings
from preanesthesia.models.recommendation import RecommendationRecord
from preanesthesia.models.status import (
    MessageRole,
    PatientStatus,
    RecommendationSource,
)
from preanesthesia.services.conversation_service import get_conversation_service
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.recommendation_service import get_recommendation_service
from preanesthesia.services.relay_service import get_relay_service
from preanesthesia.services.summary_service import get_summary_service
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class CompletionOutcome(str, Enum):
    COMPLETED = "completed"
    BLOCKED = "blocked"


@dataclass
class CompletionResult:
    outcome: CompletionOutcome
    summary_generated: bool = False
    warning: Optional[str] = None


class CompletionService:
    """Decides when a session may be closed."""

    async def check_recommendations(self, session_key: str) -> bool:
        """True iff at least one recommendation exists for the session."""
        return await get_recommendation_service().has_recommendations(session_key)

    async def force_generate(self, session_key: str) -> RecommendationRecord:
        """
        Ask the agent to synthesize recommendations from the whole conversation.

        The directive goes to the agent only; its reply is appended to the
        conversation and recorded as a recommendation.

        Args:
            session_key: Patient session key

        Returns:
            The new RecommendationRecord

        Raises:
            RelayError: If the agent could not answer
        """
        reply = await get_relay_service().relay(
            session_key, settings.recommendation_directive
        )

        await get_conversation_service().append_message(
            session_key, MessageRole.ASSISTANT, reply.answer
        )

        return await get_recommendation_service().create_recommendation(
            session_key,
            reply.recommendations or reply.answer,
            RecommendationSource.FORCED,
        )

    async def complete(self, session_key: str) -> CompletionResult:
        """
        Close the session if the agent has produced a recommendation.

        Summarization is requested first but its failure never blocks the
        status change.

        Args:
            session_key: Patient session key

        Returns:
            CompletionResult, BLOCKED when no recommendation exists
        """
        patient_service = get_patient_service()

        patient = await patient_service.get_by_session_key(session_key)
        if patient is not None and patient.status == PatientStatus.COMPLETED:
            return CompletionResult(
                outcome=CompletionOutcome.COMPLETED,
                summary_generated=patient.summary_generated,
            )

        if not await self.check_recommendations(session_key):
            logger.info("Completion blocked: no recommendations yet")
            return CompletionResult(outcome=CompletionOutcome.BLOCKED)

        summary_generated = await get_summary_service().request_summary(session_key)

        updated = await patient_service.advance_status(
            session_key, PatientStatus.COMPLETED
        )
        if updated is not None:
            await patient_service.set_summary_generated(session_key, summary_generated)
        else:
            # Another request completed it in the meantime
            logger.info("Session was already completed")

        warning = None
        if not summary_generated:
            warning = "The session was completed but the automatic summary could not be generated."

        return CompletionResult(
            outcome=CompletionOutcome.COMPLETED,
            summary_generated=summary_generated,
            warning=warning,
        )


# Global service instance
_completion_service: Optional[CompletionService] = None


def get_completion_service() -> CompletionService:
    """Get or create CompletionService instance."""
    global _completion_service
    if _completion_service is None:
        _completion_service = CompletionService()
    return _completion_service
