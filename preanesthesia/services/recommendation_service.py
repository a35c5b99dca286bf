"""Recommendation record storage and retrieval service."""

from preanesthesia.models.recommendation import RecommendationRecord
from preanesthesia.models.status import RecommendationSource
from preanesthesia.config.database import get_recommendations_collection
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)


class RecommendationService:
    """Service for managing recommendation records."""

    async def create_recommendation(
        self, session_key: str, content: str, source: RecommendationSource
    ) -> RecommendationRecord:
        """
        Record a recommendation for a session.

        Args:
            session_key: Session key the recommendation belongs to
            content: Recommendation text produced by the agent
            source: How it was produced

        Returns:
            Stored RecommendationRecord
        """
        record = RecommendationRecord(
            session_key=session_key, content=content, source=source
        )

        collection = await get_recommendations_collection()
        await collection.insert_one(record.model_dump())

        logger.info(
            f"Created recommendation {record.recommendation_id} ({record.source})"
        )
        return record

    async def get_recommendations(self, session_key: str) -> List[RecommendationRecord]:
        """
        Get all recommendations of a session, oldest first.

        Args:
            session_key: Session key

        Returns:
            List of RecommendationRecord
        """
        collection = await get_recommendations_collection()
        cursor = collection.find({"session_key": session_key}).sort("created_at", 1)

        records = []
        async for doc in cursor:
            records.append(RecommendationRecord(**doc))

        return records

    async def has_recommendations(self, session_key: str) -> bool:
        """True iff at least one recommendation exists for the session."""
        collection = await get_recommendations_collection()
        doc = await collection.find_one(
            {"session_key": session_key}, projection={"_id": 1}
        )
        return doc is not None


# Global service instance
_recommendation_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create RecommendationService instance."""
    global _recommendation_service
    if _recommendation_service is None:
        _recommendation_service = RecommendationService()
    return _recommendation_service
