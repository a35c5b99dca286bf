"""MongoDB schema for recommendation records."""

from pydantic import BaseModel, Field
from datetime import datetime
from preanesthesia.models.status import RecommendationSource
from preanesthesia.utils.time_utils import utc_now
import uuid


class RecommendationRecord(BaseModel):
    """Evidence that the agent produced actionable output for a session."""

    recommendation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_key: str
    content: str
    source: RecommendationSource
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True
