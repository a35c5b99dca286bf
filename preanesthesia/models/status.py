"""Patient status and message role enums."""

from enum import Enum


class PatientStatus(str, Enum):
    """Pre-assessment progress of a patient."""

    PENDING = "pending"  # Imported, no patient message yet
    IN_PROGRESS = "in_progress"  # Patient has started the conversation
    COMPLETED = "completed"  # Closed through the completion gate


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class RecommendationSource(str, Enum):
    """How a recommendation record came to exist."""

    FORCED = "forced"  # Requested explicitly with the clinician directive
    AGENT = "agent"  # Emitted by the agent during a normal turn


# Statuses a patient may hold immediately before entering the key status.
STATUS_PREDECESSORS = {
    PatientStatus.PENDING: (),
    PatientStatus.IN_PROGRESS: (PatientStatus.PENDING,),
    PatientStatus.COMPLETED: (PatientStatus.PENDING, PatientStatus.IN_PROGRESS),
}
