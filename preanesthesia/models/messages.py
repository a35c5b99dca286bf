"""API request and response models."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from preanesthesia.models.status import (
    PatientStatus,
    MessageRole,
    RecommendationSource,
)


class VerifyRequest(BaseModel):
    """National ID plus SMS security code."""

    national_id: str = Field(..., description="National ID (DNI)")
    security_code: str = Field(..., description="Code received by SMS")


class VerifyResponse(BaseModel):
    """Session token issued after a successful verification."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")


class ResendRequest(BaseModel):
    """Request a new security code by SMS."""

    national_id: str
    phone: str


class ResendResponse(BaseModel):
    """Outcome of an accepted resend request."""

    accepted: bool
    delivered: bool
    message: str


class PatientView(BaseModel):
    """Non-sensitive patient data shown inside the session."""

    name: str
    procedure: Optional[str] = None
    procedure_date: Optional[datetime] = None
    status: PatientStatus
    consent_given: bool


class ConsentRequest(BaseModel):
    """Data-processing consent submission."""

    accepted: bool
    terms_version: Optional[str] = None


class MessageModel(BaseModel):
    """Individual message in conversation."""

    message_id: str
    role: MessageRole = Field(..., description="user or assistant")
    content: str
    created_at: datetime


class ConversationResponse(BaseModel):
    """Ordered conversation replay."""

    message_count: int
    messages: List[MessageModel]


class SendMessageRequest(BaseModel):
    """A patient turn."""

    message: str = Field(..., min_length=1, max_length=4000, description="User message")

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class SendMessageResponse(BaseModel):
    """The stored patient turn and the agent's reply."""

    user_message: MessageModel
    assistant_message: MessageModel
    recommendations_available: bool


class RecommendationModel(BaseModel):
    """A recorded recommendation."""

    recommendation_id: str
    content: str
    source: RecommendationSource
    created_at: datetime


class RecommendationsResponse(BaseModel):
    """All recommendations of a session."""

    total: int
    recommendations: List[RecommendationModel]


class RecommendationStatusResponse(BaseModel):
    """Passive readiness signal for the completion gate."""

    available: bool
    can_complete: bool


class StatusUpdateRequest(BaseModel):
    """Requested status transition."""

    status: PatientStatus


class StatusResponse(BaseModel):
    """Current patient status."""

    status: PatientStatus


class CompletionResponse(BaseModel):
    """Outcome of closing the session."""

    status: PatientStatus
    summary_generated: bool
    warning: Optional[str] = None
