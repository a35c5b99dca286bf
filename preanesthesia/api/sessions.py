"""Session-scoped patient endpoints.

Every route is addressed by the session token returned from identity
verification and resolves it through ``get_current_patient``:

- conversation bootstrap, replay and patient turns
- recommendation lookup, readiness polling and forced generation
- status updates and session completion
"""

from fastapi import APIRouter, Depends, HTTPException, status
from preanesthesia.api.dependencies import get_current_patient, get_consented_patient
from preanesthesia.config.settings import settings
from preanesthesia.models.conversation import ConversationMessage
from preanesthesia.models.messages import (
    PatientView,
    ConsentRequest,
    MessageModel,
    ConversationResponse,
    SendMessageRequest,
    SendMessageResponse,
    RecommendationModel,
    RecommendationsResponse,
    RecommendationStatusResponse,
    StatusUpdateRequest,
    StatusResponse,
    CompletionResponse,
)
from preanesthesia.models.patient import Patient
from preanesthesia.models.recommendation import RecommendationRecord
from preanesthesia.models.status import PatientStatus
from preanesthesia.services.chat_service import get_chat_service
from preanesthesia.services.completion_service import (
    get_completion_service,
    CompletionOutcome,
)
from preanesthesia.services.conversation_service import get_conversation_service
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.recommendation_service import get_recommendation_service
from preanesthesia.services.relay_service import RelayError
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])

RELAY_RETRY_DETAIL = "The assistant could not answer right now. Your message was saved; send it again to retry."
COMPLETION_BLOCKED_DETAIL = (
    "The assessment is not finished yet. Keep the conversation going or "
    "generate the recommendations before completing."
)


def _patient_view(patient: Patient) -> PatientView:
    return PatientView(
        name=patient.name,
        procedure=patient.procedure,
        procedure_date=patient.procedure_date,
        status=patient.status,
        consent_given=patient.consent.accepted,
    )


def _message_model(message: ConversationMessage) -> MessageModel:
    return MessageModel(
        message_id=message.message_id,
        role=message.role,
        content=message.content,
        created_at=message.created_at,
    )


def _conversation_response(messages: List[ConversationMessage]) -> ConversationResponse:
    return ConversationResponse(
        message_count=len(messages),
        messages=[_message_model(m) for m in messages],
    )


def _recommendation_model(record: RecommendationRecord) -> RecommendationModel:
    return RecommendationModel(
        recommendation_id=record.recommendation_id,
        content=record.content,
        source=record.source,
        created_at=record.created_at,
    )


@router.get("/{token}", response_model=PatientView)
async def get_session_patient(patient: Patient = Depends(get_current_patient)):
    """Get the patient's own non-sensitive details."""
    return _patient_view(patient)


@router.post("/{token}/consent", response_model=PatientView)
async def give_consent(
    request: ConsentRequest, patient: Patient = Depends(get_current_patient)
):
    """Accept the data-processing terms."""
    if not request.accepted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Consent must be accepted to continue.",
        )

    updated = await get_patient_service().record_consent(
        patient.session_key, request.terms_version or settings.consent_terms_version
    )
    return _patient_view(updated or patient)


@router.post("/{token}/conversation", response_model=ConversationResponse)
async def start_conversation(patient: Patient = Depends(get_consented_patient)):
    """
    Initialize the conversation and return it.

    Safe to call on every page load: the greeting is only ever added once.
    """
    messages = await get_conversation_service().bootstrap(patient.session_key)
    return _conversation_response(messages)


@router.get("/{token}/messages", response_model=ConversationResponse)
async def list_messages(patient: Patient = Depends(get_consented_patient)):
    """Get the conversation in order."""
    messages = await get_conversation_service().list_messages(patient.session_key)
    return _conversation_response(messages)


@router.post("/{token}/messages", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest, patient: Patient = Depends(get_consented_patient)
):
    """
    Send a patient message and get the assistant's reply.

    On 502 the patient message is already stored; the client retries by
    sending the same message again, which completes the stored turn.
    """
    try:
        user_message, assistant_message = await get_chat_service().send_message(
            patient.session_key, request.message
        )
    except RelayError as e:
        logger.warning(f"Relay failed for patient {patient.patient_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=RELAY_RETRY_DETAIL
        )

    available = await get_completion_service().check_recommendations(
        patient.session_key
    )
    return SendMessageResponse(
        user_message=_message_model(user_message),
        assistant_message=_message_model(assistant_message),
        recommendations_available=available,
    )


@router.get("/{token}/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(patient: Patient = Depends(get_current_patient)):
    """Get the recommendations recorded for the session."""
    records = await get_recommendation_service().get_recommendations(
        patient.session_key
    )
    return RecommendationsResponse(
        total=len(records),
        recommendations=[_recommendation_model(r) for r in records],
    )


@router.get(
    "/{token}/recommendations/status", response_model=RecommendationStatusResponse
)
async def get_recommendation_status(patient: Patient = Depends(get_current_patient)):
    """Whether recommendations exist yet; suitable for polling."""
    available = await get_completion_service().check_recommendations(
        patient.session_key
    )
    return RecommendationStatusResponse(
        available=available,
        can_complete=available or patient.status == PatientStatus.COMPLETED,
    )


@router.post(
    "/{token}/recommendations/generate",
    response_model=RecommendationModel,
    status_code=status.HTTP_201_CREATED,
)
async def generate_recommendations(patient: Patient = Depends(get_consented_patient)):
    """Ask the assistant to produce recommendations from the conversation so far."""
    try:
        record = await get_completion_service().force_generate(patient.session_key)
    except RelayError as e:
        logger.warning(
            f"Forced recommendations failed for patient {patient.patient_id}: {e}"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The recommendations could not be generated. Please try again.",
        )

    return _recommendation_model(record)


@router.put("/{token}/status", response_model=StatusResponse)
async def update_status(
    request: StatusUpdateRequest, patient: Patient = Depends(get_current_patient)
):
    """
    Move the session status forward.

    Only ``in_progress`` can be requested here; completion goes through
    ``/complete``.
    """
    target = PatientStatus(request.status)
    current = PatientStatus(patient.status)

    if target == current:
        return StatusResponse(status=current)

    if target == PatientStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Use the completion endpoint to finish the session.",
        )

    updated = None
    if target == PatientStatus.IN_PROGRESS:
        updated = await get_patient_service().advance_status(
            patient.session_key, target
        )

    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot change status from {current.value} to {target.value}.",
        )

    return StatusResponse(status=updated.status)


@router.post("/{token}/complete", response_model=CompletionResponse)
async def complete_session(patient: Patient = Depends(get_current_patient)):
    """
    Finish the assessment.

    Refused with 409 until the assistant has produced recommendations.
    """
    result = await get_completion_service().complete(patient.session_key)

    if result.outcome == CompletionOutcome.BLOCKED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=COMPLETION_BLOCKED_DETAIL
        )

    return CompletionResponse(
        status=PatientStatus.COMPLETED,
        summary_generated=result.summary_generated,
        warning=result.warning,
    )
