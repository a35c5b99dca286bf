"""FastAPI dependencies resolving session tokens to patients.

Every token-scoped route depends on ``get_current_patient``; it is the only
place a session token is turned into a patient. Nothing else re-checks
authorization, so a route that skips this dependency exposes its data.

Resolution happens in two sequential steps on each request:
    1. the signed token is verified and its session key extracted;
    2. the patient holding that session key is loaded.
Either step failing yields HTTP 401 with no patient data.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
import logging

from preanesthesia.config.settings import settings
from preanesthesia.models.patient import Patient
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.token_service import session_key_from_token

logger = logging.getLogger(__name__)

INVALID_SESSION_DETAIL = "Session token is invalid or expired. Please verify your identity again."


async def resolve_patient(token: str) -> Optional[Patient]:
    """Return the patient a session token stands for, or None."""
    session_key = session_key_from_token(token)
    if session_key is None:
        return None
    return await get_patient_service().get_by_session_key(session_key)


async def get_current_patient(token: str) -> Patient:
    """Resolve the ``{token}`` path parameter to a patient.

    Raises:
        HTTP 401 – if the token does not resolve
    """
    patient = await resolve_patient(token)

    if patient is None:
        logger.warning("Rejected request with unresolvable session token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_SESSION_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )

    return patient


async def get_consented_patient(
    patient: Patient = Depends(get_current_patient),
) -> Patient:
    """Resolved patient who has accepted the data-processing terms.

    Raises:
        HTTP 403 – if consent is required and missing
    """
    if settings.require_consent and not patient.consent.accepted:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Data-processing consent is required before starting the conversation.",
        )
    return patient
