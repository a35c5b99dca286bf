"""Identity verification endpoints.

Patients enter with their national ID and the security code received by SMS,
and may ask for a new code by proving they know the registered phone.
"""

from fastapi import APIRouter, HTTPException, status
from preanesthesia.models.messages import (
    VerifyRequest,
    VerifyResponse,
    ResendRequest,
    ResendResponse,
)
from preanesthesia.services.identity_service import get_identity_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/identity", tags=["Identity"])

# One detail for every failure cause, so responses do not reveal which field was wrong
INCORRECT_CREDENTIALS_DETAIL = (
    "Incorrect credentials. Check your national ID and security code."
)
RESEND_REJECTED_DETAIL = "No patient was found with that national ID and phone."


@router.post("/verify", response_model=VerifyResponse)
async def verify_identity(request: VerifyRequest):
    """
    Verify a national ID and SMS security code.

    Returns a session token that addresses every later request.
    """
    result = await get_identity_service().verify(
        request.national_id, request.security_code
    )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INCORRECT_CREDENTIALS_DETAIL,
        )

    return result


@router.post("/resend-code", response_model=ResendResponse)
async def resend_security_code(request: ResendRequest):
    """
    Issue a new security code and send it by SMS.

    The previous code stops working. Requires the registered phone number.
    """
    result = await get_identity_service().resend(request.national_id, request.phone)

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=RESEND_REJECTED_DETAIL,
        )

    return result
