"""Identity verification gateway: national ID + SMS security code."""

from preanesthesia.models.patient import Patient, SecurityCode
from preanesthesia.models.messages import VerifyResponse, ResendResponse
from preanesthesia.config.database import get_patients_collection
from preanesthesia.config.settings import settings
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.sms_service import get_sms_service, build_resend_message
from preanesthesia.services.token_service import (
    issue_session_token,
    token_lifetime_seconds,
)
from preanesthesia.utils.normalization import (
    normalize_national_id,
    normalize_phone,
    normalize_code,
)
from preanesthesia.utils.time_utils import utc_now
from pymongo import ReturnDocument
from typing import Optional
from datetime import timedelta
import hashlib
import hmac
import secrets
import logging

logger = logging.getLogger(__name__)


def generate_security_code(length: Optional[int] = None) -> str:
    """Random decimal code of the configured length."""
    length = length or settings.security_code_length
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_security_code(code: str) -> str:
    """Keyed hash of a code; plain codes are never stored."""
    return hmac.new(
        settings.session_token_secret.encode(),
        normalize_code(code).encode(),
        hashlib.sha256,
    ).hexdigest()


class IdentityService:
    """Service verifying patients and (re)issuing their security codes."""

    async def issue_security_code(self, patient_id: str) -> Optional[str]:
        """
        Replace the patient's security code with a fresh one.

        Any previous code stops verifying as soon as this write lands.

        Args:
            patient_id: Patient identifier

        Returns:
            The plain code, for delivery, or None if the patient is unknown
        """
        code = generate_security_code()
        now = utc_now()
        security_code = SecurityCode(
            code_hash=hash_security_code(code),
            issued_at=now,
            expires_at=now + timedelta(minutes=settings.security_code_ttl_minutes),
        )

        collection = await get_patients_collection()
        result = await collection.update_one(
            {"patient_id": patient_id},
            {"$set": {"security_code": security_code.model_dump(), "updated_at": now}},
        )

        if result.matched_count == 0:
            return None

        logger.info(f"Issued new security code for patient {patient_id}")
        return code

    async def verify(
        self, national_id: str, security_code: str
    ) -> Optional[VerifyResponse]:
        """
        Verify a national ID / security code pair.

        The code is consumed in the same atomic write that matches it. A
        miss against a known national ID counts as a failed attempt, and a
        code stops verifying once it reaches the attempt limit. Every failure
        cause yields the same None outcome.

        Args:
            national_id: National ID as typed by the patient
            security_code: Code as typed by the patient

        Returns:
            VerifyResponse with a session token, or None
        """
        normalized_id = normalize_national_id(national_id)
        code_hash = hash_security_code(security_code)
        if not normalized_id or not normalize_code(security_code):
            return None

        now = utc_now()
        collection = await get_patients_collection()
        doc = await collection.find_one_and_update(
            {
                "national_id": normalized_id,
                "security_code.code_hash": code_hash,
                "security_code.consumed_at": None,
                "security_code.expires_at": {"$gt": now},
                "security_code.failed_attempts": {
                    "$not": {"$gte": settings.security_code_max_attempts}
                },
            },
            {"$set": {"security_code.consumed_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

        if not doc:
            await collection.update_one(
                {
                    "national_id": normalized_id,
                    "security_code.code_hash": {"$exists": True},
                    "security_code.consumed_at": None,
                },
                {"$inc": {"security_code.failed_attempts": 1}},
            )
            logger.warning("Identity verification failed")
            return None

        patient = Patient(**doc)
        logger.info(f"Patient {patient.patient_id} verified identity")
        return VerifyResponse(
            token=issue_session_token(patient.session_key),
            expires_in=token_lifetime_seconds(),
        )

    async def resend(self, national_id: str, phone: str) -> Optional[ResendResponse]:
        """
        Issue and send a new security code.

        The caller must know the registered phone of the national ID.

        Args:
            national_id: National ID as typed by the patient
            phone: Phone as typed by the patient

        Returns:
            ResendResponse when accepted, None when rejected
        """
        patient = await get_patient_service().get_by_national_id(national_id)
        supplied_phone = normalize_phone(phone)

        if (
            patient is None
            or not patient.phone
            or not supplied_phone
            or not hmac.compare_digest(patient.phone.encode(), supplied_phone.encode())
        ):
            logger.warning("Security code resend rejected")
            return None

        code = await self.issue_security_code(patient.patient_id)
        if code is None:
            return None

        result = await get_sms_service().send_sms(
            patient.phone, build_resend_message(patient, code)
        )

        if not result.get("success"):
            logger.warning(
                f"Security code for patient {patient.patient_id} issued but SMS "
                f"delivery failed: {result.get('error')}"
            )
            return ResendResponse(
                accepted=True,
                delivered=False,
                message="The code could not be delivered. Please request it again.",
            )

        return ResendResponse(
            accepted=True,
            delivered=True,
            message="A new security code has been sent to your phone.",
        )


# Global service instance
_identity_service: Optional[IdentityService] = None


def get_identity_service() -> IdentityService:
    """Get or create IdentityService instance."""
    global _identity_service
    if _identity_service is None:
        _identity_service = IdentityService()
    return _identity_service
