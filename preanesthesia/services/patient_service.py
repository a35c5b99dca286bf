"""Patient record service: lookups, status transitions and consent."""

from preanesthesia.models.patient import Patient, ConsentRecord
from preanesthesia.models.status import PatientStatus, STATUS_PREDECESSORS
from preanesthesia.config.database import get_patients_collection
from preanesthesia.utils.normalization import normalize_national_id, normalize_phone
from preanesthesia.utils.time_utils import utc_now
from pymongo import ReturnDocument
from typing import Optional
from datetime import datetime
import secrets
import logging

logger = logging.getLogger(__name__)


class PatientService:
    """Service for patient records."""

    async def create_patient(
        self,
        national_id: str,
        name: str,
        phone: Optional[str] = None,
        procedure: Optional[str] = None,
        procedure_date: Optional[datetime] = None,
    ) -> Patient:
        """
        Register a patient (administrative import boundary).

        Args:
            national_id: National ID, normalized before storage
            name: Patient full name
            phone: Registered phone used for SMS delivery
            procedure: Scheduled procedure
            procedure_date: Scheduled procedure date

        Returns:
            Created Patient, status pending and without a security code
        """
        patient = Patient(
            national_id=normalize_national_id(national_id),
            phone=normalize_phone(phone) if phone else None,
            name=name,
            procedure=procedure,
            procedure_date=procedure_date,
            session_key=secrets.token_urlsafe(32),
        )

        collection = await get_patients_collection()
        await collection.insert_one(patient.model_dump())

        logger.info(f"Registered patient {patient.patient_id}")
        return patient

    async def get_by_national_id(self, national_id: str) -> Optional[Patient]:
        """Get a patient by national ID."""
        normalized = normalize_national_id(national_id)
        if not normalized:
            return None

        collection = await get_patients_collection()
        doc = await collection.find_one({"national_id": normalized})

        if doc:
            return Patient(**doc)
        return None

    async def get_by_session_key(self, session_key: str) -> Optional[Patient]:
        """Get a patient by session key."""
        if not session_key:
            return None

        collection = await get_patients_collection()
        doc = await collection.find_one({"session_key": session_key})

        if doc:
            return Patient(**doc)
        return None

    async def advance_status(
        self, session_key: str, target: PatientStatus
    ) -> Optional[Patient]:
        """
        Move a patient forward to the target status.

        The write only matches patients currently holding a direct
        predecessor of the target, so status never moves backwards.

        Args:
            session_key: Patient session key
            target: Desired status

        Returns:
            Updated Patient, or None when the transition does not apply
        """
        predecessors = [s.value for s in STATUS_PREDECESSORS[target]]
        if not predecessors:
            return None

        now = utc_now()
        update = {"status": target.value, "updated_at": now}
        if target == PatientStatus.COMPLETED:
            update["completed_at"] = now

        collection = await get_patients_collection()
        doc = await collection.find_one_and_update(
            {"session_key": session_key, "status": {"$in": predecessors}},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )

        if doc:
            logger.info(f"Patient {doc['patient_id']} moved to {target.value}")
            return Patient(**doc)
        return None

    async def mark_in_progress(self, session_key: str) -> bool:
        """Pending → in progress, on the first patient message."""
        return await self.advance_status(session_key, PatientStatus.IN_PROGRESS) is not None

    async def set_summary_generated(self, session_key: str, generated: bool) -> None:
        collection = await get_patients_collection()
        await collection.update_one(
            {"session_key": session_key},
            {"$set": {"summary_generated": generated, "updated_at": utc_now()}},
        )

    async def record_consent(
        self, session_key: str, terms_version: str
    ) -> Optional[Patient]:
        """
        Store the data-processing consent.

        An existing consent is kept as first given.

        Returns:
            Updated Patient, or None if the session key is unknown
        """
        consent = ConsentRecord(
            accepted=True, terms_version=terms_version, accepted_at=utc_now()
        )

        collection = await get_patients_collection()
        await collection.update_one(
            {"session_key": session_key, "consent.accepted": {"$ne": True}},
            {"$set": {"consent": consent.model_dump(), "updated_at": utc_now()}},
        )
        return await self.get_by_session_key(session_key)


# Global service instance
_patient_service: Optional[PatientService] = None


def get_patient_service() -> PatientService:
    """Get or create PatientService instance."""
    global _patient_service
    if _patient_service is None:
        _patient_service = PatientService()
    return _patient_service
