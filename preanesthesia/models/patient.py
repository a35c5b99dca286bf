"""MongoDB schema for patients."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from preanesthesia.models.status import PatientStatus
from preanesthesia.utils.time_utils import utc_now
import uuid


class SecurityCode(BaseModel):
    """The single currently valid SMS security code of a patient."""

    code_hash: str
    issued_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    failed_attempts: int = 0


class ConsentRecord(BaseModel):
    """Acknowledgment of the data-processing terms."""

    accepted: bool = False
    terms_version: Optional[str] = None
    accepted_at: Optional[datetime] = None


class Patient(BaseModel):
    """Patient document."""

    patient_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    national_id: str
    phone: Optional[str] = None
    name: str
    procedure: Optional[str] = None
    procedure_date: Optional[datetime] = None
    status: PatientStatus = PatientStatus.PENDING

    # Stable opaque key scoping the conversation and recommendations
    session_key: str

    security_code: Optional[SecurityCode] = None
    consent: ConsentRecord = Field(default_factory=ConsentRecord)

    summary_generated: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "national_id": "12345678Z",
                "phone": "+34600111222",
                "name": "María García",
                "procedure": "Colecistectomía laparoscópica",
                "status": "pending",
            }
        }
