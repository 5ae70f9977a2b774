from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MEDICAL_CONSENT = "medical_consent"
MEDICAL_ACCESS_REQUEST = "medical_access_request"
NOTIFICATION = "notification"
APPOINTMENT = "appointment"
MEDICAL_REPORT = "medical_report"
VISIT_RECORD = "visit_record"
PRESCRIPTION = "prescription"
DOCTOR_VERIFICATION = "doctor_verification"
PHARMACIST_VERIFICATION = "pharmacist_verification"

CURRENT_SUBTYPE = "current"


class EntityPayload(BaseModel):
    """Fields the store injects into every payload; anything else is kept."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConsentStatus(str, enum.Enum):
    active = "active"
    revoked = "revoked"


class AccessLevel(str, enum.Enum):
    full = "full"
    limited = "limited"


class ConsentGrant(EntityPayload):
    patient_id: str
    clinician_id: str
    granted_at: datetime
    expires_at: Optional[datetime] = None
    status: ConsentStatus = ConsentStatus.active
    access_level: AccessLevel = AccessLevel.full
    revoked_at: Optional[datetime] = None

    @field_validator("granted_at", "expires_at", "revoked_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_effective(self, now: datetime) -> bool:
        if self.status != ConsentStatus.active:
            return False
        return self.expires_at is None or self.expires_at > now


class AccessRequestStatus(str, enum.Enum):
    pending = "pending"


class AccessRequest(EntityPayload):
    clinician_id: str
    patient_id: str
    reason: str = "Medical consultation"
    requested_at: datetime
    status: AccessRequestStatus = AccessRequestStatus.pending


class Notification(EntityPayload):
    user_id: str
    type: str
    entity_id: Optional[str] = None
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool = False


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class Appointment(EntityPayload):
    patient_id: str
    clinician_id: str
    scheduled_for: datetime
    status: AppointmentStatus = AppointmentStatus.scheduled
    reason: Optional[str] = None
    clinician_notes: Optional[str] = None


class Prescription(EntityPayload):
    patient_id: str
    clinician_id: str
    medications: list[str] = Field(default_factory=list)
    instructions: str = ""
    issued_at: datetime


class VerificationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Verification(EntityPayload):
    applicant_id: str
    role: str
    display_name: str
    license_number: str
    organization: str = ""
    documents: list[str] = Field(default_factory=list)
    status: VerificationStatus = VerificationStatus.pending
    submitted_at: datetime


ENTITY_MODELS: dict[str, type[EntityPayload]] = {
    MEDICAL_CONSENT: ConsentGrant,
    MEDICAL_ACCESS_REQUEST: AccessRequest,
    NOTIFICATION: Notification,
    APPOINTMENT: Appointment,
    PRESCRIPTION: Prescription,
    DOCTOR_VERIFICATION: Verification,
    PHARMACIST_VERIFICATION: Verification,
}


def parse_entity(entity_type: str, payload: dict[str, Any]) -> EntityPayload:
    model = ENTITY_MODELS.get(entity_type, EntityPayload)
    return model.model_validate(payload)
