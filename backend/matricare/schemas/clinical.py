from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from matricare.schemas.entities import Appointment, AppointmentStatus, Prescription


class AppointmentCreate(BaseModel):
    clinician_id: str = Field(min_length=1)
    scheduled_for: datetime
    reason: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None


class PrescriptionCreate(BaseModel):
    patient_id: str = Field(min_length=1)
    medications: list[str] = Field(min_length=1)
    instructions: str = ""


class PatientRecordOut(BaseModel):
    patient_id: str
    full_name: str
    email: str
    consent_id: str
    medical_report: Optional[dict[str, Any]] = None
    visit_history: list[dict[str, Any]] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
    prescriptions: list[Prescription] = Field(default_factory=list)


class ProfileResetOut(BaseModel):
    ok: bool = True
    removed: int
