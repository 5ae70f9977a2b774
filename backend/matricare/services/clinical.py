from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from matricare.core.settings import settings
from matricare.schemas.entities import (
    APPOINTMENT,
    CURRENT_SUBTYPE,
    MEDICAL_REPORT,
    PRESCRIPTION,
    VISIT_RECORD,
    Appointment,
    AppointmentStatus,
    Prescription,
)
from matricare.services.entities import (
    create_entity,
    delete_by_types,
    get_by_subtype,
    get_entity,
    list_entities,
    parse_payloads,
    update_entity,
    upsert_by_subtype,
)
from matricare.services.notifications import NotificationMessage, notify
from matricare.services.users import get_user_by_id

STATUS_MESSAGES = {
    AppointmentStatus.scheduled: "Your appointment has been scheduled.",
    AppointmentStatus.in_progress: "Your consultation is now in progress.",
    AppointmentStatus.completed: "Your consultation has been completed.",
    AppointmentStatus.cancelled: "Your appointment has been cancelled.",
}


class AppointmentOwnershipError(PermissionError):
    pass


def book_appointment(
    db: Session,
    *,
    patient_id: str,
    clinician_id: str,
    scheduled_for: datetime,
    reason: str | None = None,
) -> Appointment:
    payload = create_entity(
        db,
        APPOINTMENT,
        {
            "patient_id": patient_id,
            "clinician_id": clinician_id,
            "scheduled_for": scheduled_for,
            "status": AppointmentStatus.scheduled,
            "reason": reason,
        },
        owner_id=patient_id,
        subject_id=clinician_id,
    )
    appointment = Appointment.model_validate(payload)
    notify(
        db,
        patient_id,
        NotificationMessage(
            type="APPOINTMENT",
            entity_id=appointment.id,
            title="Appointment Scheduled",
            message=f"Confirmed for {scheduled_for:%Y-%m-%d %H:%M}.",
            link="/appointments",
        ),
    )
    notify(
        db,
        clinician_id,
        NotificationMessage(
            type="NEW_APPOINTMENT",
            entity_id=appointment.id,
            title="New Appointment",
            message="A patient has booked an appointment with you.",
            link="/doctor/appointments",
        ),
    )
    return appointment


def list_patient_appointments(db: Session, patient_id: str) -> list[Appointment]:
    return parse_payloads(APPOINTMENT, list_entities(db, APPOINTMENT, owner_id=patient_id, order="asc"))


def update_appointment_status(
    db: Session,
    *,
    appointment_id: str,
    patient_id: str,
    clinician_id: str,
    status: AppointmentStatus,
    notes: str | None = None,
) -> Appointment | None:
    existing = get_entity(db, appointment_id, APPOINTMENT, owner_id=patient_id)
    if existing is None:
        return None
    if existing.get("clinician_id") != clinician_id:
        raise AppointmentOwnershipError(appointment_id)

    patch: dict[str, Any] = {"status": status}
    if notes:
        patch["clinician_notes"] = notes
    updated = update_entity(db, appointment_id, APPOINTMENT, patch, owner_id=patient_id)
    if updated is None:
        return None
    notify(
        db,
        patient_id,
        NotificationMessage(
            type="APPOINTMENT_STATUS",
            entity_id=appointment_id,
            title="Appointment Update",
            message=STATUS_MESSAGES[status],
            link="/appointments",
        ),
    )
    return Appointment.model_validate(updated)


def create_prescription(
    db: Session,
    *,
    patient_id: str,
    clinician_id: str,
    medications: list[str],
    instructions: str = "",
) -> Prescription:
    payload = create_entity(
        db,
        PRESCRIPTION,
        {
            "patient_id": patient_id,
            "clinician_id": clinician_id,
            "medications": medications,
            "instructions": instructions,
            "issued_at": datetime.now(timezone.utc),
        },
        owner_id=patient_id,
        subject_id=clinician_id,
    )
    prescription = Prescription.model_validate(payload)
    notify(
        db,
        patient_id,
        NotificationMessage(
            type="NEW_PRESCRIPTION",
            entity_id=prescription.id,
            title="New Prescription",
            message="Your doctor has issued a new prescription.",
            link="/prescriptions",
        ),
    )
    return prescription


def get_medical_report(db: Session, patient_id: str) -> dict[str, Any] | None:
    return get_by_subtype(db, MEDICAL_REPORT, patient_id, CURRENT_SUBTYPE)


def save_medical_report(db: Session, patient_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return upsert_by_subtype(db, MEDICAL_REPORT, patient_id, CURRENT_SUBTYPE, data)


def patient_record(db: Session, patient_id: str) -> dict[str, Any] | None:
    """Protected view of a patient, assembled for a consented clinician."""
    patient = get_user_by_id(db, patient_id)
    if patient is None:
        return None
    return {
        "patient_id": patient.id,
        "full_name": patient.full_name,
        "email": patient.email,
        "medical_report": get_medical_report(db, patient_id),
        "visit_history": list_entities(db, VISIT_RECORD, owner_id=patient_id, order="asc"),
        "appointments": list_patient_appointments(db, patient_id),
        "prescriptions": parse_payloads(PRESCRIPTION, list_entities(db, PRESCRIPTION, owner_id=patient_id)),
    }


def reset_profile(db: Session, user_id: str) -> int:
    return delete_by_types(db, user_id, settings.profile_reset_types)
