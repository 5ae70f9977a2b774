from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import ConsentContext, Identity, require_consent_for_patient, require_roles
from matricare.schemas.clinical import AppointmentStatusUpdate, PatientRecordOut, PrescriptionCreate
from matricare.schemas.entities import Appointment, ConsentGrant, Prescription
from matricare.services.audit import log_event
from matricare.services.clinical import (
    AppointmentOwnershipError,
    create_prescription,
    patient_record,
    update_appointment_status,
)
from matricare.services.consents import list_clinician_grants

router = APIRouter(prefix="/doctor", tags=["doctor"])


def _audit(
    db: Session,
    request: Request,
    consent: ConsentContext,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    request_id: str | None,
    after_data: dict | None = None,
) -> None:
    log_event(
        db,
        actor_id=consent.identity.user_id,
        actor_email=consent.identity.email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        consent_id=consent.consent_id,
        after_data=after_data,
        request_id=request_id,
        ip_address=request.client.host if request.client else None,
    )
    db.commit()


@router.get("/accessible-patients", response_model=list[ConsentGrant])
def accessible_patients(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("doctor")),
):
    return list_clinician_grants(db, identity.user_id)


@router.get("/patients/{patient_id}", response_model=PatientRecordOut)
def get_patient(
    patient_id: str,
    request: Request,
    db: Session = Depends(get_db),
    _doctor: Identity = Depends(require_roles("doctor")),
    consent: ConsentContext = Depends(require_consent_for_patient("patient_id")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    record = patient_record(db, patient_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    _audit(
        db,
        request,
        consent,
        action="patient_record.viewed",
        entity_type="patient",
        entity_id=patient_id,
        request_id=request_id,
    )
    return PatientRecordOut(consent_id=consent.consent_id, **record)


@router.patch(
    "/patients/{patient_id}/appointments/{appointment_id}/status",
    response_model=Appointment,
)
def set_appointment_status(
    patient_id: str,
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    _doctor: Identity = Depends(require_roles("doctor")),
    consent: ConsentContext = Depends(require_consent_for_patient("patient_id")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    try:
        appointment = update_appointment_status(
            db,
            appointment_id=appointment_id,
            patient_id=patient_id,
            clinician_id=consent.identity.user_id,
            status=payload.status,
            notes=payload.notes,
        )
    except AppointmentOwnershipError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to update this appointment",
        )
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    _audit(
        db,
        request,
        consent,
        action="appointment.status_updated",
        entity_type="appointment",
        entity_id=appointment_id,
        request_id=request_id,
        after_data={"status": appointment.status.value},
    )
    return appointment


@router.post("/prescriptions", response_model=Prescription, status_code=status.HTTP_201_CREATED)
def add_prescription(
    payload: PrescriptionCreate,
    request: Request,
    db: Session = Depends(get_db),
    _doctor: Identity = Depends(require_roles("doctor")),
    consent: ConsentContext = Depends(require_consent_for_patient("patient_id")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    prescription = create_prescription(
        db,
        patient_id=consent.patient_id,
        clinician_id=consent.identity.user_id,
        medications=payload.medications,
        instructions=payload.instructions,
    )
    _audit(
        db,
        request,
        consent,
        action="prescription.created",
        entity_type="prescription",
        entity_id=prescription.id,
        request_id=request_id,
    )
    return prescription
