from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import Identity, get_current_identity
from matricare.schemas.clinical import AppointmentCreate
from matricare.schemas.entities import Appointment
from matricare.services.clinical import book_appointment, list_patient_appointments

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=Appointment, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return book_appointment(
        db,
        patient_id=identity.user_id,
        clinician_id=payload.clinician_id,
        scheduled_for=payload.scheduled_for,
        reason=payload.reason,
    )


@router.get("", response_model=list[Appointment])
def list_appointments(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return list_patient_appointments(db, identity.user_id)
