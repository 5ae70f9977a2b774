from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import Identity, get_current_identity, require_roles
from matricare.schemas.consent import AccessRequestCreate, ConsentGrantCreate, ConsentRevokeOut
from matricare.schemas.entities import AccessRequest, ConsentGrant
from matricare.services.consents import (
    ConsentNotFoundError,
    grant_consent,
    list_patient_consents,
    request_access,
    revoke_consent,
)

router = APIRouter(prefix="/medical/consent", tags=["consent"])


@router.post("/grant", response_model=ConsentGrant, status_code=status.HTTP_201_CREATED)
def grant(
    payload: ConsentGrantCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    if payload.clinician_id == identity.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot grant consent to yourself")
    return grant_consent(
        db,
        patient_id=identity.user_id,
        clinician_id=payload.clinician_id,
        expires_in_days=payload.expires_in_days,
        access_level=payload.access_level,
    )


@router.delete("/{consent_id}", response_model=ConsentRevokeOut)
def revoke(
    consent_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    try:
        revoke_consent(db, consent_id=consent_id, patient_id=identity.user_id)
    except ConsentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consent not found")
    return ConsentRevokeOut(success=True, consent_id=consent_id)


@router.get("", response_model=list[ConsentGrant])
def list_consents(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return list_patient_consents(db, identity.user_id)


@router.post("/request", response_model=AccessRequest, status_code=status.HTTP_201_CREATED)
def create_access_request(
    payload: AccessRequestCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("doctor")),
):
    return request_access(
        db,
        clinician_id=identity.user_id,
        patient_id=payload.patient_id,
        reason=payload.reason,
    )
