from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import Identity, require_roles
from matricare.schemas.verification import VerificationCreate, VerificationOut
from matricare.services.verifications import VerificationStateError, submit_verification

router = APIRouter(prefix="/verifications", tags=["verifications"])


@router.post("", response_model=VerificationOut, status_code=status.HTTP_201_CREATED)
def submit(
    payload: VerificationCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles("doctor", "pharmacist")),
):
    try:
        verification, result = submit_verification(
            db,
            applicant_id=identity.user_id,
            applicant_role=identity.raw_role,
            display_name=payload.display_name,
            license_number=payload.license_number,
            organization=payload.organization,
            documents=payload.documents,
        )
    except VerificationStateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return VerificationOut(verification=verification, reviewers_notified=len(result.delivered))
