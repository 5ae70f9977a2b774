from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import Identity, get_current_identity
from matricare.schemas.clinical import ProfileResetOut
from matricare.services.clinical import get_medical_report, reset_profile, save_medical_report

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/medical-report")
def read_medical_report(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    report = get_medical_report(db, identity.user_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medical report not found")
    return report


@router.put("/medical-report")
def write_medical_report(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return save_medical_report(db, identity.user_id, payload)


@router.post("/reset", response_model=ProfileResetOut)
def reset(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return ProfileResetOut(removed=reset_profile(db, identity.user_id))
