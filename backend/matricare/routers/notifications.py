from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from matricare.db.session import get_db
from matricare.deps import Identity, get_current_identity
from matricare.schemas.entities import Notification
from matricare.schemas.notification import MarkAllReadOut
from matricare.services.notifications import list_notifications, mark_all_read, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[Notification])
def get_notifications(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return list_notifications(db, identity.user_id)


@router.patch("/{notification_id}", response_model=Notification)
def read_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    item = mark_read(db, identity.user_id, notification_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return item


@router.post("/mark-all", response_model=MarkAllReadOut)
def read_all_notifications(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return MarkAllReadOut(updated=mark_all_read(db, identity.user_id))
