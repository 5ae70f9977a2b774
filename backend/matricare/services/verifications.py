from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from matricare.schemas.entities import (
    CURRENT_SUBTYPE,
    DOCTOR_VERIFICATION,
    PHARMACIST_VERIFICATION,
    Verification,
    VerificationStatus,
)
from matricare.services.entities import get_by_subtype, upsert_by_subtype
from matricare.services.notifications import BroadcastResult, NotificationMessage, broadcast_to_role
from matricare.services.roles import Role, parse_role

# applicant role -> (entity type, reviewing role, link)
VERIFICATION_ROUTES: dict[Role, tuple[str, Role, str]] = {
    Role.doctor: (DOCTOR_VERIFICATION, Role.medical_admin, "/admin/medical/verifications"),
    Role.pharmacist: (PHARMACIST_VERIFICATION, Role.ops_admin, "/admin/verifications/pharmacies"),
}


class VerificationStateError(ValueError):
    pass


def submit_verification(
    db: Session,
    *,
    applicant_id: str,
    applicant_role: str,
    display_name: str,
    license_number: str,
    organization: str = "",
    documents: list[str] | None = None,
) -> tuple[Verification, BroadcastResult]:
    role = parse_role(applicant_role)
    if role not in VERIFICATION_ROUTES:
        raise VerificationStateError(f"Role {role.value} does not require verification")
    entity_type, reviewer_role, link = VERIFICATION_ROUTES[role]

    existing = get_by_subtype(db, entity_type, applicant_id, CURRENT_SUBTYPE)
    if existing:
        current_status = existing.get("status")
        if current_status == VerificationStatus.approved.value:
            raise VerificationStateError("Already verified")
        if current_status == VerificationStatus.pending.value:
            raise VerificationStateError("Verification request already pending")

    payload = upsert_by_subtype(
        db,
        entity_type,
        applicant_id,
        CURRENT_SUBTYPE,
        {
            "applicant_id": applicant_id,
            "role": role.value,
            "display_name": display_name,
            "license_number": license_number,
            "organization": organization,
            "documents": documents or [],
            "status": VerificationStatus.pending,
            "submitted_at": datetime.now(timezone.utc),
        },
    )
    verification = Verification.model_validate(payload)
    result = broadcast_to_role(
        db,
        reviewer_role.value,
        NotificationMessage(
            type=f"NEW_{role.value.upper()}_VERIFICATION",
            entity_id=verification.id,
            title="New Verification Request",
            message=f"{display_name} has submitted a verification request.",
            link=link,
        ),
    )
    return verification, result
