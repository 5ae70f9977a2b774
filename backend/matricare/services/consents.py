"""Medical consent ledger.

A grant is a ``medical_consent`` entity owned by the patient with the
clinician as its subject. Grants are never deleted and never rewritten on
expiry: whether a grant is in force is computed from ``status`` and
``expires_at`` on every check.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from matricare.core.settings import settings
from matricare.schemas.entities import (
    MEDICAL_ACCESS_REQUEST,
    MEDICAL_CONSENT,
    AccessLevel,
    AccessRequest,
    ConsentGrant,
    ConsentStatus,
)
from matricare.services.entities import create_entity, get_entity, list_entities, update_entity
from matricare.services.notifications import NotificationMessage, notify

logger = logging.getLogger("matricare.consents")

REASON_NO_ACTIVE_CONSENT = "no_active_consent"
REASON_PATIENT_ID_REQUIRED = "patient_id_required"
REASON_CONSENT_CHECK_FAILED = "consent_check_failed"


class ConsentNotFoundError(LookupError):
    def __init__(self, consent_id: str) -> None:
        super().__init__(f"Consent {consent_id} not found")
        self.consent_id = consent_id


@dataclass(frozen=True)
class AccessDecision:
    authorized: bool
    reason_code: str | None = None
    matched_consent_id: str | None = None


def _resolve_now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _parse_grant(payload: dict[str, Any]) -> ConsentGrant | None:
    try:
        return ConsentGrant.model_validate(payload)
    except ValidationError:
        logger.warning("Skipping malformed consent record %s", payload.get("id"))
        return None


def grant_consent(
    db: Session,
    *,
    patient_id: str,
    clinician_id: str,
    expires_in_days: int | None = None,
    access_level: AccessLevel = AccessLevel.full,
    now: datetime | None = None,
) -> ConsentGrant:
    if not clinician_id:
        raise ValueError("clinician_id is required")
    days = settings.consent_default_days if expires_in_days is None else expires_in_days
    if days <= 0:
        raise ValueError("expires_in_days must be positive")

    granted_at = _resolve_now(now)
    payload = create_entity(
        db,
        MEDICAL_CONSENT,
        {
            "patient_id": patient_id,
            "clinician_id": clinician_id,
            "granted_at": granted_at,
            "expires_at": granted_at + timedelta(days=days),
            "status": ConsentStatus.active,
            "access_level": access_level,
        },
        owner_id=patient_id,
        subject_id=clinician_id,
    )
    grant = ConsentGrant.model_validate(payload)
    logger.info(
        "Consent %s granted by patient %s to clinician %s until %s",
        grant.id,
        patient_id,
        clinician_id,
        grant.expires_at.isoformat() if grant.expires_at else "never",
    )
    notify(
        db,
        clinician_id,
        NotificationMessage(
            type="MEDICAL_ACCESS_GRANTED",
            entity_id=grant.id,
            title="Medical Records Access Granted",
            message="A patient has granted you access to their medical records.",
            link="/doctor/patients",
        ),
    )
    return grant


def revoke_consent(
    db: Session,
    *,
    consent_id: str,
    patient_id: str,
    now: datetime | None = None,
) -> ConsentGrant:
    """Revoke a grant on behalf of the patient who issued it.

    Raises ConsentNotFoundError when the grant does not exist or was issued
    by someone else; the two cases are indistinguishable to the caller.
    """
    existing = get_entity(db, consent_id, MEDICAL_CONSENT, owner_id=patient_id)
    grant = _parse_grant(existing) if existing else None
    if grant is None or grant.patient_id != patient_id:
        raise ConsentNotFoundError(consent_id)
    if grant.status == ConsentStatus.revoked:
        return grant

    updated = update_entity(
        db,
        consent_id,
        MEDICAL_CONSENT,
        {"status": ConsentStatus.revoked, "revoked_at": _resolve_now(now)},
        owner_id=patient_id,
    )
    if updated is None:
        raise ConsentNotFoundError(consent_id)
    revoked = ConsentGrant.model_validate(updated)
    logger.info("Consent %s revoked by patient %s", consent_id, patient_id)
    notify(
        db,
        revoked.clinician_id,
        NotificationMessage(
            type="MEDICAL_ACCESS_REVOKED",
            entity_id=consent_id,
            title="Medical Records Access Revoked",
            message="A patient has revoked your access to their medical records.",
            link="/doctor/patients",
        ),
    )
    return revoked


def check_access(
    db: Session,
    clinician_id: str | None,
    patient_id: str | None,
    *,
    now: datetime | None = None,
) -> AccessDecision:
    if not patient_id:
        return AccessDecision(authorized=False, reason_code=REASON_PATIENT_ID_REQUIRED)
    if not clinician_id:
        return AccessDecision(authorized=False, reason_code=REASON_NO_ACTIVE_CONSENT)

    current = _resolve_now(now)
    candidates = list_entities(
        db,
        MEDICAL_CONSENT,
        owner_id=patient_id,
        subject_id=clinician_id,
        order="desc",
        limit=settings.consent_scan_limit,
    )
    for payload in candidates:
        grant = _parse_grant(payload)
        if grant is None:
            continue
        if grant.clinician_id != clinician_id or grant.patient_id != patient_id:
            continue
        if grant.is_effective(current):
            return AccessDecision(authorized=True, matched_consent_id=grant.id)
    return AccessDecision(authorized=False, reason_code=REASON_NO_ACTIVE_CONSENT)


def is_authorized(
    db: Session,
    clinician_id: str | None,
    patient_id: str | None,
    *,
    now: datetime | None = None,
) -> bool:
    return check_access(db, clinician_id, patient_id, now=now).authorized


def list_patient_consents(db: Session, patient_id: str) -> list[ConsentGrant]:
    grants = (_parse_grant(item) for item in list_entities(db, MEDICAL_CONSENT, owner_id=patient_id))
    return [grant for grant in grants if grant is not None]


def list_clinician_grants(
    db: Session,
    clinician_id: str,
    *,
    now: datetime | None = None,
) -> list[ConsentGrant]:
    current = _resolve_now(now)
    grants = (_parse_grant(item) for item in list_entities(db, MEDICAL_CONSENT, subject_id=clinician_id))
    return [
        grant
        for grant in grants
        if grant is not None and grant.clinician_id == clinician_id and grant.is_effective(current)
    ]


def request_access(
    db: Session,
    *,
    clinician_id: str,
    patient_id: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> AccessRequest:
    payload = create_entity(
        db,
        MEDICAL_ACCESS_REQUEST,
        {
            "clinician_id": clinician_id,
            "patient_id": patient_id,
            "reason": reason or "Medical consultation",
            "requested_at": _resolve_now(now),
            "status": "pending",
        },
        owner_id=clinician_id,
        subject_id=patient_id,
    )
    access_request = AccessRequest.model_validate(payload)
    notify(
        db,
        patient_id,
        NotificationMessage(
            type="MEDICAL_ACCESS_REQUEST",
            entity_id=access_request.id,
            title="Medical Records Access Request",
            message="A doctor has requested access to your medical records.",
            link="/profile",
        ),
    )
    return access_request
