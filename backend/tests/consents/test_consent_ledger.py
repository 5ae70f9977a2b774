from datetime import datetime, timedelta, timezone

import pytest

from matricare.schemas.entities import ConsentStatus
from matricare.services.consents import (
    REASON_NO_ACTIVE_CONSENT,
    REASON_PATIENT_ID_REQUIRED,
    ConsentNotFoundError,
    check_access,
    grant_consent,
    is_authorized,
    list_clinician_grants,
    list_patient_consents,
    request_access,
    revoke_consent,
)
from matricare.services.entities import create_entity, list_entities

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_grant_expires_without_revoke(db):
    grant_consent(db, patient_id="patient-1", clinician_id="doc-1", expires_in_days=1, now=T0)

    assert is_authorized(db, "doc-1", "patient-1", now=T0 + timedelta(hours=1)) is True
    assert is_authorized(db, "doc-1", "patient-1", now=T0 + timedelta(hours=25)) is False

    stored = list_entities(db, "medical_consent", owner_id="patient-1")
    assert [item["status"] for item in stored] == ["active"]


def test_check_access_reports_matched_consent(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)

    decision = check_access(db, "doc-1", "patient-1", now=T0 + timedelta(days=1))

    assert decision.authorized is True
    assert decision.matched_consent_id == grant.id
    assert decision.reason_code is None


def test_grant_default_window_is_thirty_days(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)
    assert grant.expires_at == T0 + timedelta(days=30)
    assert grant.status == ConsentStatus.active


def test_unrelated_clinician_is_denied(db):
    grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)

    decision = check_access(db, "doc-2", "patient-1", now=T0)

    assert decision.authorized is False
    assert decision.reason_code == REASON_NO_ACTIVE_CONSENT


def test_grant_from_other_patient_does_not_count(db):
    grant_consent(db, patient_id="patient-2", clinician_id="doc-1", now=T0)
    assert is_authorized(db, "doc-1", "patient-1", now=T0) is False


def test_missing_ids_fail_closed(db):
    assert check_access(db, "doc-1", None).reason_code == REASON_PATIENT_ID_REQUIRED
    assert check_access(db, "doc-1", "").authorized is False
    assert check_access(db, None, "patient-1").authorized is False


def test_revoke_is_visible_to_next_check(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)
    assert is_authorized(db, "doc-1", "patient-1", now=T0) is True

    revoked = revoke_consent(db, consent_id=grant.id, patient_id="patient-1", now=T0)

    assert revoked.status == ConsentStatus.revoked
    assert revoked.revoked_at == T0
    assert is_authorized(db, "doc-1", "patient-1", now=T0) is False


def test_duplicate_grants_each_authorize(db):
    first = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)
    second = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)

    revoke_consent(db, consent_id=first.id, patient_id="patient-1", now=T0)
    decision = check_access(db, "doc-1", "patient-1", now=T0)

    assert decision.authorized is True
    assert decision.matched_consent_id == second.id


def test_revoke_by_other_patient_is_rejected(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)

    with pytest.raises(ConsentNotFoundError):
        revoke_consent(db, consent_id=grant.id, patient_id="patient-2")

    assert is_authorized(db, "doc-1", "patient-1", now=T0) is True


def test_revoke_unknown_consent_is_rejected(db):
    with pytest.raises(ConsentNotFoundError):
        revoke_consent(db, consent_id="missing", patient_id="patient-1")


def test_revoke_twice_keeps_first_revocation(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)
    revoke_consent(db, consent_id=grant.id, patient_id="patient-1", now=T0)

    again = revoke_consent(db, consent_id=grant.id, patient_id="patient-1", now=T0 + timedelta(days=2))

    assert again.revoked_at == T0


def test_malformed_consent_rows_never_authorize(db):
    create_entity(
        db,
        "medical_consent",
        {"clinician_id": "doc-1", "status": "active"},
        owner_id="patient-1",
        subject_id="doc-1",
    )
    assert is_authorized(db, "doc-1", "patient-1") is False


def test_grant_without_expiry_stays_valid(db):
    create_entity(
        db,
        "medical_consent",
        {
            "patient_id": "patient-1",
            "clinician_id": "doc-1",
            "granted_at": T0.isoformat(),
            "status": "active",
        },
        owner_id="patient-1",
        subject_id="doc-1",
    )
    assert is_authorized(db, "doc-1", "patient-1", now=T0 + timedelta(days=3650)) is True


def test_listings(db):
    grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)
    expired = grant_consent(db, patient_id="patient-2", clinician_id="doc-1", expires_in_days=1, now=T0)
    grant_consent(db, patient_id="patient-1", clinician_id="doc-2", now=T0)

    patient_grants = list_patient_consents(db, "patient-1")
    held = list_clinician_grants(db, "doc-1", now=T0 + timedelta(days=2))

    assert {grant.clinician_id for grant in patient_grants} == {"doc-1", "doc-2"}
    assert [grant.patient_id for grant in held] == ["patient-1"]
    assert expired.id not in {grant.id for grant in held}


def test_grant_notifies_clinician(db):
    grant = grant_consent(db, patient_id="patient-1", clinician_id="doc-1", now=T0)

    notifications = list_entities(db, "notification", owner_id="doc-1")

    assert len(notifications) == 1
    assert notifications[0]["type"] == "MEDICAL_ACCESS_GRANTED"
    assert notifications[0]["entity_id"] == grant.id


def test_access_request_does_not_grant(db):
    access_request = request_access(db, clinician_id="doc-1", patient_id="patient-1")

    notifications = list_entities(db, "notification", owner_id="patient-1")

    assert access_request.status.value == "pending"
    assert access_request.reason == "Medical consultation"
    assert notifications[0]["type"] == "MEDICAL_ACCESS_REQUEST"
    assert is_authorized(db, "doc-1", "patient-1") is False


def test_invalid_grant_arguments(db):
    with pytest.raises(ValueError):
        grant_consent(db, patient_id="patient-1", clinician_id="", now=T0)
    with pytest.raises(ValueError):
        grant_consent(db, patient_id="patient-1", clinician_id="doc-1", expires_in_days=0, now=T0)
