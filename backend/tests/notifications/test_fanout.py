import logging

from sqlalchemy.exc import SQLAlchemyError

from matricare.models.entity import Entity
from matricare.services import notifications
from matricare.services.entities import list_entities
from matricare.services.notifications import (
    NotificationMessage,
    broadcast_to_role,
    clear_notifications,
    list_notifications,
    mark_all_read,
    mark_read,
    notify,
)

MESSAGE = NotificationMessage(
    type="NEW_DOCTOR_VERIFICATION",
    title="New Verification Request",
    message="Dr. Karim has submitted a verification request.",
    link="/admin/medical/verifications",
    entity_id="verification-1",
)


def test_notify_writes_one_unread_notification(db):
    payload = notify(db, "user-1", MESSAGE)

    stored = list_notifications(db, "user-1")

    assert payload is not None
    assert len(stored) == 1
    assert stored[0].id == payload["id"]
    assert stored[0].user_id == "user-1"
    assert stored[0].is_read is False
    assert stored[0].link == "/admin/medical/verifications"


def test_notify_failure_is_logged_and_swallowed(db, monkeypatch, caplog):
    def _fail(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(notifications, "create_entity", _fail)

    with caplog.at_level(logging.ERROR, logger="matricare.notifications"):
        assert notify(db, "user-1", MESSAGE) is None

    assert "was not delivered" in caplog.text


def test_broadcast_reaches_every_alias_spelling(db, make_user):
    canonical = make_user("medical_admin")
    legacy = make_user("med-admin")
    hyphenated = make_user("medical-admin")
    make_user("ops_admin")
    make_user("medical_admin", is_active=False)

    result = broadcast_to_role(db, "medicaladmin", MESSAGE)

    assert result.role == "medical_admin"
    assert set(result.delivered) == {canonical.id, legacy.id, hyphenated.id}
    assert result.failed == []
    for user in (canonical, legacy, hyphenated):
        assert len(list_entities(db, "notification", owner_id=user.id)) == 1


def test_broadcast_tolerates_partial_failure(db, make_user, monkeypatch):
    first = make_user("ops_admin")
    second = make_user("ops")
    real_create = notifications.create_entity

    def _flaky(session, entity_type, data, *, owner_id=None, **kwargs):
        if owner_id == second.id:
            raise SQLAlchemyError("write failed")
        return real_create(session, entity_type, data, owner_id=owner_id, **kwargs)

    monkeypatch.setattr(notifications, "create_entity", _flaky)

    result = broadcast_to_role(db, "ops_admin", MESSAGE)

    assert result.delivered == [first.id]
    assert result.failed == [second.id]
    assert result.recipients == 2
    assert len(list_entities(db, "notification", owner_id=first.id)) == 1
    assert list_entities(db, "notification", owner_id=second.id) == []


def test_broadcast_to_blank_role_sends_nothing(db, make_user):
    make_user("mother")
    result = broadcast_to_role(db, "  ", MESSAGE)
    assert result.recipients == 0


def test_mark_read_is_owner_scoped(db):
    payload = notify(db, "user-1", MESSAGE)

    assert mark_read(db, "user-2", payload["id"]) is None
    assert mark_read(db, "user-1", payload["id"]).is_read is True


def test_mark_all_and_clear(db):
    notify(db, "user-1", MESSAGE)
    notify(db, "user-1", MESSAGE)
    notify(db, "user-2", MESSAGE)

    assert mark_all_read(db, "user-1") == 2
    assert mark_all_read(db, "user-1") == 0
    assert all(item.is_read for item in list_notifications(db, "user-1"))
    assert clear_notifications(db, "user-1") == 2
    assert list_notifications(db, "user-1") == []
    assert len(list_notifications(db, "user-2")) == 1


def test_notification_api(api_client, make_user, headers_for, db):
    user = make_user("mother")
    payload = notify(db, user.id, MESSAGE)
    headers = headers_for(user)

    listed = api_client.get("/notifications", headers=headers)
    read = api_client.patch(f"/notifications/{payload['id']}", headers=headers)
    missing = api_client.patch("/notifications/unknown", headers=headers)
    mark_all = api_client.post("/notifications/mark-all", headers=headers)

    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()] == [payload["id"]]
    assert read.json()["is_read"] is True
    assert missing.status_code == 404
    assert mark_all.json() == {"ok": True, "updated": 0}


def test_corrupted_notification_is_skipped_not_raised(api_client, make_user, headers_for, db):
    user = make_user("mother")
    healthy = notify(db, user.id, MESSAGE)
    broken = notify(db, user.id, MESSAGE)
    row = db.get(Entity, broken["id"])
    row.data = "{not json"
    db.commit()
    headers = headers_for(user)

    listed = api_client.get("/notifications", headers=headers)
    patched = api_client.patch(f"/notifications/{broken['id']}", headers=headers)

    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()] == [healthy["id"]]
    assert patched.status_code == 404
    assert mark_read(db, user.id, healthy["id"]).is_read is True
