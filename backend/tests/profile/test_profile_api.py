from matricare.services.entities import create_entity, list_entities

from conftest import TEST_PASSWORD


def test_login_and_me_report_normalized_role(api_client, make_user):
    user = make_user("Ops Admin")

    login = api_client.post("/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    token = login.json()["access_token"]
    me = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert login.status_code == 200
    assert me.status_code == 200
    assert me.json()["role"] == "ops_admin"
    assert me.json()["raw_role"] == "Ops Admin"
    assert me.json()["known_role"] is True


def test_login_rejects_wrong_password(api_client, make_user):
    user = make_user("mother")
    response = api_client.post("/auth/login", json={"email": user.email, "password": "nope"})
    assert response.status_code == 401


def test_medical_report_is_upserted_and_merged(api_client, make_user, headers_for):
    user = make_user("mother")
    headers = headers_for(user)

    missing = api_client.get("/profile/medical-report", headers=headers)
    first = api_client.put(
        "/profile/medical-report", json={"blood_type": "O+", "allergies": ["penicillin"]}, headers=headers
    )
    second = api_client.put("/profile/medical-report", json={"blood_type": "A-"}, headers=headers)
    current = api_client.get("/profile/medical-report", headers=headers)

    assert missing.status_code == 404
    assert first.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert current.json()["blood_type"] == "A-"
    assert current.json()["allergies"] == ["penicillin"]


def test_reset_removes_only_configured_types_for_caller(api_client, make_user, headers_for, db):
    user = make_user("mother")
    other = make_user("mother")
    create_entity(db, "journal_entry", {"text": "week 12"}, owner_id=user.id)
    create_entity(db, "vaccine", {"name": "Tdap"}, owner_id=user.id)
    create_entity(db, "medical_consent", {"status": "active"}, owner_id=user.id)
    create_entity(db, "journal_entry", {"text": "mine"}, owner_id=other.id)

    response = api_client.post("/profile/reset", headers=headers_for(user))

    assert response.json() == {"ok": True, "removed": 2}
    assert list_entities(db, "journal_entry", owner_id=user.id) == []
    assert len(list_entities(db, "medical_consent", owner_id=user.id)) == 1
    assert len(list_entities(db, "journal_entry", owner_id=other.id)) == 1
