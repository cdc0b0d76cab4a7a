# tests/test_auth.py
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from milli import crud, models, security

from conftest import PASSWORD, auth_headers, make_user


def _login(client, username, password=PASSWORD):
    return client.post("/api/v1/auth/token", data={"username": username, "password": password})


def test_login_with_email_and_phone(client, db):
    user = make_user(db, email="kirk@example.com", phone="5551234567")

    by_email = _login(client, "kirk@example.com")
    assert by_email.status_code == 200
    body = by_email.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == user.id

    assert _login(client, "5551234567").status_code == 200


def test_login_updates_last_visit(client, db):
    user = make_user(db, email="kirk@example.com")
    before = user.login.last_visit

    _login(client, "kirk@example.com")
    db.expire_all()
    assert crud.get_user(db, user.id).login.last_visit >= before


def test_wrong_password_is_401(client, db):
    make_user(db, email="kirk@example.com")
    assert _login(client, "kirk@example.com", "not-it").status_code == 401
    assert _login(client, "nobody@example.com").status_code == 401


def test_invited_user_without_password_cannot_log_in(client, db):
    make_user(db, email="invited@example.com", password=None)
    assert _login(client, "invited@example.com", "anything").status_code == 401


def test_deauthenticate_revokes_token(client, db, patient):
    headers = auth_headers(db, patient)
    assert client.get("/api/v1/users/me", headers=headers).status_code == 200

    response = client.post("/api/v1/auth/deauthenticate", headers=headers)
    assert response.json() == {"success": True}
    assert client.get("/api/v1/users/me", headers=headers).status_code == 401


def test_deauthenticate_keeps_other_sessions(client, db, patient):
    first = auth_headers(db, patient)
    second = auth_headers(db, patient)

    client.post("/api/v1/auth/deauthenticate", headers=first)
    assert client.get("/api/v1/users/me", headers=second).status_code == 200


def test_garbage_token_is_401(client):
    response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


# --- invitations ---

def test_doctor_cannot_invite_admin(client, doctor_headers):
    response = client.post("/api/v1/auth/invite", headers=doctor_headers, json={
        "name": "Hue", "email": "hue@example.com", "phone": "5557434046", "role": "ADMIN",
    })
    assert response.status_code == 403


def test_patient_cannot_invite(client, patient_headers):
    response = client.post("/api/v1/auth/invite", headers=patient_headers, json={
        "name": "Picard", "email": "jl@example.com", "role": "PATIENT",
    })
    assert response.status_code == 403


def test_admin_can_invite_admin(client, admin_headers, messaging):
    response = client.post("/api/v1/auth/invite", headers=admin_headers, json={
        "email": "riker@example.com", "role": "ADMIN",
    })
    assert response.status_code == 201
    assert messaging.sent[0]["invited"] is True


@pytest.mark.parametrize("contact", [{"phone": "feelin-wise"}, {"email": "messin everything up"}, {}])
def test_invite_with_invalid_contact_is_400(client, doctor_headers, contact):
    response = client.post("/api/v1/auth/invite", headers=doctor_headers, json={
        "name": "Wesley", "role": "PATIENT", **contact,
    })
    assert response.status_code == 400


def test_invited_patient_becomes_doctors_patient(client, db, doctor, doctor_headers, messaging):
    response = client.post("/api/v1/auth/invite", headers=doctor_headers, json={
        "name": "Seven", "email": "7of9@example.com", "role": "PATIENT",
    })
    assert response.status_code == 201
    code = messaging.sent[0]["code"]

    response = client.post("/api/v1/auth/code/submit", json={"code": code})
    assert response.status_code == 200
    new_user = response.json()["user"]
    assert new_user["role"] == "PATIENT"
    assert new_user["name"] == "Seven"

    me = client.get("/api/v1/users/me", headers=doctor_headers).json()
    assert [p["id"] for p in me["patients"]] == [new_user["id"]]

    # Codes are single use
    assert client.post("/api/v1/auth/code/submit", json={"code": code}).status_code == 401


def test_invited_doctor_is_not_linked(client, db, doctor_headers, messaging):
    client.post("/api/v1/auth/invite", headers=doctor_headers, json={
        "name": "Crusher", "email": "crushedit@example.com", "role": "DOCTOR",
    })
    response = client.post("/api/v1/auth/code/submit", json={"code": messaging.sent[0]["code"]})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "DOCTOR"

    me = client.get("/api/v1/users/me", headers=doctor_headers).json()
    assert me["patients"] == []


def test_submitted_code_token_is_usable(client, db, doctor_headers, messaging):
    client.post("/api/v1/auth/invite", headers=doctor_headers, json={"email": "new@example.com", "role": "PATIENT"})
    token = client.post("/api/v1/auth/code/submit", json={"code": messaging.sent[0]["code"]}).json()["access_token"]

    response = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["email"] == "new@example.com"


def test_unknown_and_expired_codes_are_401(client, db, patient):
    assert client.post("/api/v1/auth/code/submit", json={"code": "no-such-code"}).status_code == 401

    db_code = crud.create_auth_code(db, email=patient.email, role=patient.role)
    db_code.created = datetime.now(timezone.utc) - timedelta(days=365)
    db.commit()
    assert client.post("/api/v1/auth/code/submit", json={"code": db_code.code}).status_code == 401


# --- login codes ---

def test_request_auth_code_for_known_user(client, db, patient, messaging):
    response = client.post("/api/v1/auth/code/request", json={"email": patient.email})
    assert response.status_code == 200
    assert messaging.sent[0]["email"] == patient.email
    assert messaging.sent[0]["invited"] is False

    response = client.post("/api/v1/auth/code/submit", json={"code": messaging.sent[0]["code"]})
    assert response.json()["user"]["id"] == patient.id


def test_request_auth_code_for_unknown_contact_sends_nothing(client, messaging):
    response = client.post("/api/v1/auth/code/request", json={"phone": "5550000000"})
    assert response.status_code == 200
    assert messaging.sent == []


@pytest.mark.parametrize("contact", [{"phone": "feelin-wise"}, {"email": "messin everything up"}])
def test_request_auth_code_with_invalid_contact_is_400(client, contact):
    assert client.post("/api/v1/auth/code/request", json=contact).status_code == 400


# --- role policy ---

def test_enforce_roles():
    doctor = models.User(id=1, role=models.UserRole.DOCTOR)

    assert security.enforce_roles(doctor) is doctor
    assert security.enforce_roles(doctor, models.UserRole.DOCTOR, models.UserRole.ADMIN) is doctor

    with pytest.raises(HTTPException) as forbidden:
        security.enforce_roles(doctor, models.UserRole.ADMIN)
    assert forbidden.value.status_code == 403

    with pytest.raises(HTTPException) as anonymous:
        security.enforce_roles(None, models.UserRole.PATIENT)
    assert anonymous.value.status_code == 401


def test_password_hashing():
    hashed = security.get_password_hash("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert security.verify_password("s3cret-pass", hashed)
    assert not security.verify_password("wrong", hashed)
    assert not security.verify_password("s3cret-pass", None)
