import asyncio

import pytest
from fastapi import HTTPException

from conftest import PASSWORD, RacingDatabase, auth_headers, register_student, register_faculty

from learnsy.accounts.service import register_user
from learnsy.core.config import settings
from learnsy.core.security import hash_password, verify_password, create_access_token, decode_access_token


def test_password_hash_round_trip():
    stored = hash_password("Secret123")
    assert stored != "Secret123"
    assert verify_password("Secret123", stored)
    assert not verify_password("secret123", stored)
    assert not verify_password("Secret123", None)


def test_access_token_carries_role_and_subject():
    token = create_access_token("USR_ABC", "student", "a@example.com")
    payload = decode_access_token(token)
    assert payload["sub"] == "USR_ABC"
    assert payload["role"] == "student"


def test_missing_jwt_secret_is_fatal(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET_KEY", None)
    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        settings.require_secrets()
    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        create_access_token("USR_ABC", "student", "a@example.com")


def test_student_registration_hides_secrets(client):
    student = register_student(client)
    user = student["user"]
    assert user["role"] == "student"
    assert user["student_id"] == "STU-001"
    assert "password_hash" not in user
    assert "email_verification_token" not in user


def test_registration_flags_email_verification(client):
    response = client.post("/api/signup/faculty/register", json={
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "password": PASSWORD,
        "institution": "Analytical College",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["email_verification_required"] is True
    assert body["user"]["institution"] == "Analytical College"


def test_duplicate_email_rejected(client):
    register_student(client)
    response = client.post("/api/signup/student/register", json={
        "name": "Other Student",
        "email": "student@example.com",
        "password": PASSWORD,
        "student_id": "STU-999",
    })
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "User already exists with this email"}


def test_duplicate_student_id_rejected(client):
    register_student(client)
    response = client.post("/api/signup/student/register", json={
        "name": "Other Student",
        "email": "other@example.com",
        "password": PASSWORD,
        "student_id": "STU-001",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Student ID already exists"


def test_weak_password_fails_validation(client):
    response = client.post("/api/signup/student/register", json={
        "name": "Weak Password",
        "email": "weak@example.com",
        "password": "alllowercase",
        "student_id": "STU-002",
    })
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert any(err["field"] == "password" for err in body["errors"])


def test_login_with_correct_role(client):
    register_student(client)
    response = client.post("/api/auth/student/login", json={
        "email": "student@example.com", "password": PASSWORD
    })
    assert response.status_code == 200
    assert response.json()["token"]

    wrong_role = client.post("/api/auth/faculty/login", json={
        "email": "student@example.com", "password": PASSWORD
    })
    assert wrong_role.status_code == 400
    assert wrong_role.json()["message"] == "Invalid credentials"


def test_legacy_login_path(client):
    register_faculty(client)
    response = client.post("/api/auth/login/faculty", json={
        "email": "faculty@example.com", "password": PASSWORD
    })
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "faculty"


def test_login_wrong_password(client):
    register_student(client)
    response = client.post("/api/signup/student/login", json={
        "email": "student@example.com", "password": "Wrong1234"
    })
    assert response.status_code == 400


def test_profile_requires_token(client):
    response = client.get("/api/signup/profile")
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized"

    response = client.get("/api/signup/profile", headers=auth_headers("garbage"))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_profile_update(client, student):
    response = client.put("/api/signup/profile", json={"name": "Renamed Student"}, headers=student["headers"])
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Renamed Student"

    profile = client.get("/api/auth/profile", headers=student["headers"])
    assert profile.json()["user"]["name"] == "Renamed Student"


def test_verify_email(client, mongo, student):
    import asyncio

    user = asyncio.run(mongo.users.find_one({"user_id": student["user"]["user_id"]}))
    token = user["email_verification_token"]

    response = client.post(f"/api/signup/verify-email/{token}")
    assert response.status_code == 200
    assert response.json()["user"]["is_email_verified"] is True

    again = client.post(f"/api/signup/verify-email/{token}")
    assert again.status_code == 400


def test_stats_faculty_only(client, student, faculty):
    assert client.get("/api/signup/stats", headers=student["headers"]).status_code == 403

    response = client.get("/api/signup/stats", headers=faculty["headers"])
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["total_users"] == 2


def test_login_rate_limit(client, monkeypatch):
    from learnsy.accounts.auth_router import login_limiter

    monkeypatch.setattr(login_limiter, "max_requests", 2)
    payload = {"email": "nobody@example.com", "password": PASSWORD}
    client.post("/api/auth/student/login", json=payload)
    client.post("/api/auth/student/login", json=payload)

    response = client.post("/api/auth/student/login", json=payload)
    assert response.status_code == 429
    body = response.json()
    assert body["message"] == "Too many requests, please try again later."
    assert body["retry_after"] > 0

    client.post("/api/signup/clear-rate-limit")
    assert client.post("/api/auth/student/login", json=payload).status_code == 400


def _signup(email, student_id):
    return {
        "name": "Racing Student",
        "email": email,
        "password": PASSWORD,
        "student_id": student_id,
    }


def test_concurrent_signup_same_email_is_400(mongo):
    asyncio.run(mongo.users.create_index("email", unique=True))
    asyncio.run(register_user(mongo, "student", _signup("race@example.com", "STU-100")))

    # the second request passed its existence check before the first insert landed
    with pytest.raises(HTTPException) as exc:
        asyncio.run(register_user(RacingDatabase(mongo, "users"), "student",
                                  _signup("race@example.com", "STU-200")))
    assert exc.value.status_code == 400
    assert exc.value.detail == "User already exists with this email"


def test_concurrent_signup_same_student_id_is_400(mongo):
    asyncio.run(mongo.users.create_index("student_id", unique=True))
    asyncio.run(register_user(mongo, "student", _signup("first@example.com", "STU-100")))

    with pytest.raises(HTTPException) as exc:
        asyncio.run(register_user(RacingDatabase(mongo, "users"), "student",
                                  _signup("second@example.com", "STU-100")))
    assert exc.value.status_code == 400
    assert exc.value.detail == "Student ID already exists"
    assert asyncio.run(mongo.users.count_documents({})) == 1
