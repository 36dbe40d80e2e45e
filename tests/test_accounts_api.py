from datetime import timedelta

from conftest import VERIFICATION_CODE

from voicebridge.backend import accounts
from voicebridge.backend.models import utc_now


def _signup(client, email="Grace@Example.com", password="secret1", **extra):
    body = {"email": email, "password": password, "name": "Grace", **extra}
    return client.post("/api/auth/signup", json=body)


def _verified_user(client):
    user_id = _signup(client).json()["data"]["id"]
    client.post("/api/auth/verify-email", json={"email": "grace@example.com", "code": VERIFICATION_CODE})
    return user_id


def test_health_reports_storage(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "storage": "memory"}


def test_signup_creates_unverified_user(client, store):
    response = _signup(client)
    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Account created successfully. Please verify your email."
    assert payload["data"]["email"] == "grace@example.com"
    assert payload["data"]["isEmailVerified"] is False

    stored = store.get_user_by_email("grace@example.com")
    assert stored.disability_type == "other"
    assert stored.disability_severity == 5
    assert stored.password_hash != "secret1"
    assert accounts.verify_password("secret1", stored.password_hash)


def test_signup_validation_errors(client):
    missing = client.post("/api/auth/signup", json={"email": "a@b.co"})
    assert missing.status_code == 400
    assert missing.json() == {"success": False, "error": "Email, password, and name are required"}

    assert _signup(client, email="not-an-email").json()["error"] == "Invalid email format"
    short = _signup(client, password="12345")
    assert short.status_code == 400
    assert short.json()["error"] == "Password must be at least 6 characters"
    long = _signup(client, password="x" * 73)
    assert long.status_code == 400
    assert long.json()["error"] == "Password must be at most 72 bytes"


def test_signup_duplicate_email_conflicts(client):
    assert _signup(client).status_code == 200
    duplicate = _signup(client, email="GRACE@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "An account with this email already exists"


def test_login_requires_verified_email(client):
    _signup(client)
    blocked = client.post("/api/auth/login", json={"email": "grace@example.com", "password": "secret1"})
    assert blocked.status_code == 403

    wrong_code = client.post("/api/auth/verify-email", json={"email": "grace@example.com", "code": "000000"})
    assert wrong_code.status_code == 400
    assert wrong_code.json()["error"] == "Invalid verification code"

    verified = client.post("/api/auth/verify-email", json={"email": "grace@example.com", "code": VERIFICATION_CODE})
    assert verified.status_code == 200
    assert verified.json()["data"]["isEmailVerified"] is True

    again = client.post("/api/auth/verify-email", json={"email": "grace@example.com", "code": VERIFICATION_CODE})
    assert again.json()["error"] == "Email is already verified"

    login = client.post("/api/auth/login", json={"email": "GRACE@example.com", "password": "secret1"})
    assert login.status_code == 200
    data = login.json()["data"]
    assert data["settings"]["voiceId"] == "21m00Tcm4TlvDq8ikWAM"
    assert "passwordHash" not in data and "password_hash" not in data


def test_login_rejects_bad_password(client):
    _verified_user(client)
    response = client.post("/api/auth/login", json={"email": "grace@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_signup_accepts_password_at_bcrypt_limit(client, store):
    response = _signup(client, password="x" * 72)
    assert response.status_code == 200
    stored = store.get_user_by_email("grace@example.com")
    assert accounts.verify_password("x" * 72, stored.password_hash)


def test_verify_rejects_expired_code(client, store):
    user_id = _signup(client).json()["data"]["id"]
    store.update_user(user_id, verification_code_expires_at=utc_now() - timedelta(minutes=1))

    response = client.post("/api/auth/verify-email", json={"email": "grace@example.com", "code": VERIFICATION_CODE})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Verification code has expired"}
    assert store.get_user(user_id).is_email_verified is False


def test_verify_unknown_email_is_404(client):
    response = client.post("/api/auth/verify-email", json={"email": "ghost@example.com", "code": "1"})
    assert response.status_code == 404


def test_update_profile(client):
    user_id = _verified_user(client)
    _signup(client, email="other@example.com")

    empty = client.patch("/api/user/profile", json={"userId": user_id})
    assert empty.status_code == 400

    taken = client.patch("/api/user/profile", json={"userId": user_id, "email": "other@example.com"})
    assert taken.status_code == 409

    response = client.patch("/api/user/profile", json={"userId": user_id, "name": "Grace H", "email": "GH@example.com"})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Grace H"
    assert response.json()["data"]["email"] == "gh@example.com"

    missing = client.patch("/api/user/profile", json={"userId": "nobody", "name": "X"})
    assert missing.status_code == 404


def test_update_disability_profile(client):
    user_id = _verified_user(client)

    bad_type = client.patch("/api/user/disability-profile", json={"userId": user_id, "type": "flu"})
    assert bad_type.json()["error"] == "Invalid disability type"
    bad_severity = client.patch("/api/user/disability-profile", json={"userId": user_id, "severity": 11})
    assert bad_severity.json()["error"] == "Severity must be a number between 1 and 10"
    bad_words = client.patch("/api/user/disability-profile", json={"userId": user_id, "triggerWords": "p"})
    assert bad_words.json()["error"] == "Trigger words must be an array"

    response = client.patch(
        "/api/user/disability-profile",
        json={"userId": user_id, "type": "stuttering", "severity": 7, "triggerWords": ["p", "b"]},
    )
    assert response.status_code == 200
    profile = response.json()["data"]["disabilityProfile"]
    assert profile == {"type": "stuttering", "severity": 7, "triggerWords": ["p", "b"], "description": None}


def test_update_settings(client):
    user_id = _verified_user(client)

    bad_speed = client.patch("/api/user/settings", json={"userId": user_id, "speed": 2})
    assert bad_speed.json()["error"] == "Speed must be a number between 0.5 and 1.5"
    bad_bool = client.patch("/api/user/settings", json={"userId": user_id, "highContrast": "yes"})
    assert bad_bool.json()["error"] == "High contrast must be a boolean"
    bad_font = client.patch("/api/user/settings", json={"userId": user_id, "fontMode": "comic"})
    assert bad_font.json()["error"] == "Invalid font mode"

    response = client.patch(
        "/api/user/settings",
        json={"userId": user_id, "speed": 0.8, "textSize": "large", "reducedMotion": True, "voiceId": None},
    )
    settings = response.json()["data"]["settings"]
    assert settings["speed"] == 0.8
    assert settings["textSize"] == "large"
    assert settings["reducedMotion"] is True
    assert settings["voiceId"] == "21m00Tcm4TlvDq8ikWAM"


def test_oversized_request_is_rejected(client):
    response = client.post(
        "/api/auth/signup",
        content=b"{}",
        headers={"content-type": "application/json", "content-length": str(26 * 1024 * 1024)},
    )
    assert response.status_code == 413
    assert response.json()["success"] is False
