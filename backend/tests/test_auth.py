"""
Authentication tests.

Verifies:
- bcrypt hashing and verification, including legacy scrypt records
- login/logout over the API with Bearer header and session cookie
- unapproved accounts are refused with a distinct message
- expired and revoked sessions are rejected
"""

import hashlib
from datetime import timedelta

import pytest

from frosty.errors import InvalidCredentials, PendingApproval, ValidationError
from frosty.extensions import db
from frosty.models import SessionToken, User
from frosty.services import auth_service, session_service
from frosty.time_utils import utcnow

from conftest import PASSWORD, auth_headers, get_auth_token, make_user


def legacy_hash(password: str, salt: str = "a1b2c3d4e5f60718") -> str:
    derived = hashlib.scrypt(password.encode("utf-8"), salt=salt.encode("utf-8"), n=16384, r=8, p=1, dklen=64)
    return f"{derived.hex()}.{salt}"


# =============================================================================
# PASSWORD HASHING
# =============================================================================


class TestPasswordHashing:
    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password("secret123")
        assert hashed.startswith("$2")
        assert auth_service.verify_password("secret123", hashed)
        assert not auth_service.verify_password("secret124", hashed)

    def test_salted(self, app):
        assert auth_service.hash_password("secret123") != auth_service.hash_password("secret123")

    def test_short_password_rejected(self, app):
        with pytest.raises(ValidationError):
            auth_service.hash_password("abc")

    def test_legacy_scrypt_verifies(self, app):
        stored = legacy_hash("oldpass")
        assert auth_service.verify_password("oldpass", stored)
        assert not auth_service.verify_password("wrong", stored)
        assert auth_service.needs_rehash(stored)

    @pytest.mark.parametrize("stored", ["", "nodot", "zz.salt", "abcd.salt", "$2b$garbage"])
    def test_malformed_records_never_match(self, app, stored):
        assert not auth_service.verify_password("anything", stored)


# =============================================================================
# AUTHENTICATE
# =============================================================================


class TestAuthenticate:
    def test_success_sets_last_login(self, db_session, staff_user):
        user = auth_service.authenticate("staff", PASSWORD)
        assert user.id == staff_user.id
        assert user.last_login_at is not None

    def test_unknown_user(self, db_session):
        with pytest.raises(InvalidCredentials):
            auth_service.authenticate("ghost", PASSWORD)

    def test_wrong_password(self, db_session, staff_user):
        with pytest.raises(InvalidCredentials):
            auth_service.authenticate("staff", "not-the-password")

    def test_pending_user_refused(self, db_session):
        make_user(db_session, "pending", approved=False)
        with pytest.raises(PendingApproval):
            auth_service.authenticate("pending", PASSWORD)

    def test_pending_user_wrong_password_is_invalid(self, db_session):
        make_user(db_session, "pending", approved=False)
        with pytest.raises(InvalidCredentials):
            auth_service.authenticate("pending", "wrong-password")

    def test_legacy_hash_upgraded_on_login(self, db_session):
        user = User(
            username="veteran", email="v@frosty.test", full_name="Vet",
            password_hash=legacy_hash("abc"), role="staff", approved=True,
        )
        db_session.add(user)
        db_session.commit()

        auth_service.authenticate("veteran", "abc")
        db_session.refresh(user)
        assert user.password_hash.startswith("$2")
        assert auth_service.verify_password("abc", user.password_hash)


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessions:
    def test_validate_roundtrip(self, db_session, staff_user):
        session, token = session_service.create_session(staff_user.id)
        assert session.token_hash != token
        context = session_service.validate_session(token)
        assert context.user.id == staff_user.id

    def test_expiry_is_fixed_lifetime(self, db_session, staff_user):
        session, _ = session_service.create_session(staff_user.id)
        assert session.expires_at - session.created_at == timedelta(hours=24)

    def test_expired_session_rejected(self, db_session, staff_user):
        session, token = session_service.create_session(staff_user.id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_unknown_token_rejected(self, db_session):
        assert session_service.validate_session("not-a-token") is None
        assert session_service.validate_session(None) is None

    def test_session_dies_when_approval_withdrawn(self, db_session, staff_user):
        _, token = session_service.create_session(staff_user.id)
        staff_user.approved = False
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_cleanup_removes_old_expired(self, db_session, staff_user):
        session, _ = session_service.create_session(staff_user.id)
        session.created_at = utcnow() - timedelta(days=40)
        session.expires_at = utcnow() - timedelta(days=39)
        db_session.commit()
        session_service.create_session(staff_user.id)

        assert session_service.cleanup_expired_sessions(retention_days=30) == 1
        assert db_session.query(SessionToken).count() == 1


# =============================================================================
# API
# =============================================================================


class TestAuthApi:
    def test_login_returns_user_without_hash(self, client, staff_user):
        resp = client.post("/api/login", json={"username": "staff", "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["username"] == "staff"
        assert "passwordHash" not in body["user"]
        assert "password_hash" not in body["user"]
        assert body["token"]
        assert "frosty_session=" in resp.headers.get("Set-Cookie", "")
        assert "HttpOnly" in resp.headers.get("Set-Cookie", "")

    def test_login_bad_password(self, client, staff_user):
        resp = client.post("/api/login", json={"username": "staff", "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid username or password"

    def test_login_pending_message(self, client, db_session):
        make_user(db_session, "pending", approved=False)
        resp = client.post("/api/login", json={"username": "pending", "password": PASSWORD})
        assert resp.status_code == 401
        assert "pending approval" in resp.get_json()["error"]

    def test_login_missing_fields(self, client, db_session):
        resp = client.post("/api/login", json={"username": "staff"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"username": "staff", "password": 12345678},
        {"username": ["staff"], "password": PASSWORD},
        ["staff", PASSWORD],
    ])
    def test_login_malformed_body(self, client, staff_user, body):
        resp = client.post("/api/login", json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_current_user_requires_session(self, client, db_session):
        assert client.get("/api/user").status_code == 401

    def test_current_user_with_bearer(self, client, staff_user):
        token = get_auth_token(client, "staff", PASSWORD)
        resp = client.get("/api/user", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.get_json()["username"] == "staff"

    def test_current_user_with_cookie(self, client, staff_user):
        client.post("/api/login", json={"username": "staff", "password": PASSWORD})
        resp = client.get("/api/user")
        assert resp.status_code == 200

    def test_logout_revokes_token(self, client, staff_user):
        token = get_auth_token(client, "staff", PASSWORD)
        resp = client.post("/api/logout", headers=auth_headers(token))
        assert resp.status_code == 200
        assert client.get("/api/user", headers=auth_headers(token)).status_code == 401
        assert db.session.query(SessionToken).filter_by(is_revoked=False).count() == 0
