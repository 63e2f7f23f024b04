"""
Account approval workflow.

Verifies:
- self-registration yields an unapproved staff account, whatever role is sent
- pending accounts cannot log in until an admin approves them
- approve is idempotent; reject deletes the account and its sessions
- only admins can see or act on the queue
"""

import pytest

from frosty.errors import Conflict, Forbidden, InvalidCredentials, NotFound, PendingApproval, ValidationError
from frosty.models import SessionToken, User, ROLE_ADMIN, ROLE_STAFF
from frosty.services import approval_service, auth_service, session_service, user_service

from conftest import PASSWORD, auth_headers, get_auth_token


BOB = {"username": "bob", "password": "secret123", "email": "bob@example.com", "fullName": "Bob Frost"}


class TestRegisterService:
    def test_self_registration_is_pending_staff(self, db_session):
        user = approval_service.register_user(dict(BOB, role="admin"))
        assert user.role == ROLE_STAFF
        assert user.approved is False

    def test_admin_created_account_is_approved(self, db_session, admin_user):
        user = approval_service.register_user(dict(BOB, role="admin"), actor=admin_user)
        assert user.role == ROLE_ADMIN
        assert user.approved is True

    def test_staff_actor_gets_pending_account(self, db_session, staff_user):
        user = approval_service.register_user(BOB, actor=staff_user)
        assert user.approved is False

    def test_duplicate_username(self, db_session):
        approval_service.register_user(BOB)
        with pytest.raises(Conflict):
            approval_service.register_user(dict(BOB, email="other@example.com"))

    @pytest.mark.parametrize("field", ["username", "password", "email", "fullName"])
    def test_missing_field(self, db_session, field):
        candidate = dict(BOB)
        del candidate[field]
        with pytest.raises(ValidationError):
            approval_service.register_user(candidate)

    def test_invalid_email(self, db_session):
        with pytest.raises(ValidationError):
            approval_service.register_user(dict(BOB, email="not-an-email"))

    def test_unknown_role_from_admin(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            approval_service.register_user(dict(BOB, role="owner"), actor=admin_user)


class TestApproveReject:
    def test_register_approve_login(self, db_session, admin_user):
        bob = approval_service.register_user(BOB)
        with pytest.raises(PendingApproval):
            auth_service.authenticate("bob", "secret123")

        approval_service.approve(bob.id, admin_user)
        assert auth_service.authenticate("bob", "secret123").id == bob.id

    def test_approve_is_idempotent(self, db_session, admin_user):
        bob = approval_service.register_user(BOB)
        first = approval_service.approve(bob.id, admin_user)
        second = approval_service.approve(bob.id, admin_user)
        assert first.approved is True
        assert second.approved is True

    def test_reject_deletes_account(self, db_session, admin_user):
        bob_id = approval_service.register_user(BOB).id
        approval_service.reject(bob_id, admin_user)
        assert db_session.get(User, bob_id) is None
        with pytest.raises(InvalidCredentials):
            auth_service.authenticate("bob", "secret123")

    def test_reject_removes_sessions(self, db_session, admin_user, staff_user):
        session_service.create_session(staff_user.id)
        approval_service.reject(staff_user.id, admin_user)
        assert db_session.query(SessionToken).count() == 0

    def test_admin_cannot_delete_self(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            approval_service.reject(admin_user.id, admin_user)
        with pytest.raises(ValidationError):
            user_service.delete_user(admin_user.id, admin_user)

    def test_delete_approved_user(self, db_session, admin_user, staff_user):
        staff_id = staff_user.id
        user_service.delete_user(staff_id, admin_user)
        assert db_session.get(User, staff_id) is None

    def test_unknown_user(self, db_session, admin_user):
        with pytest.raises(NotFound):
            approval_service.approve(9999, admin_user)
        with pytest.raises(NotFound):
            approval_service.reject(9999, admin_user)

    def test_pending_listed_in_insertion_order(self, db_session, admin_user):
        for name in ("carol", "alan", "bea"):
            approval_service.register_user(dict(BOB, username=name))
        pending = approval_service.list_pending(admin_user)
        assert [u.username for u in pending] == ["carol", "alan", "bea"]

    def test_staff_cannot_act(self, db_session, staff_user):
        bob = approval_service.register_user(BOB)
        with pytest.raises(Forbidden):
            approval_service.list_pending(staff_user)
        with pytest.raises(Forbidden):
            approval_service.approve(bob.id, staff_user)
        with pytest.raises(Forbidden):
            approval_service.reject(bob.id, None)


class TestApprovalApi:
    def test_register_then_pending_login(self, client, db_session):
        resp = client.post("/api/register", json=BOB)
        assert resp.status_code == 201
        assert resp.get_json()["user"]["approved"] is False

        resp = client.post("/api/login", json={"username": "bob", "password": "secret123"})
        assert resp.status_code == 401
        assert "pending approval" in resp.get_json()["error"]

    def test_register_taken_username(self, client, db_session):
        client.post("/api/register", json=BOB)
        resp = client.post("/api/register", json=BOB)
        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"username": "already exists"}

    def test_staff_form_taken_username(self, client, db_session, staff_user):
        resp = client.post("/api/staff", json=dict(BOB, username="staff"))
        assert resp.status_code == 400
        assert "username" in resp.get_json()["details"]

    @pytest.mark.parametrize("field,value", [
        ("username", 42),
        ("email", ["bob@example.com"]),
        ("fullName", {"first": "Bob"}),
        ("password", 12345678),
    ])
    def test_register_wrong_types(self, client, db_session, field, value):
        resp = client.post("/api/register", json=dict(BOB, **{field: value}))
        assert resp.status_code == 400
        assert resp.get_json()["details"]

    def test_register_array_body(self, client, db_session):
        assert client.post("/api/register", json=[BOB]).status_code == 400

    def test_register_invalid(self, client, db_session):
        resp = client.post("/api/register", json={"username": "bob"})
        assert resp.status_code == 400
        assert "password" in resp.get_json()["details"]

    def test_admin_approves_over_api(self, client, db_session, admin_headers):
        bob_id = client.post("/api/register", json=BOB).get_json()["user"]["id"]

        pending = client.get("/api/users/pending", headers=admin_headers).get_json()
        assert [u["username"] for u in pending] == ["bob"]

        resp = client.patch(f"/api/users/{bob_id}/approve", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["approved"] is True

        assert client.get("/api/users/pending", headers=admin_headers).get_json() == []
        assert get_auth_token(client, "bob", "secret123")

    def test_admin_rejects_over_api(self, client, db_session, admin_headers):
        bob_id = client.post("/api/register", json=BOB).get_json()["user"]["id"]
        assert client.delete(f"/api/users/{bob_id}", headers=admin_headers).status_code == 204
        assert client.post("/api/login", json={"username": "bob", "password": "secret123"}).status_code == 401

    def test_staff_form_anonymous_is_pending(self, client, db_session):
        resp = client.post("/api/staff", json=BOB)
        assert resp.status_code == 201
        assert resp.get_json()["user"]["approved"] is False

    def test_staff_form_admin_is_approved(self, client, db_session, admin_headers):
        resp = client.post("/api/staff", json=dict(BOB, role="admin"), headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["user"]["approved"] is True
        assert resp.get_json()["user"]["role"] == "admin"

    def test_update_staff_password_revokes_sessions(self, client, db_session, admin_headers, staff_user):
        token = get_auth_token(client, "staff", PASSWORD)
        resp = client.put(f"/api/staff/{staff_user.id}", json={"password": "new-password"}, headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/user", headers=auth_headers(token)).status_code == 401
        assert get_auth_token(client, "staff", "new-password")

    def test_admin_cannot_demote_self(self, client, db_session, admin_headers, admin_user):
        resp = client.put(f"/api/staff/{admin_user.id}", json={"role": "staff"}, headers=admin_headers)
        assert resp.status_code == 400
        assert db_session.get(User, admin_user.id).role == ROLE_ADMIN

    def test_unapproving_staff_logs_them_out(self, client, db_session, admin_headers, staff_user):
        token = get_auth_token(client, "staff", PASSWORD)
        client.put(f"/api/staff/{staff_user.id}", json={"approved": False}, headers=admin_headers)
        assert client.get("/api/user", headers=auth_headers(token)).status_code == 401

    def test_unapprove_with_form_string(self, client, db_session, admin_headers, staff_user):
        resp = client.put(f"/api/staff/{staff_user.id}", json={"approved": "false"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["approved"] is False
        assert db_session.get(User, staff_user.id).approved is False

    def test_approve_with_form_string(self, client, db_session, admin_headers):
        bob_id = client.post("/api/register", json=BOB).get_json()["user"]["id"]
        resp = client.put(f"/api/staff/{bob_id}", json={"approved": "on"}, headers=admin_headers)
        assert resp.get_json()["approved"] is True

    def test_unreadable_approved_value(self, client, db_session, admin_headers, staff_user):
        resp = client.put(f"/api/staff/{staff_user.id}", json={"approved": "maybe"}, headers=admin_headers)
        assert resp.status_code == 400
        assert db_session.get(User, staff_user.id).approved is True

    @pytest.mark.parametrize("field,value", [
        ("email", 7),
        ("fullName", ["Staff"]),
        ("username", 99),
        ("role", ["admin"]),
        ("password", 12345678),
    ])
    def test_update_staff_wrong_types(self, client, db_session, admin_headers, staff_user, field, value):
        resp = client.put(f"/api/staff/{staff_user.id}", json={field: value}, headers=admin_headers)
        assert resp.status_code == 400
        assert db_session.get(User, staff_user.id).email == "staff@frosty.test"
