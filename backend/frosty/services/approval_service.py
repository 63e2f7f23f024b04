# Overview: Service-layer operations for account registration and admin approval.

"""
Approval workflow for new accounts.

- Self-registration always produces an unapproved staff account.
- An authenticated admin creating an account directly produces an
  approved account (staff unless the admin asks for another role).
- Only admins can list, approve or reject pending accounts.
- Approve is idempotent; reject deletes the account and its sessions.
"""

import logging

from ..errors import Forbidden, NotFound, UsernameTaken, ValidationError
from ..extensions import db
from ..models import User, ROLE_ADMIN, ROLE_STAFF, ROLES
from ..validation import parse_string
from .auth_service import hash_password

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("username", "password", "email", "full_name")


def require_admin(actor: User | None) -> User:
    """Raise Forbidden unless actor is an admin."""
    if actor is None or not actor.is_admin:
        raise Forbidden("You must be an administrator to access this resource")
    return actor


def _clean_candidate(candidate: dict) -> dict:
    if not isinstance(candidate, dict):
        raise ValidationError("Invalid JSON payload")

    cleaned = {
        "username": candidate.get("username"),
        "password": candidate.get("password"),
        "email": candidate.get("email"),
        "full_name": candidate.get("fullName", candidate.get("full_name")),
        "role": candidate.get("role"),
    }
    for key in ("username", "email", "full_name", "role"):
        cleaned[key] = parse_string(key, cleaned[key])
    cleaned["password"] = parse_string("password", cleaned["password"], strip=False)

    missing = [k for k in REQUIRED_FIELDS if not cleaned[k]]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            {k: "is required" for k in missing},
        )
    if len(cleaned["username"]) > 64:
        raise ValidationError("username exceeds max length 64", {"username": "exceeds max length 64"})
    if "@" not in cleaned["email"]:
        raise ValidationError("email must be a valid email address", {"email": "must be a valid email address"})
    return cleaned


def register_user(candidate: dict, actor: User | None = None) -> User:
    """
    Create a new account.

    Args:
        candidate: username, password, email, fullName (role honoured
            only when actor is an admin)
        actor: the authenticated user making the request, if any

    Raises:
        ValidationError: missing/invalid fields or weak password
        UsernameTaken: username already taken (400)
    """
    data = _clean_candidate(candidate)
    created_by_admin = actor is not None and actor.is_admin

    role = ROLE_STAFF
    if created_by_admin and data["role"]:
        if data["role"] not in ROLES:
            raise ValidationError(
                f"role must be one of: {', '.join(sorted(ROLES))}",
                {"role": f"must be one of: {', '.join(sorted(ROLES))}"},
            )
        role = data["role"]

    existing = db.session.query(User).filter_by(username=data["username"]).first()
    if existing:
        raise UsernameTaken()

    user = User(
        username=data["username"],
        email=data["email"],
        full_name=data["full_name"],
        password_hash=hash_password(data["password"]),
        role=role,
        approved=created_by_admin,
    )
    db.session.add(user)
    db.session.commit()

    if created_by_admin:
        logger.info("Admin id=%s created %s account id=%s", actor.id, role, user.id)
    else:
        logger.info("Registered pending account id=%s username=%s", user.id, user.username)
    return user


def list_pending(actor: User | None) -> list[User]:
    """Unapproved accounts in insertion order."""
    require_admin(actor)
    return (
        db.session.query(User)
        .filter(User.approved.is_(False))
        .order_by(User.id)
        .all()
    )


def approve(user_id: int, actor: User | None) -> User:
    """Mark a user approved. Approving an approved user is a no-op."""
    require_admin(actor)
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if not user.approved:
        user.approved = True
        db.session.commit()
        logger.info("Admin id=%s approved user id=%s", actor.id, user.id)
    return user


def reject(user_id: int, actor: User | None) -> None:
    """Permanently delete an account and its sessions."""
    require_admin(actor)
    if user_id == actor.id:
        raise ValidationError("Cannot delete your own account")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    db.session.delete(user)
    db.session.commit()
    logger.info("Admin id=%s removed user id=%s", actor.id, user_id)
