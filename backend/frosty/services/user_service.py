# Overview: Service-layer operations for staff account maintenance by admins.

from ..errors import FrostyError, NotFound, UsernameTaken, ValidationError
from ..extensions import db
from ..models import User, ROLES
from ..validation import normalize_keys, parse_bool, parse_string
from .approval_service import reject, require_admin
from .auth_service import hash_password
from . import session_service

EDITABLE_FIELDS = {"email", "full_name", "role", "approved", "password", "username"}


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_user_by_username(username: str) -> User | None:
    return db.session.query(User).filter_by(username=username).first()


def list_users(actor: User | None) -> list[User]:
    require_admin(actor)
    return db.session.query(User).order_by(User.id).all()


def update_user(user_id: int, payload: dict, actor: User | None) -> User:
    """
    Partial update of a staff account.

    Changing the password, or withdrawing approval, signs the user out
    everywhere.
    """
    require_admin(actor)
    user = get_user(user_id)

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    data = normalize_keys(payload)

    unknown = sorted(k for k in data if k not in EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Field not allowed: {', '.join(unknown)}",
            {k: "is not allowed" for k in unknown},
        )

    try:
        revoke_sessions = _apply_changes(user, data, actor)
    except FrostyError:
        db.session.rollback()
        raise

    if revoke_sessions:
        session_service.revoke_all_user_sessions(user.id, reason="Account updated by administrator", commit=False)

    db.session.commit()
    return user


def _apply_changes(user: User, data: dict, actor: User) -> bool:
    """Set the requested fields; True when existing sessions must end."""
    revoke_sessions = False

    if "username" in data and data["username"] != user.username:
        username = parse_string("username", data["username"]) or ""
        if not username:
            raise ValidationError("username cannot be blank", {"username": "cannot be blank"})
        taken = db.session.query(User).filter(User.username == username, User.id != user.id).first()
        if taken:
            raise UsernameTaken()
        user.username = username

    for key in ("email", "full_name"):
        if key in data:
            value = parse_string(key, data[key]) or ""
            if not value:
                raise ValidationError(f"{key} cannot be blank", {key: "cannot be blank"})
            setattr(user, key, value)

    if "role" in data:
        if not isinstance(data["role"], str) or data["role"] not in ROLES:
            raise ValidationError(
                f"role must be one of: {', '.join(sorted(ROLES))}",
                {"role": f"must be one of: {', '.join(sorted(ROLES))}"},
            )
        if user.id == actor.id and data["role"] != user.role:
            raise ValidationError("Cannot change your own role")
        user.role = data["role"]

    if "approved" in data:
        approved = parse_bool("approved", data["approved"])
        if user.approved and not approved:
            revoke_sessions = True
        user.approved = approved

    password = parse_string("password", data.get("password"), strip=False)
    if password:
        user.password_hash = hash_password(password)
        revoke_sessions = True

    return revoke_sessions


def delete_user(user_id: int, actor: User | None) -> None:
    """Removing an approved account is the same operation as rejecting a pending one."""
    reject(user_id, actor)
