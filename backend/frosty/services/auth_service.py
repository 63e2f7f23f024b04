# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every job, inspection and invoice is attributed to a logged-in user,
and new accounts must not be usable until an administrator signs off.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters required
- Accounts imported from the previous system carry "<scrypt hex>.<salt>"
  records; these verify with a constant-time compare and are re-hashed
  with bcrypt on the first successful login
- There are no built-in or shared passwords; every account verifies
  against its own stored hash
- Session tokens managed separately (see session_service.py)
"""

import hashlib
import hmac
import logging

import bcrypt
from flask import current_app

from ..errors import InvalidCredentials, PendingApproval, ValidationError
from ..extensions import db
from ..models import User
from frosty.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Parameters of the legacy scrypt records (64-byte key, hex salt string)
LEGACY_SCRYPT_N = 16384
LEGACY_SCRYPT_R = 8
LEGACY_SCRYPT_P = 1
LEGACY_SCRYPT_DKLEN = 64


def validate_password_strength(password: str) -> None:
    """
    Raises ValidationError if the password is missing or shorter than
    MIN_PASSWORD_LENGTH characters.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            {"password": f"must be at least {MIN_PASSWORD_LENGTH} characters"},
        )


def _bcrypt_rounds() -> int:
    try:
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    except RuntimeError:
        # Outside an application context (e.g. scripts)
        return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with a fresh random salt.

    The salt is embedded in the returned string, so one column holds
    both. Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    return _bcrypt_hash(password)


def _bcrypt_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def _is_legacy_hash(password_hash: str) -> bool:
    return not password_hash.startswith("$2") and "." in password_hash


def _verify_legacy_scrypt(password: str, password_hash: str) -> bool:
    hashed_hex, _, salt = password_hash.partition(".")
    if not hashed_hex or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed_hex)
    except ValueError:
        return False
    if len(expected) != LEGACY_SCRYPT_DKLEN:
        return False

    supplied = hashlib.scrypt(
        password.encode('utf-8'),
        salt=salt.encode('utf-8'),
        n=LEGACY_SCRYPT_N,
        r=LEGACY_SCRYPT_R,
        p=LEGACY_SCRYPT_P,
        dklen=LEGACY_SCRYPT_DKLEN,
    )
    return hmac.compare_digest(expected, supplied)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against its stored hash.

    Returns True if password matches hash, False otherwise. Malformed
    records never match.

    WHY timing-safe: bcrypt.checkpw() and hmac.compare_digest() both
    compare in constant time.
    """
    if not password or not password_hash:
        return False

    if _is_legacy_hash(password_hash):
        return _verify_legacy_scrypt(password, password_hash)

    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Not a parseable bcrypt string
        return False


def needs_rehash(password_hash: str) -> bool:
    return _is_legacy_hash(password_hash)


def authenticate(username: str, password: str) -> User:
    """
    Authenticate user with username and password.

    Returns the User on success and updates last_login_at.

    Raises:
        InvalidCredentials: unknown username or wrong password
        PendingApproval: credentials are correct but a non-admin account
            has not been approved yet

    The approval check runs only after the password matched, so a wrong
    password never reveals whether an account is pending.
    """
    user = db.session.query(User).filter(User.username == username).first()

    if not user or not verify_password(password, user.password_hash):
        logger.info("Login failed for username=%s", username)
        raise InvalidCredentials()

    if not user.can_login:
        logger.info("Login refused for unapproved user id=%s", user.id)
        raise PendingApproval()

    if needs_rehash(user.password_hash):
        # Legacy passwords may predate the length rule, so skip the strength check
        user.password_hash = _bcrypt_hash(password)
        logger.info("Upgraded legacy password hash for user id=%s", user.id)

    user.last_login_at = utcnow()
    db.session.commit()
    return user

