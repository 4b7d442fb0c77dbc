# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale and payment must be attributable to an operator. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User, UserRole
from ..time_utils import utcnow
from ..validation import ValidationError
from .concurrency import run_in_transaction


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12, after the strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw is timing-safe. A malformed stored hash makes bcrypt
    raise ValueError; that counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    role: str = UserRole.SELLER.value,
    full_name: str | None = None,
    default_warehouse: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: If username/email missing, role unknown, or user exists
        PasswordValidationError: If password doesn't meet requirements
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("username and email are required")

    try:
        role = UserRole(str(role).upper()).value
    except ValueError:
        raise ValidationError(f"Invalid role: {role!r}")

    password_hash = hash_password(password)

    def _op():
        existing = db.session.query(User).filter(
            db.or_(User.username == username, User.email == email)
        ).first()
        if existing:
            raise ValidationError("Username or email already exists")

        user = User(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            role=role,
            default_warehouse=default_warehouse,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        return user

    return run_in_transaction(_op)


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user by username and password.

    Returns User if credentials are valid and the account is active,
    None otherwise. Callers must not reveal which check failed.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def set_user_active(user_id: int, active: bool) -> User:
    def _op():
        user = db.session.query(User).filter_by(id=user_id).first()
        if not user:
            raise ValidationError(f"User {user_id} not found")
        user.is_active = active
        return user

    return run_in_transaction(_op)
