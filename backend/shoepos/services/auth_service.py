# Overview: Staff account creation and password verification (bcrypt).

"""
Authentication Service

WHY: Every stock and money movement is attributable to a staff member.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from ..validation import ConflictError, ValidationError
from .concurrency import run_in_transaction


MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(*, email: str, password: str, first_name: str, last_name: str, role: str = "EMPLOYEE") -> User:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    def _op():
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        return user

    return run_in_transaction(_op)


def authenticate(email: str, password: str) -> User | None:
    """Returns the active user for valid credentials, else None."""
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user
