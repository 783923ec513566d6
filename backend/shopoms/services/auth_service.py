# Overview: Service-layer operations for auth; credential checks and user seeding.

"""
Authentication Service

Uses bcrypt for password hashing. Login verifies credentials against the
users table and hands back a signed bearer token (see token_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Usernames compared case-insensitively after trimming
- Unknown usernames still pay one bcrypt comparison, so response time does
  not reveal which accounts exist
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, ROLES
from .concurrency import run_read, run_write
from .token_service import Identity, issue_token


class InvalidCredentials(Exception):
    """Unknown username or wrong password. Deliberately does not say which."""


# Pre-computed hash compared against when the username does not exist
_DUMMY_HASH = bcrypt.hashpw(b"shopoms-timing-equalizer", bcrypt.gensalt(rounds=12))


@dataclass(frozen=True)
class LoginResult:
    token: str
    identity: Identity


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Store the returned string as-is; the salt and cost are embedded.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash is
    treated as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def find_user(username: str) -> User | None:
    normalized = User.normalize_username(username)
    return run_read(lambda: db.session.query(User).filter_by(username=normalized).first())


def login(username: str, password: str) -> LoginResult:
    """
    Verify username/password and issue a 24-hour bearer token.

    Raises:
        InvalidCredentials: unknown user or wrong password
        ServiceUnavailable: store unreachable
    """
    user = find_user(username)

    if user is None:
        bcrypt.checkpw(password.encode('utf-8'), _DUMMY_HASH)
        current_app.logger.info("Login failed: unknown username")
        raise InvalidCredentials("Invalid username or password.")

    if not verify_password(password, user.password_hash):
        current_app.logger.info("Login failed for user id=%s", user.id)
        raise InvalidCredentials("Invalid username or password.")

    identity = Identity(
        user_id=user.id,
        display_name=user.display_name or user.username,
        role=user.role,
    )
    return LoginResult(token=issue_token(identity), identity=identity)


def create_user(username: str, display_name: str, password: str, role: str = "cashier") -> User:
    """
    Create a user. Used by the seeding CLI only; there is no HTTP surface.

    Raises ValueError for a blank field, unknown role or duplicate username.
    """
    normalized = User.normalize_username(username or "")
    if not normalized:
        raise ValueError("username is required")
    if not (display_name or "").strip():
        raise ValueError("display name is required")
    if not password:
        raise ValueError("password is required")
    if role not in ROLES:
        raise ValueError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter_by(username=normalized).first()
    if existing:
        raise ValueError("Username already exists")

    user = User(
        username=normalized,
        display_name=display_name.strip(),
        password_hash=hash_password(password),
        role=role,
    )

    def _op():
        db.session.add(user)
        db.session.commit()
        return user

    return run_write(_op)
