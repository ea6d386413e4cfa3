# Overview: Service-layer operations for session; issues, validates and revokes bearer tokens.

"""
Session Token Management Service

WHY: The SPA authenticates once and then sends an opaque bearer token with
every request. Tokens are random, hashed at rest and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute lifetime from Config.SESSION_HOURS
- Revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow
from .unit_of_work import unit_of_work

DEFAULT_SESSION_HOURS = 12


def generate_token() -> str:
    """64-character hex string; this plaintext is sent to the client and never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 of the token for database storage.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _session_lifetime() -> timedelta:
    hours = current_app.config.get("SESSION_HOURS", DEFAULT_SESSION_HOURS)
    return timedelta(hours=int(hours))


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    """
    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    with unit_of_work():
        session = SessionToken(
            user_id=user_id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            expires_at=now + _session_lifetime(),
            is_revoked=False,
        )
        db.session.add(session)

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    The active user owning `token`, or None if the token is unknown,
    expired, revoked, or belongs to a deactivated account.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    return user


def revoke_session(token: str) -> bool:
    """Revoke a token. Returns False when it was unknown or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    with unit_of_work():
        session.is_revoked = True
        session.revoked_at = utcnow()

    return True
