# Overview: Service-layer operations for auth; password hashing, user creation and login checks.

"""
Authentication Service

WHY: Every recorded document (sale, return, purchase, expense, shift close,
inventory count) is attributed to a user, so every API call runs as an
authenticated operator.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Expense,
    InventoryCount,
    Purchase,
    Return,
    Shift,
    Transaction,
    User,
)
from ..permissions import ROLE_DEFAULTS, Capability, parse_capabilities
from ..time_utils import utcnow
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash
    verifies as False rather than raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _resolve_role(role: str | None) -> str:
    role = (role or "cashier").strip().lower()
    if role not in ROLE_DEFAULTS:
        raise ValidationError(f"Unknown role: {role}")
    return role


def _resolve_permissions(role: str, permissions) -> Capability:
    """Explicit mask or capability names; None falls back to the role's defaults."""
    if permissions is None:
        return ROLE_DEFAULTS[role]
    if isinstance(permissions, Capability):
        return permissions
    if not isinstance(permissions, list):
        raise ValidationError("permissions must be a list of capability names")
    try:
        return parse_capabilities(permissions)
    except ValueError as exc:
        raise ValidationError(str(exc))


def _username_taken(username: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.username == username)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _is_last_admin(user: User) -> bool:
    if user.role != "admin":
        return False
    return db.session.query(User).filter_by(role="admin").count() <= 1


def create_user(
    username: str,
    password: str,
    role: str = "cashier",
    permissions: Capability | list[str] | None = None,
    *,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Create an operator account.

    Args:
        username: Unique login name
        password: Plaintext password meeting strength requirements
        role: admin, manager or cashier
        permissions: Capability mask or list of capability names;
            defaults to the role's default set

    Raises:
        ValidationError: Missing username, unknown role or weak password
        ConflictError: Username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")

    role = _resolve_role(role)
    mask = _resolve_permissions(role, permissions)
    password_hash = hash_password(password, rounds=rounds)

    with unit_of_work():
        if _username_taken(username):
            raise ConflictError("This username is already taken.")

        user = User(
            username=username,
            password_hash=password_hash,
            role=role,
            permissions=int(mask),
            is_active=True,
        )
        db.session.add(user)

    logger.info("Created user %s (%s)", username, role)
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id).all()


def update_user(
    user_id: int,
    *,
    username: str,
    role: str,
    password: str | None = None,
    permissions: Capability | list[str] | None = None,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Replace username, role and capabilities. The password is re-hashed only
    when a non-blank one is given.

    Raises:
        ValidationError: Missing username, unknown role or weak password
        NotFoundError: No such user
        ConflictError: Username belongs to another user
        ForbiddenError: Demoting the last remaining admin
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")

    role = _resolve_role(role)
    mask = _resolve_permissions(role, permissions)
    password_hash = hash_password(password, rounds=rounds) if password and password.strip() else None

    with unit_of_work():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        if _username_taken(username, exclude_id=user.id):
            raise ConflictError("This username is already taken.")
        if role != "admin" and _is_last_admin(user):
            raise ForbiddenError("Cannot demote the last remaining admin.")

        user.username = username
        user.role = role
        user.permissions = int(mask)
        if password_hash:
            user.password_hash = password_hash

    logger.info("Updated user %s", user_id)
    return user


def delete_user(user_id: int) -> None:
    """
    Remove an account and its sessions.

    Raises:
        NotFoundError: No such user
        ForbiddenError: The user is the last remaining admin
        ConflictError: The user has recorded documents
    """
    with unit_of_work():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        if _is_last_admin(user):
            raise ForbiddenError("Cannot delete the last remaining admin.")

        for model in (Transaction, Return, Purchase, Expense, Shift, InventoryCount):
            if db.session.query(model.id).filter(model.user_id == user.id).first():
                raise ConflictError("User has recorded documents and cannot be deleted.")

        for session in user.sessions:
            db.session.delete(session)
        db.session.delete(user)

    logger.info("Deleted user %s", user_id)


def authenticate(username: str, password: str) -> User | None:
    """
    Check credentials for an active user.

    Returns the User on success (and stamps last_login_at), None otherwise.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    with unit_of_work():
        user.last_login_at = utcnow()

    return user
