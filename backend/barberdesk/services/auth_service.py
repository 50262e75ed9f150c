# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Account Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

ACCOUNTS:
- Owners sign up with email + password + profile metadata (business_name,
  full_name). Their company is provisioned lazily by the tenant resolver.
- Barbers are created through the invite flow without a password; they set
  one when they accept the invite.
- Emails are unique platform-wide and compared case-insensitively.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from sqlalchemy import func

from ..extensions import db
from ..models import User, UserRole, VALID_ROLES, ROLE_OWNER
from barberdesk.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(ValueError):
    """Raised when an account cannot be created or changed."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Invited accounts without a password never verify.
    """
    if not password_hash:
        return False

    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def find_user_by_email(email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.session.query(User).filter(func.lower(User.email) == normalized).first()


def create_user(
    email: str,
    password: str,
    profile: dict | None = None,
    role: str | None = ROLE_OWNER,
) -> User:
    """
    Create a new account with bcrypt password hashing.

    Raises:
        AccountError: If email is missing or already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    normalized = normalize_email(email)
    if not normalized:
        raise AccountError("Email is required")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    existing = find_user_by_email(normalized)
    if existing:
        if existing.password_hash is not None:
            raise AccountError("Email already registered")
        # Invited account: signing up claims it and keeps its barber links
        existing.password_hash = password_hash
        existing.profile_metadata = {**(existing.profile_metadata or {}), **_clean_profile(profile)}
        db.session.commit()
        return existing

    user = User(
        email=normalized,
        password_hash=password_hash,
        profile_metadata=_clean_profile(profile),
    )
    db.session.add(user)
    db.session.flush()

    if role is not None:
        _add_role(user.id, role)

    db.session.commit()
    return user


def create_invited_user(email: str, profile: dict | None = None) -> User:
    """Create a password-less account for an invited barber."""
    normalized = normalize_email(email)
    if not normalized:
        raise AccountError("Email is required")

    user = User(
        email=normalized,
        password_hash=None,
        profile_metadata=_clean_profile(profile),
    )
    db.session.add(user)
    db.session.commit()
    return user


def set_password(user_id: int, password: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise AccountError("User not found")
    user.password_hash = hash_password(password)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = find_user_by_email(email)

    if not user or not user.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role: str) -> UserRole:
    """Assign role to user (idempotent upsert on user_id + role)."""
    user_role = _add_role(user_id, role)
    db.session.commit()
    return user_role


def has_role(user: User, role: str) -> bool:
    return role in user.role_names


def _add_role(user_id: int, role: str) -> UserRole:
    if role not in VALID_ROLES:
        raise AccountError(f"Unknown role '{role}'")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role=role).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role=role)
    db.session.add(user_role)
    db.session.flush()
    return user_role


def _clean_profile(profile: dict | None) -> dict:
    cleaned: dict = {}
    for key, value in (profile or {}).items():
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        if value is None:
            continue
        cleaned[key] = value
    return cleaned
