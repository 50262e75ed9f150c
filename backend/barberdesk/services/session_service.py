# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

TENANT CONTEXT: Sessions do not carry a company. The tenant resolver derives
company and current unit per session (keyed by the session row id), so the
selected unit is process-local and disappears with the session.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or security events
- Tracks client IP and user agent for security monitoring
"""

import logging
import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User
from barberdesk.time_utils import utcnow
from . import tenant_service

logger = logging.getLogger(__name__)


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


@dataclass
class SessionContext:
    """Complete session context returned by validate_session."""
    user: User
    session: SessionToken

    @property
    def session_id(self) -> int:
        return self.session.id


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is not active")

    plaintext_token = generate_token()
    token_hash = hash_token(plaintext_token)

    now = utcnow()
    expires_at = now + SESSION_ABSOLUTE_TIMEOUT

    session = SessionToken(
        user_id=user_id,
        token_hash=token_hash,
        created_at=now,
        last_used_at=now,
        expires_at=expires_at,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    prune_resolvers()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is deactivated (is_active=False)

    Updates last_used_at on successful validation (activity tracking).
    """
    token_hash = hash_token(token)
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=token_hash,
        is_revoked=False
    ).first()

    if not session:
        return None

    # Check absolute timeout
    if session.expires_at < now:
        _forget_tenant(session.id)
        return None

    # Check idle timeout
    idle_time = now - session.last_used_at
    if idle_time > SESSION_IDLE_TIMEOUT:
        # Auto-revoke idle sessions
        _revoke(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user

    # SECURITY: Check if user account is active
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        db.session.commit()
        return None

    # Valid session - update activity timestamp
    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> SessionToken | None:
    """
    Revoke session token.

    Returns the revoked session, or None if not found.
    """
    token_hash = hash_token(token)

    session = db.session.query(SessionToken).filter_by(
        token_hash=token_hash,
        is_revoked=False
    ).first()

    if not session:
        return None

    _revoke(session, reason, utcnow())
    db.session.commit()
    return session


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    _forget_tenant(session.id)


def _forget_tenant(session_id: int) -> None:
    registry = tenant_service.get_registry_if_ready()
    if registry is not None:
        registry.discard(session_id)


def active_session_ids(now=None) -> set[int]:
    """Ids of sessions that would still pass validate_session."""
    now = now or utcnow()
    rows = db.session.query(SessionToken.id).filter(
        SessionToken.is_revoked.is_(False),
        SessionToken.expires_at >= now,
        SessionToken.last_used_at >= now - SESSION_IDLE_TIMEOUT,
    )
    return {session_id for (session_id,) in rows}


def prune_resolvers() -> int:
    """
    Forget tenant resolvers of sessions that expired or went idle without
    being presented again. Runs on every new session so the registry stays
    bounded by the number of live sessions.
    """
    registry = tenant_service.get_registry_if_ready()
    if registry is None:
        return 0
    removed = registry.retain(active_session_ids())
    if removed:
        logger.info("Pruned %s tenant resolvers of inactive sessions", removed)
    return removed
