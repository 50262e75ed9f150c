"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the email is temporarily locked.

SECURITY FEATURES:
- Tracks failed attempts per normalized email
- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout duration: LOCKOUT_DURATION minutes
- Uses the security_events table for tracking
"""

from datetime import timedelta
from ..extensions import db
from ..models import SecurityEvent
from barberdesk.time_utils import utcnow
from .auth_service import find_user_by_email, normalize_email


# Configuration constants
MAX_FAILED_ATTEMPTS = 10  # Lock after 10 failed attempts
LOCKOUT_WINDOW = timedelta(minutes=15)  # Within 15 minutes
LOCKOUT_DURATION = timedelta(minutes=15)  # Lockout for 15 minutes

LOGIN_RESOURCE = "/api/auth/login"


def get_recent_failed_attempts(email: str) -> int:
    """
    Count LOGIN_FAILED events for an email within LOCKOUT_WINDOW.

    The normalized email is stored in the 'action' field of the event.
    """
    cutoff = utcnow() - LOCKOUT_WINDOW

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == normalize_email(email),
        SecurityEvent.occurred_at >= cutoff
    ).count()


def is_account_locked(email: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(email) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == normalize_email(email)
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials"
) -> int:
    """
    Record a failed login attempt.

    Returns the total number of recent failed attempts.
    """
    user = find_user_by_email(email)

    db.session.add(SecurityEvent(
        user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        resource=LOGIN_RESOURCE,
        action=normalize_email(email),
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    ))
    db.session.commit()

    return get_recent_failed_attempts(email)


def record_successful_login(
    user_id: int,
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    db.session.add(SecurityEvent(
        user_id=user_id,
        event_type="LOGIN_SUCCESS",
        resource=LOGIN_RESOURCE,
        action=normalize_email(email),
        success=True,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    ))
    db.session.commit()
