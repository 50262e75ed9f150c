# Overview: Service-layer operations for security auditing; appends SecurityEvent rows.

"""
Security Event Logging

WHY: Immutable audit trail for failed logins, cross-tenant access attempts and
other security-relevant denials. Grants are not logged, only denials.

MULTI-TENANT: Events include company_id and unit_id so a tenant's events can
be filtered without joins.
"""

from flask import g, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from barberdesk.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: int | None = None,
    unit_id: int | None = None
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - LOGIN_FAILED
    - LOGOUT
    - CROSS_TENANT_ACCESS_DENIED
    - SUPER_ADMIN_REQUIRED
    - INVITE_TOKEN_REJECTED
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        unit_id=unit_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def log_request_denial(event_type: str, reason: str, *, company_id: int | None = None, unit_id: int | None = None) -> SecurityEvent:
    """Log a denial using whatever request and user context is available."""
    user = getattr(g, "current_user", None) if has_request_context() else None
    return log_security_event(
        user_id=user.id if user is not None else None,
        event_type=event_type,
        success=False,
        resource=request.path if has_request_context() else None,
        action=request.method if has_request_context() else None,
        reason=reason,
        ip_address=request.remote_addr if has_request_context() else None,
        user_agent=request.headers.get("User-Agent") if has_request_context() else None,
        company_id=company_id,
        unit_id=unit_id,
    )
