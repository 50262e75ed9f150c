# Overview: Service-layer operations for maintenance; retention cleanup of append-only logs.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import PageVisit, SecurityEvent
from barberdesk.time_utils import utcnow


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """
    Delete security events older than retention_days.

    Cancellation and deletion history are never touched here.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete()
    db.session.commit()
    return deleted


def cleanup_page_visits(*, retention_days: int = 365) -> int:
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(PageVisit).filter(
        PageVisit.visited_at < cutoff
    ).delete()
    db.session.commit()
    return deleted
