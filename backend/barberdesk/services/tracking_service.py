"""
Page Visit Tracking

Best effort: a failed insert is logged at debug level and dropped. Tracking
must never break the page that triggered it.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import PageVisit
from ..models.tracking import (
    MAX_PAGE_PATH_LENGTH,
    MAX_REFERRER_LENGTH,
    MAX_SESSION_ID_LENGTH,
    MAX_USER_AGENT_LENGTH,
)
from barberdesk.time_utils import utcnow

logger = logging.getLogger(__name__)


def truncate(value, max_length: int) -> str | None:
    if value is None:
        return None
    value = str(value)
    if not value:
        return None
    return value[:max_length]


def record_visit(
    page_path: str | None,
    *,
    referrer: str | None = None,
    user_agent: str | None = None,
    session_id: str | None = None,
) -> PageVisit | None:
    """Insert one visit; returns None when the path is empty or the write failed."""
    path = truncate(page_path.strip() if isinstance(page_path, str) else page_path, MAX_PAGE_PATH_LENGTH)
    if not path:
        return None

    visit = PageVisit(
        page_path=path,
        referrer=truncate(referrer, MAX_REFERRER_LENGTH),
        user_agent=truncate(user_agent, MAX_USER_AGENT_LENGTH),
        session_id=truncate(session_id, MAX_SESSION_ID_LENGTH),
        visited_at=utcnow(),
    )
    try:
        db.session.add(visit)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.debug("Dropping page visit for %s", path, exc_info=True)
        return None
    return visit
