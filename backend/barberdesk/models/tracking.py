from __future__ import annotations

from ..extensions import db
from barberdesk.time_utils import to_utc_z


MAX_PAGE_PATH_LENGTH = 500
MAX_REFERRER_LENGTH = 2000
MAX_USER_AGENT_LENGTH = 1000
MAX_SESSION_ID_LENGTH = 100


class PageVisit(db.Model):
    """Anonymous landing-page hit, used for visit/signup conversion reports."""
    __tablename__ = "page_visits"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    page_path = db.Column(db.String(MAX_PAGE_PATH_LENGTH), nullable=False)
    referrer = db.Column(db.String(MAX_REFERRER_LENGTH), nullable=True)
    user_agent = db.Column(db.String(MAX_USER_AGENT_LENGTH), nullable=True)
    session_id = db.Column(db.String(MAX_SESSION_ID_LENGTH), nullable=True)
    visited_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page_path": self.page_path,
            "referrer": self.referrer,
            "session_id": self.session_id,
            "visited_at": to_utc_z(self.visited_at),
        }
