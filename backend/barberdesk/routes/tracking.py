# Overview: Public page visit tracking endpoint.

from flask import Blueprint, request

from ..services import tracking_service


tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/track")


@tracking_bp.post("/visit")
def track_visit():
    """Always 204: tracking never fails the page that reported it."""
    data = request.get_json(silent=True) or {}
    if isinstance(data, dict):
        tracking_service.record_visit(
            data.get("page_path"),
            referrer=data.get("referrer"),
            user_agent=data.get("user_agent") or request.headers.get("User-Agent"),
            session_id=data.get("session_id"),
        )
    return "", 204
