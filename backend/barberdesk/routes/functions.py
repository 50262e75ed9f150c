# Overview: RPC-style endpoints under /functions/v1 (landing counters and barber invitations).

"""
Function endpoints

These keep the request/response contracts the web client already speaks:
camelCase bodies, {"error": ...} on failure.

- get-remaining-spots / get-company-stats are public. On failure they answer
  HTTP 500 with an optimistic body so the landing page still renders.
- invite-barber requires the owner of the barber's company.
- link-barber-account with an inviteToken links the calling account; without
  one only the owner of the barber's company may link.
- validate-barber-invite is public and reveals only names.
"""

from flask import Blueprint, jsonify, request, current_app, g

from ..decorators import require_auth
from ..models import Barber
from ..extensions import db
from ..services import invite_service, scarcity_service
from ..services.company_service import get_company_for_owner
from ..services.security_service import log_request_denial
from ..validation import ValidationError, require_int


functions_bp = Blueprint("functions", __name__, url_prefix="/functions/v1")


def _owns_barber(barber: Barber) -> bool:
    company = get_company_for_owner(g.current_user.id)
    return company is not None and barber.company_id == company.id


@functions_bp.route("/get-remaining-spots", methods=["GET", "POST"])
def get_remaining_spots():
    try:
        return jsonify(scarcity_service.remaining_spots()), 200
    except Exception:
        current_app.logger.exception("Failed to compute remaining spots")
        return jsonify(dict(scarcity_service.FALLBACK)), 500


@functions_bp.route("/get-company-stats", methods=["GET", "POST"])
def get_company_stats():
    try:
        return jsonify(scarcity_service.company_stats()), 200
    except Exception:
        current_app.logger.exception("Failed to count companies")
        return jsonify({"totalCompanies": 0}), 500


@functions_bp.post("/invite-barber")
@require_auth
def invite_barber():
    data = request.get_json(silent=True) or {}
    barber_id = data.get("barberId")
    email = data.get("email")
    name = data.get("name")

    if not barber_id or not email or not name:
        return jsonify({"error": "Missing required fields: barberId, email, name"}), 400

    try:
        barber = db.session.get(Barber, barber_id)
        if barber is None or not _owns_barber(barber):
            log_request_denial("CROSS_TENANT_ACCESS_DENIED", f"Invite for barber {barber_id} outside caller's company")
            return jsonify({"error": "Barber not found"}), 404

        redirect_url = data.get("redirectUrl") or current_app.config["BARBER_INVITE_REDIRECT_URL"]
        result = invite_service.invite_barber(barber_id, email, name, redirect_url=redirect_url)
        return jsonify(result.to_dict()), 200
    except invite_service.InviteError as e:
        return jsonify({"error": str(e)}), e.status
    except Exception:
        current_app.logger.exception("Error in invite-barber")
        return jsonify({"error": "Internal server error"}), 500


@functions_bp.post("/link-barber-account")
@require_auth
def link_barber_account():
    data = request.get_json(silent=True) or {}
    barber_id = data.get("barberId")
    user_id = data.get("userId")
    invite_token = data.get("inviteToken")

    if not barber_id or not user_id:
        return jsonify({"error": "Missing required fields: barberId, userId"}), 400

    try:
        barber_id = require_int("barberId", barber_id)
        user_id = require_int("userId", user_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        barber = db.session.get(Barber, barber_id)
        if barber is None:
            return jsonify({"error": "Barber not found"}), 404

        if invite_token:
            allowed = user_id == g.current_user.id
        else:
            allowed = _owns_barber(barber)
        if not allowed:
            log_request_denial("INVITE_LINK_DENIED", f"User {g.current_user.id} may not link barber {barber_id}")
            return jsonify({"error": "Not allowed to link this barber"}), 403

        invite_service.link_barber_account(barber_id, user_id, invite_token)
        return jsonify({"success": True}), 200
    except invite_service.InviteError as e:
        return jsonify({"error": str(e)}), e.status
    except Exception:
        current_app.logger.exception("Error in link-barber-account")
        return jsonify({"error": "Internal server error"}), 500


@functions_bp.post("/validate-barber-invite")
def validate_barber_invite():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(invite_service.validate_invite(data.get("token"))), 200
    except invite_service.InviteError as e:
        body = {"error": str(e)}
        if e.status == 404 or str(e) == invite_service.INVITE_ALREADY_USED:
            body["valid"] = False
        return jsonify(body), e.status
    except Exception:
        current_app.logger.exception("Error in validate-barber-invite")
        return jsonify({"error": "Error validating invite"}), 500
