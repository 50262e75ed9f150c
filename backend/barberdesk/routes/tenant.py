# Overview: Flask API routes for tenant resolution; exposes the session's company and current unit.

from flask import Blueprint, jsonify, request, current_app, g

from ..decorators import require_auth
from ..services.tenant_service import (
    STATUS_PROVISIONING,
    STATUS_RESOLVED,
    TenantAccessError,
    get_resolver,
)


tenant_bp = Blueprint("tenant", __name__, url_prefix="/api/tenant")


def _status_code(state) -> int:
    if state.status == STATUS_RESOLVED:
        return 200
    if state.status == STATUS_PROVISIONING:
        return 202
    return 503


@tenant_bp.get("/current")
@require_auth
def current_tenant():
    """
    Run one resolver cycle for this session.

    200 resolved, 202 while another request provisions, 503 when the lookup
    failed (nothing was created).
    """
    try:
        state = get_resolver(g.session_context.session_id).sync(g.current_user)
        return jsonify(state.to_dict()), _status_code(state)
    except Exception:
        current_app.logger.exception("Failed to resolve tenant")
        return jsonify({"error": "Internal server error"}), 500


@tenant_bp.put("/current-unit")
@require_auth
def select_current_unit():
    data = request.get_json(silent=True) or {}
    unit_id = data.get("unit_id")
    if isinstance(unit_id, bool) or not isinstance(unit_id, int):
        return jsonify({"error": "unit_id must be an integer"}), 400

    try:
        state = get_resolver(g.session_context.session_id).select_unit(g.current_user, unit_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to select unit")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(state.to_dict()), _status_code(state)
