# Overview: Flask API routes for the revenue and courtesy report of a unit.

from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_auth, require_tenant, scoped_unit_id
from ..services import finance_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError, parse_datetime_field, require_int


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/summary")
@require_auth
@require_tenant
def revenue_summary():
    """Completed revenue by payment method and barber, plus courtesies, for [start, end)."""
    try:
        unit_id = scoped_unit_id(request.args.get("unit_id"))
        start = parse_datetime_field("start", request.args.get("start"))
        end = parse_datetime_field("end", request.args.get("end"))
        raw_barber = request.args.get("barber_id")
        barber_id = require_int("barber_id", raw_barber) if raw_barber else None
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if start is not None and end is not None and end <= start:
        return jsonify({"error": "end must be after start"}), 400

    try:
        summary = finance_service.revenue_summary(unit_id, start=start, end=end, barber_id=barber_id)
    except Exception:
        current_app.logger.exception("Failed to build revenue summary")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"unit_id": unit_id, "summary": summary.to_dict()}), 200
