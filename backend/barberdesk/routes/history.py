# Overview: Flask API routes for cancellation and deletion history of a unit.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_tenant, scoped_unit_id
from ..services import history_service
from ..services.tenant_service import TenantAccessError, get_company_unit_ids
from ..validation import ValidationError, parse_datetime_field


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() in ("1", "true", "yes")


@history_bp.get("/cancellations")
@require_auth
@require_tenant
def list_cancellations():
    try:
        unit_id = scoped_unit_id(request.args.get("unit_id"))
        start = parse_datetime_field("start", request.args.get("start"))
        end = parse_datetime_field("end", request.args.get("end"))
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    records = history_service.list_cancellations(
        unit_id,
        start=start,
        end=end,
        only_late=_flag("only_late"),
        only_no_show=_flag("only_no_show"),
    )
    summary = history_service.summarize_cancellations(records)
    return jsonify({
        "records": [r.to_dict() for r in records],
        "summary": summary.to_dict(),
    }), 200


@history_bp.delete("/cancellations/<int:record_id>")
@require_auth
@require_tenant
def delete_cancellation(record_id: int):
    try:
        history_service.delete_cancellation_record(record_id, unit_ids=get_company_unit_ids(g.company_id))
    except history_service.HistoryError as e:
        return jsonify({"error": str(e)}), 404
    return "", 204


@history_bp.get("/deletions")
@require_auth
@require_tenant
def list_deletions():
    try:
        unit_id = scoped_unit_id(request.args.get("unit_id"))
        start = parse_datetime_field("start", request.args.get("start"))
        end = parse_datetime_field("end", request.args.get("end"))
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    records = history_service.list_deletions(unit_id, start=start, end=end)
    summary = history_service.summarize_deletions(records)
    return jsonify({
        "records": [r.to_dict() for r in records],
        "summary": summary.to_dict(),
    }), 200
