# Overview: Flask API routes for the platform back office (super admins only).

"""
Super-admin routes.

- GET  /api/admin/stats?days=30      visit/signup conversion and plan counts
- GET  /api/admin/companies          every company with plan data
- PUT  /api/admin/companies/<id>     change plan_status / monthly_price
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_super_admin
from ..services import company_service, reporting_service


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/stats")
@require_auth
@require_super_admin
def admin_stats():
    days = request.args.get("days", reporting_service.DEFAULT_WINDOW_DAYS, type=int)
    try:
        return jsonify(reporting_service.admin_stats(days)), 200
    except reporting_service.ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build admin stats")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/companies")
@require_auth
@require_super_admin
def list_companies():
    companies = company_service.list_companies()
    return jsonify([c.to_dict() for c in companies]), 200


@admin_bp.put("/companies/<int:company_id>")
@require_auth
@require_super_admin
def update_company_plan(company_id: int):
    data = request.get_json(silent=True) or {}
    try:
        company = company_service.set_plan(
            company_id,
            plan_status=data.get("plan_status"),
            monthly_price=data.get("monthly_price"),
        )
        return jsonify(company.to_dict()), 200
    except company_service.CompanyError as e:
        status = 404 if str(e) == "Company not found" else 400
        return jsonify({"error": str(e)}), status
