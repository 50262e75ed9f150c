# Overview: Flask API routes for units, barbers and services of the caller's company.

from flask import Blueprint, jsonify, request, current_app, g

from ..decorators import require_auth, require_tenant, scoped_unit_id
from ..models import Barber, Service, Unit
from ..services import catalog_service, invite_service, unit_service
from ..services.tenant_service import TenantAccessError
from ..validation import (
    BARBER_POLICY,
    SERVICE_POLICY,
    UNIT_POLICY,
    ValidationError,
    enforce_rules_service,
    validate_payload,
)


units_bp = Blueprint("units", __name__, url_prefix="/api/units")


@units_bp.get("")
@require_auth
@require_tenant
def list_units():
    units = unit_service.list_units(g.company_id)
    return jsonify({
        "units": [u.to_dict() for u in units],
        "current_unit_id": g.unit_id,
    }), 200


@units_bp.post("")
@require_auth
@require_tenant
def create_unit():
    try:
        patch = validate_payload(model=Unit, payload=request.get_json(silent=True), policy=UNIT_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        unit = unit_service.create_unit(g.company_id, user_id=g.current_user.id, **patch)
        return jsonify(unit.to_dict()), 201
    except unit_service.UnitError as e:
        return jsonify({"error": str(e)}), 400


@units_bp.put("/<int:unit_id>")
@require_auth
@require_tenant
def update_unit(unit_id: int):
    try:
        scoped_unit_id(unit_id)
        patch = validate_payload(model=Unit, payload=request.get_json(silent=True), policy=UNIT_POLICY, partial=True)
        unit = unit_service.update_unit(unit_id, **patch)
        return jsonify(unit.to_dict()), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, unit_service.UnitError) as e:
        return jsonify({"error": str(e)}), 400


@units_bp.post("/<int:unit_id>/headquarters")
@require_auth
@require_tenant
def mark_headquarters(unit_id: int):
    try:
        scoped_unit_id(unit_id)
        unit = unit_service.set_headquarters(unit_id)
        return jsonify(unit.to_dict()), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except unit_service.UnitError as e:
        return jsonify({"error": str(e)}), 400


@units_bp.get("/<int:unit_id>/barbers")
@require_auth
@require_tenant
def list_barbers(unit_id: int):
    try:
        scoped_unit_id(unit_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    barbers = catalog_service.list_barbers(unit_id, include_inactive=include_inactive)
    return jsonify([b.to_dict() for b in barbers]), 200


@units_bp.post("/<int:unit_id>/barbers")
@require_auth
@require_tenant
def create_barber(unit_id: int):
    try:
        scoped_unit_id(unit_id)
        patch = validate_payload(model=Barber, payload=request.get_json(silent=True), policy=BARBER_POLICY, partial=False)
        name = patch.pop("name")
        barber = catalog_service.create_barber(unit_id, name, **patch)
        return jsonify(barber.to_dict()), 201
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, catalog_service.CatalogError) as e:
        return jsonify({"error": str(e)}), 400


@units_bp.delete("/<int:unit_id>/barbers/<int:barber_id>")
@require_auth
@require_tenant
def deactivate_barber(unit_id: int, barber_id: int):
    try:
        scoped_unit_id(unit_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    barber = catalog_service.get_barber(barber_id)
    if not barber or barber.unit_id != unit_id:
        return jsonify({"error": "Barber not found"}), 404
    barber = catalog_service.deactivate_barber(barber_id)
    return jsonify(barber.to_dict()), 200


@units_bp.post("/<int:unit_id>/barbers/<int:barber_id>/invite-link")
@require_auth
@require_tenant
def create_invite_link(unit_id: int, barber_id: int):
    try:
        scoped_unit_id(unit_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    barber = catalog_service.get_barber(barber_id)
    if not barber or barber.unit_id != unit_id:
        return jsonify({"error": "Barber not found"}), 404

    try:
        token = invite_service.issue_invite_token(barber_id)
    except invite_service.InviteError as e:
        return jsonify({"error": str(e)}), e.status
    except Exception:
        current_app.logger.exception("Failed to issue invite token")
        return jsonify({"error": "Internal server error"}), 500

    redirect_url = current_app.config["BARBER_INVITE_REDIRECT_URL"]
    return jsonify({"token": token, "url": f"{redirect_url}?token={token}"}), 201


@units_bp.get("/<int:unit_id>/services")
@require_auth
@require_tenant
def list_services(unit_id: int):
    try:
        scoped_unit_id(unit_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    services = catalog_service.list_services(unit_id, include_inactive=include_inactive)
    return jsonify([s.to_dict() for s in services]), 200


@units_bp.post("/<int:unit_id>/services")
@require_auth
@require_tenant
def create_service(unit_id: int):
    try:
        scoped_unit_id(unit_id)
        patch = validate_payload(model=Service, payload=request.get_json(silent=True), policy=SERVICE_POLICY, partial=False)
        enforce_rules_service(patch)
        name = patch.pop("name")
        service = catalog_service.create_service(unit_id, name, **patch)
        return jsonify(service.to_dict()), 201
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, catalog_service.CatalogError) as e:
        return jsonify({"error": str(e)}), 400
