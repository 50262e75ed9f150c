# Overview: Flask API routes for appointments; booking, status changes, cancellation and deletion.

from flask import Blueprint, jsonify, request, current_app, g

from ..decorators import require_auth, require_tenant, scoped_unit_id
from ..services import appointment_service, lifecycle_service
from ..services.appointment_service import AppointmentError
from ..services.lifecycle_service import AppointmentNotFound, LifecycleError
from ..services.tenant_service import TenantAccessError
from ..validation import ConflictError, ValidationError, parse_datetime_field, require_int


appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _owned_appointment(appointment_id: int):
    """Load an appointment of the caller's company or raise AppointmentNotFound."""
    appt = appointment_service.get_appointment(appointment_id)
    if appt is None:
        raise AppointmentNotFound("Appointment not found")
    try:
        scoped_unit_id(appt.unit_id)
    except TenantAccessError:
        # Don't reveal it exists in another company
        raise AppointmentNotFound("Appointment not found")
    return appt


def _actor_label() -> str:
    user = g.current_user
    profile = user.profile_metadata or {}
    return profile.get("full_name") or profile.get("name") or user.email


@appointments_bp.get("")
@require_auth
@require_tenant
def list_appointments():
    try:
        unit_id = scoped_unit_id(request.args.get("unit_id"))
        start = parse_datetime_field("start", request.args.get("start"))
        end = parse_datetime_field("end", request.args.get("end"))
        barber_id = request.args.get("barber_id")
        barber_id = require_int("barber_id", barber_id) if barber_id else None
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    appointments = appointment_service.list_appointments(unit_id, start=start, end=end, barber_id=barber_id)
    return jsonify([a.to_dict() for a in appointments]), 200


@appointments_bp.post("")
@require_auth
@require_tenant
def create_appointment():
    data = request.get_json(silent=True) or {}
    try:
        unit_id = scoped_unit_id(data.get("unit_id"))
        start_time = parse_datetime_field("start_time", data.get("start_time"))
        if start_time is None:
            raise ValidationError("start_time is required")
        appt = appointment_service.create_appointment(
            unit_id,
            barber_id=require_int("barber_id", data.get("barber_id")),
            service_id=require_int("service_id", data.get("service_id")),
            client_name=data.get("client_name"),
            client_phone=data.get("client_phone"),
            start_time=start_time,
            notes=data.get("notes"),
            total_price=data.get("total_price"),
        )
        return jsonify(appt.to_dict()), 201
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, AppointmentError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create appointment")
        return jsonify({"error": "Internal server error"}), 500


@appointments_bp.post("/quick")
@require_auth
@require_tenant
def create_quick_service():
    """
    Walk-in. With "scheduled_for" the service is booked pending at that time;
    without it the service is recorded as completed now.
    """
    data = request.get_json(silent=True) or {}
    try:
        unit_id = scoped_unit_id(data.get("unit_id"))
        appt = appointment_service.create_quick_service(
            unit_id,
            barber_id=require_int("barber_id", data.get("barber_id")),
            service_id=require_int("service_id", data.get("service_id")),
            client_name=data.get("client_name"),
            client_phone=data.get("client_phone"),
            notes=data.get("notes"),
            total_price=data.get("total_price"),
            payment_method=data.get("payment_method"),
            scheduled_for=parse_datetime_field("scheduled_for", data.get("scheduled_for")),
        )
        return jsonify(appt.to_dict()), 201
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, AppointmentError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record quick service")
        return jsonify({"error": "Internal server error"}), 500


@appointments_bp.post("/<int:appointment_id>/advance")
@require_auth
@require_tenant
def advance_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        _owned_appointment(appointment_id)
        appt = lifecycle_service.advance_status(
            appointment_id,
            payment_method=data.get("payment_method"),
            courtesy_reason=data.get("courtesy_reason"),
        )
        return jsonify(appt.to_dict()), 200
    except AppointmentNotFound as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to advance appointment")
        return jsonify({"error": "Internal server error"}), 500


@appointments_bp.post("/<int:appointment_id>/cancel")
@require_auth
@require_tenant
def cancel_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        _owned_appointment(appointment_id)
        appt, record = lifecycle_service.cancel_appointment(
            appointment_id,
            source=data.get("source") or "manual",
            notes=data.get("notes"),
        )
        return jsonify({"appointment": appt.to_dict(), "cancellation": record.to_dict()}), 200
    except AppointmentNotFound as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to cancel appointment")
        return jsonify({"error": "Internal server error"}), 500


@appointments_bp.delete("/<int:appointment_id>")
@require_auth
@require_tenant
def delete_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        _owned_appointment(appointment_id)
        record = lifecycle_service.delete_appointment(
            appointment_id,
            deleted_by=_actor_label(),
            reason=data.get("reason"),
        )
        return jsonify(record.to_dict()), 200
    except AppointmentNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete appointment")
        return jsonify({"error": "Internal server error"}), 500
