"""
Appointment Booking Service

Creation and listing of appointments for a unit. Status changes, cancellation
and deletion live in lifecycle_service.

CONFLICTS: A barber cannot hold two non-cancelled appointments whose
[start, end) intervals overlap. Touching intervals (one ends when the next
starts) are fine.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Appointment, Barber, Service, Unit
from ..validation import ConflictError, ValidationError, parse_money
from barberdesk.time_utils import utcnow, as_utc_naive
from .lifecycle_service import PAYMENT_METHODS


class AppointmentError(ValueError):
    pass


def _price(value) -> Decimal:
    return parse_money("total_price", value)


def _load_refs(unit_id: int, barber_id: int, service_id: int) -> tuple[Unit, Barber, Service]:
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise AppointmentError("Unit not found")

    barber = db.session.get(Barber, barber_id)
    if barber is None or barber.unit_id != unit_id:
        raise AppointmentError("Barber not found")
    if not barber.is_active:
        raise AppointmentError("Barber is not active")

    service = db.session.get(Service, service_id)
    if service is None or service.unit_id != unit_id:
        raise AppointmentError("Service not found")

    return unit, barber, service


def find_conflict(
    barber_id: int,
    start_time: datetime,
    end_time: datetime,
    *,
    exclude_id: int | None = None,
) -> Appointment | None:
    """Return an overlapping non-cancelled appointment of the barber, if any."""
    query = db.session.query(Appointment).filter(
        Appointment.barber_id == barber_id,
        Appointment.status != "cancelled",
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.order_by(Appointment.start_time.asc()).first()


def _raise_if_conflict(barber_id: int, start_time: datetime, end_time: datetime) -> None:
    conflict = find_conflict(barber_id, start_time, end_time)
    if conflict is not None:
        raise ConflictError(
            f"Time slot taken: {conflict.client_name} already has an appointment at that time"
        )


def create_appointment(
    unit_id: int,
    *,
    barber_id: int,
    service_id: int,
    client_name: str,
    start_time: datetime,
    client_phone: str | None = None,
    notes: str | None = None,
    total_price=None,
) -> Appointment:
    """
    Book a pending appointment. End time and default price come from the service.

    Raises:
        ValidationError: Missing client name
        AppointmentError: Unknown unit, barber or service
        ConflictError: The barber is already booked in that interval
    """
    if not client_name or not str(client_name).strip():
        raise ValidationError("client_name is required")

    unit, barber, service = _load_refs(unit_id, barber_id, service_id)

    start = as_utc_naive(start_time)
    end = start + timedelta(minutes=service.duration_minutes)
    _raise_if_conflict(barber.id, start, end)

    appt = Appointment(
        unit_id=unit.id,
        company_id=unit.company_id,
        barber_id=barber.id,
        service_id=service.id,
        client_name=str(client_name).strip(),
        client_phone=client_phone or None,
        start_time=start,
        end_time=end,
        total_price=_price(total_price) if total_price is not None else service.price,
        status="pending",
        notes=notes or None,
    )
    db.session.add(appt)
    db.session.commit()
    return appt


def create_quick_service(
    unit_id: int,
    *,
    barber_id: int,
    service_id: int,
    client_name: str,
    client_phone: str | None = None,
    notes: str | None = None,
    total_price=None,
    payment_method: str | None = None,
    scheduled_for: datetime | None = None,
) -> Appointment:
    """
    Record a walk-in.

    Without scheduled_for the service happened now and is stored completed
    (with its payment method). With scheduled_for it is booked as pending at
    that time, subject to the usual conflict check.
    """
    if not client_name or not str(client_name).strip():
        raise ValidationError("client_name is required")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
        )

    unit, barber, service = _load_refs(unit_id, barber_id, service_id)

    if scheduled_for is not None:
        start = as_utc_naive(scheduled_for)
        status = "pending"
    else:
        start = utcnow()
        status = "completed"
    end = start + timedelta(minutes=service.duration_minutes)

    if status == "pending":
        _raise_if_conflict(barber.id, start, end)

    appt = Appointment(
        unit_id=unit.id,
        company_id=unit.company_id,
        barber_id=barber.id,
        service_id=service.id,
        client_name=str(client_name).strip(),
        client_phone=client_phone or None,
        start_time=start,
        end_time=end,
        total_price=_price(total_price) if total_price is not None else service.price,
        status=status,
        payment_method=payment_method if status == "completed" else None,
        notes=notes or None,
    )
    db.session.add(appt)
    db.session.commit()
    return appt


def get_appointment(appointment_id: int) -> Appointment | None:
    return db.session.get(Appointment, appointment_id)


def list_appointments(
    unit_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    barber_id: int | None = None,
) -> list[Appointment]:
    query = db.session.query(Appointment).filter(Appointment.unit_id == unit_id)
    if start is not None:
        query = query.filter(Appointment.start_time >= as_utc_naive(start))
    if end is not None:
        query = query.filter(Appointment.start_time < as_utc_naive(end))
    if barber_id is not None:
        query = query.filter(Appointment.barber_id == barber_id)
    return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()
