# Overview: Service-layer operations for appointment lifecycle; state machine plus audit snapshots.

"""
Appointment Lifecycle Service

================================================================================
PURPOSE: Enforce pending -> confirmed -> completed, with audited exits
================================================================================

STATE MACHINE:
    pending -> confirmed -> completed
    pending   -> cancelled
    confirmed -> cancelled

    completed and cancelled are terminal.

AUDIT TRAIL:
- Cancelling writes one CancellationRecord (snapshot + timing flags) and sets
  the status to cancelled in the same transaction.
- Deleting writes one DeletionRecord (snapshot incl. pre-deletion status) and
  removes the appointment in the same transaction.
- Both records are value rows with no foreign key to the appointment, so they
  outlive it. They are never updated.

TIMING (classify_cancellation):
    minutes_before       = floor((scheduled - cancelled_at) in minutes)
    is_no_show           = minutes_before < 0
    is_late_cancellation = 0 <= minutes_before < threshold

The threshold is LATE_CANCELLATION_THRESHOLD_MINUTES from app config.

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from flask import current_app

from ..extensions import db
from ..models import Appointment, CancellationRecord, DeletionRecord
from barberdesk.time_utils import utcnow, as_utc_naive, whole_minutes_between


VALID_STATUSES = {"pending", "confirmed", "completed", "cancelled"}
TERMINAL_STATUSES = {"completed", "cancelled"}
AppointmentStatus = Literal["pending", "confirmed", "completed", "cancelled"]

PAYMENT_METHODS = {"cash", "pix", "debit_card", "credit_card", "courtesy"}
COURTESY = "courtesy"

CANCELLATION_SOURCES = {"manual", "client", "system", "no_show"}

UNKNOWN_BARBER = "Unknown"
UNKNOWN_SERVICE = "Service"
UNKNOWN_ACTOR = "Unknown"
NO_REASON = "Not provided"

DEFAULT_LATE_THRESHOLD_MINUTES = 10

_NEXT_STATUS = {
    "pending": "confirmed",
    "confirmed": "completed",
}

_VALID_TRANSITIONS = {
    ("pending", "confirmed"),
    ("confirmed", "completed"),
    ("pending", "cancelled"),
    ("confirmed", "cancelled"),
}


class LifecycleError(ValueError):
    """
    Raised when an invalid lifecycle transition is attempted.

    This is a domain error, not a technical error. It indicates
    that the user attempted an operation that violates business rules.
    """
    pass


class AppointmentNotFound(LookupError):
    pass


@dataclass(frozen=True)
class CancellationTiming:
    minutes_before: int
    is_late_cancellation: bool
    is_no_show: bool


def validate_status(status: str) -> None:
    """
    Raises:
        LifecycleError: If status is not in VALID_STATUSES
    """
    if status not in VALID_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def get_next_status(current: str) -> str | None:
    """pending -> confirmed, confirmed -> completed; None for terminal states."""
    validate_status(current)
    return _NEXT_STATUS.get(current)


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a state transition is valid according to the lifecycle rules.

    Same-state "transitions" are not allowed: completed and cancelled are
    terminal and nothing loops back.
    """
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in _VALID_TRANSITIONS


def classify_cancellation(
    scheduled: datetime,
    cancelled_at: datetime,
    threshold_minutes: int = DEFAULT_LATE_THRESHOLD_MINUTES,
) -> CancellationTiming:
    minutes_before = whole_minutes_between(scheduled, cancelled_at)
    is_no_show = minutes_before < 0
    is_late = not is_no_show and minutes_before < threshold_minutes
    return CancellationTiming(
        minutes_before=minutes_before,
        is_late_cancellation=is_late,
        is_no_show=is_no_show,
    )


def _late_threshold() -> int:
    return int(current_app.config.get("LATE_CANCELLATION_THRESHOLD_MINUTES", DEFAULT_LATE_THRESHOLD_MINUTES))


def _get_appointment(appointment_id: int) -> Appointment:
    appt = db.session.get(Appointment, appointment_id)
    if appt is None:
        raise AppointmentNotFound(f"Appointment {appointment_id} not found")
    return appt


def _snapshot_names(appt: Appointment) -> tuple[str, str]:
    barber_name = appt.barber.name if appt.barber is not None and appt.barber.name else UNKNOWN_BARBER
    service_name = appt.service.name if appt.service is not None and appt.service.name else UNKNOWN_SERVICE
    return barber_name, service_name


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n\n{note}" if existing else note


def advance_status(
    appointment_id: int,
    *,
    payment_method: str | None = None,
    courtesy_reason: str | None = None,
) -> Appointment:
    """
    Move an appointment one step forward (pending -> confirmed -> completed).

    Completing records the payment method. A courtesy completion zeroes the
    price and appends "[Courtesy] <reason>" to the notes.

    Raises:
        AppointmentNotFound: If the appointment does not exist
        LifecycleError: If the appointment is terminal or the payment method is unknown
    """
    appt = _get_appointment(appointment_id)

    next_status = get_next_status(appt.status)
    if next_status is None:
        raise LifecycleError(
            f"Cannot advance appointment {appointment_id}: status '{appt.status}' is terminal"
        )

    if next_status == "completed":
        if payment_method is not None and payment_method not in PAYMENT_METHODS:
            raise LifecycleError(
                f"Invalid payment method '{payment_method}'. Must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
            )
        if payment_method is not None:
            appt.payment_method = payment_method
        if payment_method == COURTESY:
            appt.total_price = Decimal("0.00")
            if courtesy_reason and courtesy_reason.strip():
                appt.notes = _append_note(appt.notes, f"[Courtesy] {courtesy_reason.strip()}")

    appt.status = next_status
    db.session.commit()
    return appt


def cancel_appointment(
    appointment_id: int,
    *,
    source: str = "manual",
    notes: str | None = None,
    now: datetime | None = None,
) -> tuple[Appointment, CancellationRecord]:
    """
    Cancel a pending or confirmed appointment and record the cancellation.

    The record and the status change commit together; a failure rolls back
    both. The source is recorded as "no_show" when the slot had already
    passed at cancellation time.

    Raises:
        AppointmentNotFound: If the appointment does not exist
        LifecycleError: If the appointment is not cancellable or source is unknown
    """
    if source not in CANCELLATION_SOURCES:
        raise LifecycleError(
            f"Invalid cancellation source '{source}'. Must be one of: {', '.join(sorted(CANCELLATION_SOURCES))}"
        )

    appt = _get_appointment(appointment_id)
    if not can_transition(appt.status, "cancelled"):
        raise LifecycleError(
            f"Cannot cancel appointment {appointment_id}: current status is '{appt.status}'"
        )

    cancelled_at = as_utc_naive(now) if now is not None else utcnow()
    timing = classify_cancellation(appt.start_time, cancelled_at, _late_threshold())
    barber_name, service_name = _snapshot_names(appt)

    record = CancellationRecord(
        unit_id=appt.unit_id,
        company_id=appt.company_id,
        appointment_id=appt.id,
        client_name=appt.client_name,
        client_phone=appt.client_phone,
        barber_name=barber_name,
        service_name=service_name,
        scheduled_time=appt.start_time,
        cancelled_at=cancelled_at,
        minutes_before=timing.minutes_before,
        is_late_cancellation=timing.is_late_cancellation,
        is_no_show=timing.is_no_show,
        total_price=appt.total_price,
        cancellation_source="no_show" if timing.is_no_show else source,
        notes=notes,
    )

    try:
        db.session.add(record)
        appt.status = "cancelled"
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return appt, record


def delete_appointment(
    appointment_id: int,
    *,
    deleted_by: str | None,
    reason: str | None = None,
) -> DeletionRecord:
    """
    Remove an appointment, leaving a DeletionRecord snapshot behind.

    Any status may be deleted; original_status keeps what it was.
    """
    appt = _get_appointment(appointment_id)
    barber_name, service_name = _snapshot_names(appt)

    record = DeletionRecord(
        unit_id=appt.unit_id,
        company_id=appt.company_id,
        appointment_id=appt.id,
        client_name=appt.client_name,
        client_phone=appt.client_phone,
        barber_name=barber_name,
        service_name=service_name,
        scheduled_time=appt.start_time,
        total_price=appt.total_price,
        original_status=appt.status,
        payment_method=appt.payment_method,
        deleted_by=(deleted_by or "").strip() or UNKNOWN_ACTOR,
        deleted_at=utcnow(),
        deletion_reason=(reason or "").strip() or NO_REASON,
    )

    try:
        db.session.add(record)
        db.session.delete(appt)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return record
