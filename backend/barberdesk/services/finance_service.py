"""
Unit Revenue Summary

Read side of completed appointments for the finance screen:

- revenue of completed appointments in [start, end), split by payment method
  and by barber
- courtesy report: every completed appointment paid as "courtesy", with the
  reason recorded at completion and the service price that was waived

Appointments completed before a payment method was recorded are reported
under "unspecified". All sums are exact Decimals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Appointment
from ..models.tenancy import money
from barberdesk.time_utils import as_utc_naive, to_utc_z
from .lifecycle_service import COURTESY, PAYMENT_METHODS

UNSPECIFIED = "unspecified"

_COURTESY_NOTE_RE = re.compile(r"\[Courtesy\]\s*(.+?)(?:\n|$)")


def courtesy_reason(notes: str | None) -> str | None:
    if not notes:
        return None
    match = _COURTESY_NOTE_RE.search(notes)
    return match.group(1).strip() if match else None


@dataclass
class MethodTotal:
    count: int = 0
    total: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {"count": self.count, "total": money(self.total)}


@dataclass
class BarberTotal:
    barber_id: int | None
    name: str | None
    count: int = 0
    total: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "barberId": self.barber_id,
            "name": self.name,
            "count": self.count,
            "total": money(self.total),
        }


@dataclass
class RevenueSummary:
    total_revenue: Decimal
    appointment_count: int
    by_payment_method: dict[str, MethodTotal]
    by_barber: list[BarberTotal]
    courtesy_count: int
    courtesy_waived_value: Decimal
    courtesy_appointments: list[Appointment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalRevenue": money(self.total_revenue),
            "appointmentCount": self.appointment_count,
            "byPaymentMethod": {k: v.to_dict() for k, v in self.by_payment_method.items()},
            "byBarber": [b.to_dict() for b in self.by_barber],
            "courtesy": {
                "count": self.courtesy_count,
                "waivedValue": money(self.courtesy_waived_value),
                "appointments": [
                    {
                        "id": a.id,
                        "client_name": a.client_name,
                        "start_time": to_utc_z(a.start_time),
                        "barber": a.barber.name if a.barber else None,
                        "service": a.service.name if a.service else None,
                        "service_price": money(a.service.price) if a.service else None,
                        "reason": courtesy_reason(a.notes),
                    }
                    for a in self.courtesy_appointments
                ],
            },
        }


def list_completed(
    unit_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    barber_id: int | None = None,
) -> list[Appointment]:
    query = db.session.query(Appointment).filter(
        Appointment.unit_id == unit_id,
        Appointment.status == "completed",
    )
    if start is not None:
        query = query.filter(Appointment.start_time >= as_utc_naive(start))
    if end is not None:
        query = query.filter(Appointment.start_time < as_utc_naive(end))
    if barber_id is not None:
        query = query.filter(Appointment.barber_id == barber_id)
    return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()


def summarize_revenue(appointments) -> RevenueSummary:
    by_method = {method: MethodTotal() for method in sorted(PAYMENT_METHODS)}
    by_method[UNSPECIFIED] = MethodTotal()
    by_barber: dict[int | None, BarberTotal] = {}
    courtesy: list[Appointment] = []
    total = Decimal("0")
    waived = Decimal("0")
    count = 0

    for appt in appointments:
        price = Decimal(appt.total_price or 0)
        count += 1
        total += price

        bucket = by_method.get(appt.payment_method or UNSPECIFIED)
        if bucket is None:
            bucket = by_method.setdefault(appt.payment_method, MethodTotal())
        bucket.count += 1
        bucket.total += price

        barber = by_barber.get(appt.barber_id)
        if barber is None:
            barber = BarberTotal(appt.barber_id, appt.barber.name if appt.barber else None)
            by_barber[appt.barber_id] = barber
        barber.count += 1
        barber.total += price

        if appt.payment_method == COURTESY:
            courtesy.append(appt)
            if appt.service is not None:
                waived += Decimal(appt.service.price or 0)

    return RevenueSummary(
        total_revenue=total,
        appointment_count=count,
        by_payment_method=by_method,
        by_barber=sorted(by_barber.values(), key=lambda b: (-b.total, -b.count, b.barber_id or 0)),
        courtesy_count=len(courtesy),
        courtesy_waived_value=waived,
        courtesy_appointments=courtesy,
    )


def revenue_summary(
    unit_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    barber_id: int | None = None,
) -> RevenueSummary:
    return summarize_revenue(list_completed(unit_id, start=start, end=end, barber_id=barber_id))
