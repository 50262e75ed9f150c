from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from barberdesk.time_utils import to_utc_z
from .tenancy import money


class Appointment(db.Model):
    """
    A scheduled service instance at a unit.

    STATUS: pending -> confirmed -> completed, with cancelled reachable from
    pending or confirmed only (see lifecycle_service). Cancelled rows stay in
    the table so the agenda can show them; deleted rows are removed and only
    survive as DeletionRecord snapshots.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        db.Index("ix_appointments_unit_start", "unit_id", "start_time"),
        db.Index("ix_appointments_barber_start", "barber_id", "start_time"),
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_appointments_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    barber_id = db.Column(db.Integer, db.ForeignKey("barbers.id"), nullable=True, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True, index=True)

    client_name = db.Column(db.String(120), nullable=False)
    client_phone = db.Column(db.String(32), nullable=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=False)

    total_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    unit = db.relationship("Unit", backref=db.backref("appointments", lazy=True))
    barber = db.relationship("Barber", backref=db.backref("appointments", lazy=True))
    service = db.relationship("Service", backref=db.backref("appointments", lazy=True))

    def __repr__(self) -> str:
        return f"<Appointment id={self.id} status={self.status} start={self.start_time}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "company_id": self.company_id,
            "barber_id": self.barber_id,
            "service_id": self.service_id,
            "barber": {"id": self.barber.id, "name": self.barber.name, "calendar_color": self.barber.calendar_color} if self.barber else None,
            "service": {"id": self.service.id, "name": self.service.name, "duration_minutes": self.service.duration_minutes} if self.service else None,
            "client_name": self.client_name,
            "client_phone": self.client_phone,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "total_price": money(self.total_price),
            "status": self.status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
