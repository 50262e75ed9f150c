from __future__ import annotations

from ..extensions import db
from barberdesk.time_utils import to_utc_z
from .tenancy import money


class CancellationRecord(db.Model):
    """
    Snapshot of an appointment at the moment it was cancelled.

    IMMUTABLE: Written once by lifecycle_service.cancel_appointment. The only
    later mutation is an operator deleting the record itself.

    appointment_id is a plain integer, not a foreign key: the live appointment
    may be deleted afterwards and the record must survive it.
    """
    __tablename__ = "cancellation_history"
    __table_args__ = (
        db.Index("ix_cancellation_history_unit_scheduled", "unit_id", "scheduled_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    appointment_id = db.Column(db.Integer, nullable=True)

    client_name = db.Column(db.String(120), nullable=False)
    client_phone = db.Column(db.String(32), nullable=True)
    barber_name = db.Column(db.String(120), nullable=False)
    service_name = db.Column(db.String(120), nullable=False)
    scheduled_time = db.Column(db.DateTime(timezone=True), nullable=False)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=False)
    minutes_before = db.Column(db.Integer, nullable=False)
    is_late_cancellation = db.Column(db.Boolean, nullable=False, default=False, index=True)
    is_no_show = db.Column(db.Boolean, nullable=False, default=False, index=True)

    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    cancellation_source = db.Column(db.String(32), nullable=False, default="manual")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "company_id": self.company_id,
            "appointment_id": self.appointment_id,
            "client_name": self.client_name,
            "client_phone": self.client_phone,
            "barber_name": self.barber_name,
            "service_name": self.service_name,
            "scheduled_time": to_utc_z(self.scheduled_time),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "minutes_before": self.minutes_before,
            "is_late_cancellation": self.is_late_cancellation,
            "is_no_show": self.is_no_show,
            "total_price": money(self.total_price),
            "cancellation_source": self.cancellation_source,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class DeletionRecord(db.Model):
    """
    Snapshot of an appointment taken right before the row was deleted.

    IMMUTABLE: append-only audit trail of who removed what and why.
    """
    __tablename__ = "appointment_deletions"
    __table_args__ = (
        db.Index("ix_appointment_deletions_unit_deleted", "unit_id", "deleted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    appointment_id = db.Column(db.Integer, nullable=False)

    client_name = db.Column(db.String(120), nullable=False)
    client_phone = db.Column(db.String(32), nullable=True)
    barber_name = db.Column(db.String(120), nullable=False)
    service_name = db.Column(db.String(120), nullable=False)
    scheduled_time = db.Column(db.DateTime(timezone=True), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    original_status = db.Column(db.String(16), nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)

    deleted_by = db.Column(db.String(255), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deletion_reason = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "company_id": self.company_id,
            "appointment_id": self.appointment_id,
            "client_name": self.client_name,
            "client_phone": self.client_phone,
            "barber_name": self.barber_name,
            "service_name": self.service_name,
            "scheduled_time": to_utc_z(self.scheduled_time),
            "total_price": money(self.total_price),
            "original_status": self.original_status,
            "payment_method": self.payment_method,
            "deleted_by": self.deleted_by,
            "deleted_at": to_utc_z(self.deleted_at),
            "deletion_reason": self.deletion_reason,
        }
