from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from barberdesk.time_utils import to_utc_z
from .tenancy import money


class Barber(db.Model):
    """
    Professional working at a unit.

    A barber may be linked to a login account (user_id) through the invite
    flow. invite_token is a one-time UUID cleared once the link succeeds.
    """
    __tablename__ = "barbers"
    __table_args__ = (
        db.Index("ix_barbers_unit_active", "unit_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    calendar_color = db.Column(db.String(16), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    invite_token = db.Column(db.String(36), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    unit = db.relationship("Unit", backref=db.backref("barbers", lazy=True))
    user = db.relationship("User", backref=db.backref("barber_profiles", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "company_id": self.company_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "calendar_color": self.calendar_color,
            "is_active": self.is_active,
            "user_id": self.user_id,
            "has_pending_invite": self.invite_token is not None,
            "created_at": to_utc_z(self.created_at),
        }


class Service(db.Model):
    __tablename__ = "services"
    __table_args__ = (
        db.CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        db.CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=30)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    unit = db.relationship("Unit", backref=db.backref("services", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
            "price": money(self.price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
