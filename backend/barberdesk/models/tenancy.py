from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from barberdesk.time_utils import to_utc_z


PLAN_STATUSES = ("trial", "active", "overdue")


def money(value) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal("0.01")))


class Company(db.Model):
    """
    Multi-tenant root: every paying barbershop business is a Company.

    WHY: Shared-database multi-tenancy. Units, barbers, services and
    appointments all hang off exactly one company.

    DESIGN:
    - One company per owning user (owner_user_id is UNIQUE). The tenant
      resolver creates it lazily on first login and never duplicates it.
    - Companies are never deleted by the application.
    - plan_status drives super-admin reporting (trial/active/overdue).
    """
    __tablename__ = "companies"
    __table_args__ = (
        db.CheckConstraint(
            "plan_status IN ('trial', 'active', 'overdue')",
            name="ck_companies_plan_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    plan_status = db.Column(db.String(16), nullable=False, default="trial", index=True)
    monthly_price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    owner = db.relationship("User", backref=db.backref("company", uselist=False, lazy=True))

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_user_id": self.owner_user_id,
            "plan_status": self.plan_status,
            "monthly_price": money(self.monthly_price),
            "created_at": to_utc_z(self.created_at),
        }


class Unit(db.Model):
    """
    Operating location (one barbershop) within a company.

    MULTI-TENANT: Units are scoped to companies via company_id.
    The first unit in stable order (headquarters first, then oldest) is the
    default "current" unit of a session.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.Index("ix_units_company_order", "company_id", "is_headquarters", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    is_headquarters = db.Column(db.Boolean, nullable=False, default=False)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("units", lazy=True))

    def __repr__(self) -> str:
        return f"<Unit id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "is_headquarters": self.is_headquarters,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }
