from __future__ import annotations

from barberdesk.extensions import db
from barberdesk.models import Company, Unit


class UnitError(Exception):
    """Raised when unit operations fail."""
    pass


def _ordered(query):
    # Headquarters first, then oldest; id breaks ties between same-second inserts
    return query.order_by(
        Unit.is_headquarters.desc(),
        Unit.created_at.asc(),
        Unit.id.asc(),
    )


def list_units(company_id: int) -> list[Unit]:
    return _ordered(db.session.query(Unit).filter_by(company_id=company_id)).all()


def get_unit(unit_id: int) -> Unit | None:
    return db.session.query(Unit).filter_by(id=unit_id).first()


def create_unit(
    company_id: int,
    name: str,
    *,
    user_id: int | None = None,
    address: str | None = None,
    phone: str | None = None,
    is_headquarters: bool = False,
    timezone: str | None = None,
) -> Unit:
    if not name or not name.strip():
        raise UnitError("Unit name is required")

    company = db.session.query(Company).filter_by(id=company_id).first()
    if not company:
        raise UnitError("Company not found")

    unit = Unit(
        company_id=company_id,
        user_id=user_id if user_id is not None else company.owner_user_id,
        name=name.strip(),
        address=address,
        phone=phone,
        is_headquarters=bool(is_headquarters),
        timezone=timezone or "UTC",
    )

    db.session.add(unit)
    db.session.commit()
    return unit


def update_unit(
    unit_id: int,
    *,
    name: str | None = None,
    address: str | None = None,
    phone: str | None = None,
    timezone: str | None = None,
) -> Unit:
    unit = get_unit(unit_id)
    if not unit:
        raise UnitError("Unit not found")

    if name is not None:
        if not name.strip():
            raise UnitError("Unit name is required")
        unit.name = name.strip()
    if address is not None:
        unit.address = address
    if phone is not None:
        unit.phone = phone
    if timezone is not None:
        unit.timezone = timezone

    db.session.commit()
    return unit


def set_headquarters(unit_id: int) -> Unit:
    """Mark one unit as headquarters and clear the flag on its siblings."""
    unit = get_unit(unit_id)
    if not unit:
        raise UnitError("Unit not found")

    db.session.query(Unit).filter(
        Unit.company_id == unit.company_id,
        Unit.id != unit.id,
    ).update({Unit.is_headquarters: False}, synchronize_session="fetch")
    unit.is_headquarters = True

    db.session.commit()
    return unit
