from __future__ import annotations

from decimal import Decimal, InvalidOperation

from barberdesk.extensions import db
from barberdesk.models import Barber, Service, Unit


class CatalogError(Exception):
    """Raised when barber or service operations fail."""
    pass


def _require_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if not unit:
        raise CatalogError("Unit not found")
    return unit


def _price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise CatalogError("price must be a number")
    if price < 0:
        raise CatalogError("price must be >= 0")
    return price.quantize(Decimal("0.01"))


def list_barbers(unit_id: int, *, include_inactive: bool = False) -> list[Barber]:
    query = db.session.query(Barber).filter_by(unit_id=unit_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Barber.name.asc(), Barber.id.asc()).all()


def get_barber(barber_id: int) -> Barber | None:
    return db.session.get(Barber, barber_id)


def create_barber(
    unit_id: int,
    name: str,
    *,
    email: str | None = None,
    phone: str | None = None,
    calendar_color: str | None = None,
) -> Barber:
    unit = _require_unit(unit_id)
    if not name or not str(name).strip():
        raise CatalogError("Barber name is required")

    barber = Barber(
        unit_id=unit.id,
        company_id=unit.company_id,
        name=str(name).strip(),
        email=(email or "").strip().lower() or None,
        phone=phone,
        calendar_color=calendar_color,
        is_active=True,
    )
    db.session.add(barber)
    db.session.commit()
    return barber


def deactivate_barber(barber_id: int) -> Barber:
    barber = get_barber(barber_id)
    if not barber:
        raise CatalogError("Barber not found")
    barber.is_active = False
    db.session.commit()
    return barber


def list_services(unit_id: int, *, include_inactive: bool = False) -> list[Service]:
    query = db.session.query(Service).filter_by(unit_id=unit_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Service.name.asc(), Service.id.asc()).all()


def get_service(service_id: int) -> Service | None:
    return db.session.get(Service, service_id)


def create_service(
    unit_id: int,
    name: str,
    *,
    duration_minutes: int = 30,
    price=Decimal("0.00"),
) -> Service:
    unit = _require_unit(unit_id)
    if not name or not str(name).strip():
        raise CatalogError("Service name is required")
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise CatalogError("duration_minutes must be a positive integer")

    service = Service(
        unit_id=unit.id,
        name=str(name).strip(),
        duration_minutes=duration_minutes,
        price=_price(price),
        is_active=True,
    )
    db.session.add(service)
    db.session.commit()
    return service
