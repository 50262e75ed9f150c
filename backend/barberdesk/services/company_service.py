from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from barberdesk.extensions import db
from barberdesk.models import Company, PLAN_STATUSES


class CompanyError(Exception):
    """Raised when company operations fail."""
    pass


def _price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise CompanyError("monthly_price must be a number")
    if not price.is_finite() or price < 0:
        raise CompanyError("monthly_price must be >= 0")
    return price.quantize(Decimal("0.01"))


def get_company_for_owner(owner_user_id: int) -> Company | None:
    return db.session.query(Company).filter_by(owner_user_id=owner_user_id).first()


def get_company(company_id: int) -> Company | None:
    return db.session.get(Company, company_id)


def create_company(
    owner_user_id: int,
    name: str,
    *,
    plan_status: str = "trial",
    monthly_price: Decimal | str | int = Decimal("0.00"),
) -> Company:
    if not name or not name.strip():
        raise CompanyError("Company name is required")
    if plan_status not in PLAN_STATUSES:
        raise CompanyError(f"plan_status must be one of: {', '.join(PLAN_STATUSES)}")

    company = Company(
        owner_user_id=owner_user_id,
        name=name.strip(),
        plan_status=plan_status,
        monthly_price=_price(monthly_price),
    )
    db.session.add(company)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise CompanyError("Owner already has a company")
    return company


def set_plan(company_id: int, *, plan_status: str | None = None, monthly_price=None) -> Company:
    company = get_company(company_id)
    if not company:
        raise CompanyError("Company not found")

    if plan_status is not None:
        if plan_status not in PLAN_STATUSES:
            raise CompanyError(f"plan_status must be one of: {', '.join(PLAN_STATUSES)}")
        company.plan_status = plan_status
    if monthly_price is not None:
        company.monthly_price = _price(monthly_price)

    db.session.commit()
    return company


def list_companies() -> list[Company]:
    return db.session.query(Company).order_by(Company.created_at.asc(), Company.id.asc()).all()


def count_companies() -> int:
    return db.session.query(Company).count()
