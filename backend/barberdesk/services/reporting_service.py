# Overview: Service-layer operations for reporting; platform-wide visit and signup statistics.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable

from barberdesk.extensions import db
from barberdesk.models import Company, PageVisit
from barberdesk.models.tenancy import money
from barberdesk.time_utils import utcnow, utc_date


DEFAULT_WINDOW_DAYS = 30
MAX_WINDOW_DAYS = 366


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def window_start(days: int, today: date) -> date:
    return today - timedelta(days=days - 1)


def bucket_daily(
    visits: Iterable[datetime],
    signups: Iterable[datetime],
    *,
    days: int = DEFAULT_WINDOW_DAYS,
    today: date | None = None,
) -> list[dict]:
    """
    Dense per-day counts, oldest day first, ending with today (UTC).

    Always returns exactly `days` buckets; days without events count 0 and
    events outside the window are dropped.
    """
    if days <= 0:
        raise ReportError("days must be positive")
    if today is None:
        today = utc_date(utcnow())

    first = window_start(days, today)
    buckets: dict[date, dict] = {}
    for offset in range(days):
        day = first + timedelta(days=offset)
        buckets[day] = {"date": day.isoformat(), "visits": 0, "signups": 0}

    for ts in visits:
        bucket = buckets.get(utc_date(ts))
        if bucket is not None:
            bucket["visits"] += 1

    for ts in signups:
        bucket = buckets.get(utc_date(ts))
        if bucket is not None:
            bucket["signups"] += 1

    return list(buckets.values())


def conversion_rate(visits: int, signups: int) -> str:
    """signups/visits as a percentage with two decimals; "0.00%" without visits."""
    if visits <= 0:
        return "0.00%"
    return f"{signups / visits * 100:.2f}%"


def admin_stats(days: int = DEFAULT_WINDOW_DAYS, *, now: datetime | None = None) -> dict:
    if days <= 0 or days > MAX_WINDOW_DAYS:
        raise ReportError(f"days must be between 1 and {MAX_WINDOW_DAYS}")

    now = now or utcnow()
    today = utc_date(now)
    since = datetime.combine(window_start(days, today), datetime.min.time())

    companies = db.session.query(Company).all()
    visit_times = [
        row.visited_at
        for row in db.session.query(PageVisit.visited_at).filter(PageVisit.visited_at >= since).all()
    ]
    signup_times = [c.created_at for c in companies if c.created_at is not None]

    by_day = bucket_daily(visit_times, signup_times, days=days, today=today)

    active = [c for c in companies if c.plan_status in ("trial", "active")]
    paying = [c for c in companies if c.plan_status == "active"]
    overdue = [c for c in companies if c.plan_status == "overdue"]
    mrr = sum((Decimal(str(c.monthly_price or 0)) for c in paying), Decimal("0.00"))

    total_visits = sum(b["visits"] for b in by_day)
    total_signups = sum(b["signups"] for b in by_day)

    return {
        "days": days,
        "totalActiveCompanies": len(active),
        "mrr": money(mrr),
        "newSignups": total_signups,
        "companiesUpToDate": len(paying),
        "companiesOverdue": len(overdue),
        "totalVisits": total_visits,
        "conversionRate": conversion_rate(total_visits, total_signups),
        "visitsByDay": by_day,
    }
