"""
Cancellation & Deletion History

Read side of the appointment audit trail. Records are written by
lifecycle_service; the only mutation offered here is an operator removing a
cancellation record from their own unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import CancellationRecord, DeletionRecord
from barberdesk.time_utils import as_utc_naive
from ..models.tenancy import money


class HistoryError(Exception):
    pass


@dataclass(frozen=True)
class CancellationSummary:
    total_count: int
    late_count: int
    no_show_count: int
    total_value: Decimal
    late_value: Decimal

    def to_dict(self) -> dict:
        return {
            "totalCount": self.total_count,
            "lateCount": self.late_count,
            "noShowCount": self.no_show_count,
            "totalValue": money(self.total_value),
            "lateValue": money(self.late_value),
        }


@dataclass(frozen=True)
class DeletionSummary:
    total_count: int
    confirmed_count: int
    completed_count: int
    total_value: Decimal

    def to_dict(self) -> dict:
        return {
            "totalCount": self.total_count,
            "confirmedCount": self.confirmed_count,
            "completedCount": self.completed_count,
            "totalValue": money(self.total_value),
        }


def list_cancellations(
    unit_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    only_late: bool = False,
    only_no_show: bool = False,
) -> list[CancellationRecord]:
    """Newest slot first; start/end bound scheduled_time inclusively."""
    query = db.session.query(CancellationRecord).filter(CancellationRecord.unit_id == unit_id)
    if start is not None:
        query = query.filter(CancellationRecord.scheduled_time >= as_utc_naive(start))
    if end is not None:
        query = query.filter(CancellationRecord.scheduled_time <= as_utc_naive(end))
    if only_late:
        query = query.filter(CancellationRecord.is_late_cancellation.is_(True))
    if only_no_show:
        query = query.filter(CancellationRecord.is_no_show.is_(True))
    return query.order_by(
        CancellationRecord.scheduled_time.desc(),
        CancellationRecord.id.desc(),
    ).all()


def list_deletions(
    unit_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[DeletionRecord]:
    query = db.session.query(DeletionRecord).filter(DeletionRecord.unit_id == unit_id)
    if start is not None:
        query = query.filter(DeletionRecord.deleted_at >= as_utc_naive(start))
    if end is not None:
        query = query.filter(DeletionRecord.deleted_at <= as_utc_naive(end))
    return query.order_by(DeletionRecord.deleted_at.desc(), DeletionRecord.id.desc()).all()


def summarize_cancellations(records: Iterable[CancellationRecord]) -> CancellationSummary:
    total_count = late_count = no_show_count = 0
    total_value = Decimal("0.00")
    late_value = Decimal("0.00")

    for r in records:
        price = Decimal(str(r.total_price or 0))
        total_count += 1
        total_value += price
        if r.is_late_cancellation:
            late_count += 1
        if r.is_no_show:
            no_show_count += 1
        # late_value covers both late cancellations and no-shows
        if r.is_late_cancellation or r.is_no_show:
            late_value += price

    return CancellationSummary(
        total_count=total_count,
        late_count=late_count,
        no_show_count=no_show_count,
        total_value=total_value,
        late_value=late_value,
    )


def summarize_deletions(records: Iterable[DeletionRecord]) -> DeletionSummary:
    total_count = confirmed_count = completed_count = 0
    total_value = Decimal("0.00")

    for r in records:
        total_count += 1
        total_value += Decimal(str(r.total_price or 0))
        if r.original_status == "confirmed":
            confirmed_count += 1
        elif r.original_status == "completed":
            completed_count += 1

    return DeletionSummary(
        total_count=total_count,
        confirmed_count=confirmed_count,
        completed_count=completed_count,
        total_value=total_value,
    )


def delete_cancellation_record(record_id: int, *, unit_ids: set[int]) -> None:
    """
    Remove one cancellation record.

    unit_ids is the caller's tenant scope; records outside it are reported as
    missing.
    """
    record = db.session.get(CancellationRecord, record_id)
    if record is None or record.unit_id not in unit_ids:
        raise HistoryError("Cancellation record not found")
    db.session.delete(record)
    db.session.commit()
