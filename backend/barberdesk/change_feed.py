# Overview: In-process change feed; publishes committed row changes to subscribers.

"""
Row Change Feed

WHY: Landing-page counters (remaining spots, total companies) must refresh
when a new company signs up. Instead of an implicit push channel, consumers
subscribe explicitly:

    with change_feed.subscribe("companies", INSERT, handler):
        ...

    sub = change_feed.subscribe("companies", INSERT, handler)
    sub.unsubscribe()

DELIVERY RULES:
- Events are collected during flush and delivered only after the owning
  transaction commits. A rollback discards them.
- Handlers run synchronously on the committing thread, after the transaction
  has ended. They must not use the database session; they should record or
  invalidate state and let the next reader query.
- A failing handler is logged and skipped; it never breaks the commit that
  produced the event.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_KINDS = {INSERT, UPDATE, DELETE}

_PENDING_KEY = "barberdesk_change_feed_pending"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: str
    row: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ChangeFeed.subscribe; tears down exactly once."""

    def __init__(self, feed: "ChangeFeed", table: str, kind: str, handler: Handler):
        self._feed = feed
        self.table = table
        self.kind = kind
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._installed = False

    def subscribe(self, table: str, kind: str, handler: Handler) -> Subscription:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind '{kind}'")
        sub = Subscription(self, table, kind, handler)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def subscriber_count(self, table: str | None = None) -> int:
        with self._lock:
            if table is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions if s.table == table)

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            targets = [
                s for s in self._subscriptions
                if s.table == change.table and s.kind == change.kind
            ]
        for sub in targets:
            try:
                sub.handler(change)
            except Exception:
                logger.exception(
                    "Change feed handler failed for %s %s", change.kind, change.table
                )

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def init_app(self, app, db) -> None:
        """Hook SQLAlchemy events once; later calls are no-ops."""
        app.extensions["change_feed"] = self
        if self._installed:
            return
        self._installed = True

        def _queue(kind):
            def _listener(mapper, connection, target):
                session = object_session(target)
                if session is None:
                    return
                row = {attr.key: getattr(target, attr.key) for attr in mapper.column_attrs}
                session.info.setdefault(_PENDING_KEY, []).append(
                    ChangeEvent(table=mapper.local_table.name, kind=kind, row=row)
                )
            return _listener

        event.listen(db.Model, "after_insert", _queue(INSERT), propagate=True)
        event.listen(db.Model, "after_update", _queue(UPDATE), propagate=True)
        event.listen(db.Model, "after_delete", _queue(DELETE), propagate=True)

        @event.listens_for(Session, "after_commit")
        def _deliver(session):
            pending = session.info.pop(_PENDING_KEY, [])
            for change in pending:
                self.publish(change)

        @event.listens_for(Session, "after_soft_rollback")
        def _discard(session, previous_transaction):
            session.info.pop(_PENDING_KEY, None)
