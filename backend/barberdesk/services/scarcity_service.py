"""
Landing Page Scarcity Counters

display() turns the real number of free launch spots into a coarse public
figure so competitors cannot read the exact signup count off the landing page:

    actual <= 0   -> 0,      "spots exhausted"
    actual 1..5   -> actual, "last spots!"
    actual 6..10  -> 10,     "fewer than 10 spots"
    actual 11..15 -> 15,     "fewer than 15 spots"
    actual > 15   -> 20,     "spots available"

Each signup creates exactly one company, so used spots = company count.
CompanyCountCache keeps that count and drops it whenever the change feed
reports a committed companies INSERT.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from flask import current_app

from ..change_feed import INSERT, ChangeEvent
from ..extensions import change_feed
from . import company_service

DEFAULT_TOTAL_SPOTS = 30
DEFAULT_CACHE_TTL_SECONDS = 60

MSG_EXHAUSTED = "spots exhausted"
MSG_LAST = "last spots!"
MSG_UNDER_10 = "fewer than 10 spots"
MSG_UNDER_15 = "fewer than 15 spots"
MSG_AVAILABLE = "spots available"

# Served with HTTP 500 when counting fails; keeps the landing page optimistic
FALLBACK = {"remaining": 20, "message": MSG_AVAILABLE, "hasSpots": True}


@dataclass(frozen=True)
class ScarcityDisplay:
    shown: int
    message: str


def display(actual_remaining: int) -> ScarcityDisplay:
    if actual_remaining <= 0:
        return ScarcityDisplay(0, MSG_EXHAUSTED)
    if actual_remaining <= 5:
        return ScarcityDisplay(actual_remaining, MSG_LAST)
    if actual_remaining <= 10:
        return ScarcityDisplay(10, MSG_UNDER_10)
    if actual_remaining <= 15:
        return ScarcityDisplay(15, MSG_UNDER_15)
    return ScarcityDisplay(20, MSG_AVAILABLE)


class CompanyCountCache:
    """
    Company count, invalidated by committed inserts into companies.

    The feed only sees ORM commits of this process, so a cached count also
    expires after ttl_seconds to pick up rows written by other workers, the
    CLI or Core statements.
    """

    def __init__(self, feed=None, ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS, clock=time.monotonic):
        self._lock = threading.Lock()
        self._count: int | None = None
        self._counted_at = 0.0
        self._generation = 0
        self._ttl = ttl_seconds
        self._clock = clock
        self._subscription = (feed or change_feed).subscribe("companies", INSERT, self._on_insert)

    def _on_insert(self, change: ChangeEvent) -> None:
        self.invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._count = None
            self._generation += 1

    def _expired(self) -> bool:
        return self._clock() - self._counted_at >= self._ttl

    @property
    def is_stale(self) -> bool:
        return self._count is None or self._expired()

    def get(self) -> int:
        with self._lock:
            if self._count is not None and not self._expired():
                return self._count
            generation = self._generation
        count = company_service.count_companies()
        with self._lock:
            # An insert committed while we counted; leave the cache stale
            if generation == self._generation:
                self._count = count
                self._counted_at = self._clock()
        return count

    def close(self) -> None:
        self._subscription.unsubscribe()


def init_app(app) -> CompanyCountCache:
    cache = CompanyCountCache(
        ttl_seconds=float(app.config.get("SCARCITY_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS)),
    )
    app.extensions["company_count_cache"] = cache
    return cache


def company_count() -> int:
    cache = current_app.extensions.get("company_count_cache")
    if cache is None:
        return company_service.count_companies()
    return cache.get()


def remaining_spots(total_spots: int | None = None) -> dict:
    if total_spots is None:
        total_spots = int(current_app.config.get("TOTAL_SPOTS", DEFAULT_TOTAL_SPOTS))
    actual_remaining = max(0, total_spots - company_count())
    shown = display(actual_remaining)
    return {
        "remaining": shown.shown,
        "message": shown.message,
        "hasSpots": actual_remaining > 0,
    }


def company_stats() -> dict:
    return {"totalCompanies": company_count()}
