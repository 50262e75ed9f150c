"""
Multi-Tenant Service: Tenant Resolution, Provisioning and Scoping Helpers

WHY: An owner signs up with nothing but an account. The first authenticated
request must end with a company, at least one unit and a selected "current"
unit, without ever creating a second company or a second default unit when
several requests for the same session race each other.

RESOLUTION (TenantResolver.sync, one call per request):
1. No principal -> "no_session"; nothing is looked up.
2. Look up the owner's company. A failed lookup stops here (fail closed):
   creating a company after an ambiguous "not found" is how duplicates happen.
3. No company -> create one named from profile metadata
   (business_name, else full_name, else DEFAULT_COMPANY_NAME).
4. Load units in stable order. Empty -> create one unit named after the company.
5. No unit selected -> select the first loaded unit.

GUARDS: company and unit creation each have a ProvisioningGuard
(idle -> creating -> idle). A call that finds the guard busy returns
"provisioning" instead of issuing a second request. The guard returns to
idle when the request settles, success or failure. No retries, no queue.

SELECTED UNIT: held by the resolver in process memory, keyed by session id
through the app-owned ResolverRegistry. Never persisted; after a restart it is
re-derived by the same rules.

USAGE:
    from barberdesk.services.tenant_service import get_resolver, require_unit_in_company

    state = get_resolver(session_id).sync(user)
    unit = require_unit_in_company(unit_id, state.company.id)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Company, Unit, User
from . import company_service, unit_service
from .security_service import log_request_denial

logger = logging.getLogger(__name__)

STATUS_NO_SESSION = "no_session"
STATUS_PROVISIONING = "provisioning"
STATUS_RESOLVED = "resolved"
STATUS_ERROR = "error"

GUARD_IDLE = "idle"
GUARD_CREATING = "creating"


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


class TenantLookupError(Exception):
    """The store could not answer whether a company/unit exists."""
    pass


class TenantProvisioningError(Exception):
    """A creation request settled with a failure."""
    pass


class ProvisioningGuard:
    """
    In-flight flag for one kind of creation request.

    try_begin() is an atomic idle -> creating transition; it returns False
    when a request is already in flight. settle() returns to idle.
    """

    def __init__(self, name: str):
        self.name = name
        self.state = GUARD_IDLE
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self.state == GUARD_CREATING

    def try_begin(self) -> bool:
        with self._lock:
            if self.state == GUARD_CREATING:
                return False
            self.state = GUARD_CREATING
            return True

    def settle(self) -> None:
        with self._lock:
            self.state = GUARD_IDLE


@dataclass
class TenantState:
    status: str
    company: Company | None = None
    units: list[Unit] = field(default_factory=list)
    current_unit_id: int | None = None
    error: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == STATUS_RESOLVED

    @property
    def company_id(self) -> int | None:
        return self.company.id if self.company is not None else None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "company": self.company.to_dict() if self.company is not None else None,
            "units": [u.to_dict() for u in self.units],
            "current_unit_id": self.current_unit_id,
            "error": self.error,
        }


class SqlTenantStore:
    """Persistence used by the resolver; wraps database failures in tenant errors."""

    def find_company(self, owner_user_id: int) -> Company | None:
        try:
            return company_service.get_company_for_owner(owner_user_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TenantLookupError("Company lookup failed") from exc

    def create_company(self, owner_user_id: int, name: str) -> Company:
        try:
            return company_service.create_company(owner_user_id, name)
        except (company_service.CompanyError, SQLAlchemyError) as exc:
            db.session.rollback()
            raise TenantProvisioningError(f"Company creation failed: {exc}") from exc

    def list_units(self, company_id: int) -> list[Unit]:
        try:
            return unit_service.list_units(company_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TenantLookupError("Unit lookup failed") from exc

    def create_unit(self, company: Company, name: str) -> Unit:
        try:
            return unit_service.create_unit(company.id, name, user_id=company.owner_user_id)
        except (unit_service.UnitError, SQLAlchemyError) as exc:
            db.session.rollback()
            raise TenantProvisioningError(f"Unit creation failed: {exc}") from exc


def company_name_for(user: User, fallback: str) -> str:
    profile = user.profile_metadata or {}
    return profile.get("business_name") or profile.get("full_name") or fallback


class TenantResolver:
    def __init__(
        self,
        store=None,
        *,
        default_company_name: str = "My Company",
        default_unit_name: str = "Main Barbershop",
    ):
        self.store = store if store is not None else SqlTenantStore()
        self.default_company_name = default_company_name
        self.default_unit_name = default_unit_name
        self.company_guard = ProvisioningGuard("company")
        self.unit_guard = ProvisioningGuard("unit")
        self.current_unit_id: int | None = None
        self._selection_lock = threading.Lock()

    def sync(self, principal: User | None) -> TenantState:
        if principal is None:
            return TenantState(status=STATUS_NO_SESSION)

        try:
            company = self.store.find_company(principal.id)
        except TenantLookupError as exc:
            logger.warning("Company lookup failed for user %s; skipping provisioning: %s", principal.id, exc)
            return TenantState(status=STATUS_ERROR, error=str(exc))

        if company is None:
            if not self.company_guard.try_begin():
                return TenantState(status=STATUS_PROVISIONING)
            try:
                company = self._create_company(principal)
            except (TenantLookupError, TenantProvisioningError) as exc:
                logger.warning("Company provisioning for user %s settled with failure: %s", principal.id, exc)
                return TenantState(status=STATUS_ERROR, error=str(exc))
            finally:
                self.company_guard.settle()

        try:
            units = self.store.list_units(company.id)
        except TenantLookupError as exc:
            logger.warning("Unit lookup failed for company %s; skipping provisioning: %s", company.id, exc)
            return TenantState(status=STATUS_ERROR, company=company, error=str(exc))

        if not units:
            if not self.unit_guard.try_begin():
                return TenantState(status=STATUS_PROVISIONING, company=company)
            try:
                units = self._create_default_unit(company)
            except (TenantLookupError, TenantProvisioningError) as exc:
                logger.warning("Unit provisioning for company %s settled with failure: %s", company.id, exc)
                return TenantState(status=STATUS_ERROR, company=company, error=str(exc))
            finally:
                self.unit_guard.settle()

        with self._selection_lock:
            if self.current_unit_id is None:
                self.current_unit_id = units[0].id
            current_unit_id = self.current_unit_id

        return TenantState(
            status=STATUS_RESOLVED,
            company=company,
            units=units,
            current_unit_id=current_unit_id,
        )

    def select_unit(self, principal: User, unit_id: int) -> TenantState:
        """Switch the current unit; only units of the resolved company qualify."""
        state = self.sync(principal)
        if not state.is_resolved:
            return state
        if unit_id not in {u.id for u in state.units}:
            raise TenantAccessError("Unit not found")
        with self._selection_lock:
            self.current_unit_id = unit_id
        state.current_unit_id = unit_id
        return state

    def _create_company(self, principal: User) -> Company:
        # Re-read inside the guard: another request may have settled a
        # creation between our lookup and try_begin().
        company = self.store.find_company(principal.id)
        if company is not None:
            return company
        name = company_name_for(principal, self.default_company_name)
        company = self.store.create_company(principal.id, name)
        logger.info("Provisioned company %s (%r) for user %s", company.id, company.name, principal.id)
        return company

    def _create_default_unit(self, company: Company) -> list[Unit]:
        units = self.store.list_units(company.id)
        if units:
            return units
        unit = self.store.create_unit(company, company.name or self.default_unit_name)
        logger.info("Provisioned default unit %s for company %s", unit.id, company.id)
        return [unit]


class ResolverRegistry:
    """App-owned map of session id -> TenantResolver."""

    def __init__(self, factory):
        self._factory = factory
        self._lock = threading.Lock()
        self._resolvers: dict[int, TenantResolver] = {}

    def get(self, session_id: int) -> TenantResolver:
        with self._lock:
            resolver = self._resolvers.get(session_id)
            if resolver is None:
                resolver = self._factory()
                self._resolvers[session_id] = resolver
            return resolver

    def discard(self, session_id: int) -> None:
        with self._lock:
            self._resolvers.pop(session_id, None)

    def retain(self, session_ids) -> int:
        """Drop resolvers whose session is not in session_ids; returns how many."""
        keep = set(session_ids)
        with self._lock:
            stale = [sid for sid in self._resolvers if sid not in keep]
            for sid in stale:
                del self._resolvers[sid]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._resolvers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._resolvers)


def init_app(app) -> ResolverRegistry:
    def _factory():
        return TenantResolver(
            default_company_name=app.config["DEFAULT_COMPANY_NAME"],
            default_unit_name=app.config["DEFAULT_UNIT_NAME"],
        )

    registry = ResolverRegistry(_factory)
    app.extensions["tenant_resolvers"] = registry
    return registry


def get_registry() -> ResolverRegistry:
    return current_app.extensions["tenant_resolvers"]


def get_resolver(session_id: int) -> TenantResolver:
    return get_registry().get(session_id)


def get_registry_if_ready() -> ResolverRegistry | None:
    return current_app.extensions.get("tenant_resolvers")


def discard_resolver(session_id: int) -> None:
    get_registry().discard(session_id)


def require_unit_in_company(unit_id: int, company_id: int) -> Unit:
    """
    Validate that a unit belongs to the specified company.

    SECURITY: Core tenant isolation check. Call this before any operation
    that uses a unit_id from client input. A unit of another company is
    reported exactly like a missing one.
    """
    unit = db.session.query(Unit).filter_by(id=unit_id).first()

    if not unit:
        log_request_denial(
            "CROSS_TENANT_ACCESS_DENIED",
            f"Unit {unit_id} not found",
            company_id=company_id,
        )
        raise TenantAccessError("Unit not found")

    if unit.company_id != company_id:
        # CRITICAL: Cross-tenant access attempt
        log_request_denial(
            "CROSS_TENANT_ACCESS_DENIED",
            f"Unit {unit_id} belongs to company {unit.company_id}, not {company_id}",
            company_id=company_id,
            unit_id=unit_id,
        )
        raise TenantAccessError("Unit not found")  # Don't reveal it exists in another company

    return unit


def get_company_unit_ids(company_id: int) -> set[int]:
    rows = db.session.query(Unit.id).filter_by(company_id=company_id).all()
    return {r.id for r in rows}
