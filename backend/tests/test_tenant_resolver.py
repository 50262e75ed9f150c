# Overview: Pytest coverage for tenant resolution, provisioning guards and unit scoping.

"""
Tenant Resolver Tests

The resolver must end every successful cycle with exactly one company, at
least one unit and a selected unit, and must never create duplicates:
- a failed company lookup provisions nothing (fail closed)
- a busy guard answers "provisioning" instead of issuing a second create
- creation re-checks inside the guard
"""

import threading
from datetime import timedelta
from types import SimpleNamespace

import pytest

from barberdesk.models import Company, SecurityEvent, SessionToken, Unit
from barberdesk.services.session_service import SESSION_IDLE_TIMEOUT
from barberdesk.time_utils import utcnow
from barberdesk.services.tenant_service import (
    GUARD_CREATING,
    GUARD_IDLE,
    STATUS_ERROR,
    STATUS_NO_SESSION,
    STATUS_PROVISIONING,
    STATUS_RESOLVED,
    ProvisioningGuard,
    ResolverRegistry,
    TenantAccessError,
    TenantLookupError,
    TenantProvisioningError,
    TenantResolver,
    company_name_for,
    get_company_unit_ids,
    require_unit_in_company,
)
from conftest import auth_headers, get_auth_token


class FakeStore:
    """In-memory stand-in for SqlTenantStore that counts calls."""

    def __init__(self):
        self.companies = {}
        self.units = {}
        self.next_id = 1
        self.calls = []
        self.fail_lookup = False
        self.fail_create = False

    def _id(self):
        self.next_id += 1
        return self.next_id

    def find_company(self, owner_user_id):
        self.calls.append(("find_company", owner_user_id))
        if self.fail_lookup:
            raise TenantLookupError("Company lookup failed")
        return self.companies.get(owner_user_id)

    def create_company(self, owner_user_id, name):
        self.calls.append(("create_company", name))
        if self.fail_create:
            raise TenantProvisioningError("Company creation failed: boom")
        company = SimpleNamespace(id=self._id(), name=name, owner_user_id=owner_user_id, to_dict=lambda: {})
        self.companies[owner_user_id] = company
        return company

    def list_units(self, company_id):
        self.calls.append(("list_units", company_id))
        return list(self.units.get(company_id, []))

    def create_unit(self, company, name):
        self.calls.append(("create_unit", name))
        unit = SimpleNamespace(id=self._id(), name=name, company_id=company.id, to_dict=lambda: {})
        self.units.setdefault(company.id, []).append(unit)
        return unit

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


def principal(user_id=1, **profile):
    return SimpleNamespace(id=user_id, profile_metadata=profile)


def make_resolver(store):
    return TenantResolver(store, default_company_name="My Company", default_unit_name="Main Barbershop")


class TestProvisioningGuard:

    def test_starts_idle(self):
        guard = ProvisioningGuard("company")
        assert guard.state == GUARD_IDLE
        assert not guard.in_flight

    def test_second_begin_is_refused_until_settled(self):
        guard = ProvisioningGuard("company")
        assert guard.try_begin() is True
        assert guard.state == GUARD_CREATING
        assert guard.try_begin() is False

        guard.settle()
        assert guard.state == GUARD_IDLE
        assert guard.try_begin() is True


class TestCompanyNaming:

    def test_business_name_wins(self):
        user = principal(business_name="Fade Lab", full_name="Ana")
        assert company_name_for(user, "My Company") == "Fade Lab"

    def test_full_name_when_no_business_name(self):
        assert company_name_for(principal(full_name="Ana"), "My Company") == "Ana"

    def test_fallback_when_profile_empty(self):
        assert company_name_for(principal(), "My Company") == "My Company"


class TestResolverSync:

    def test_no_principal_touches_nothing(self):
        store = FakeStore()
        state = make_resolver(store).sync(None)

        assert state.status == STATUS_NO_SESSION
        assert store.calls == []

    def test_first_sync_provisions_company_and_unit(self):
        store = FakeStore()
        state = make_resolver(store).sync(principal(business_name="Fade Lab"))

        assert state.status == STATUS_RESOLVED
        assert state.company.name == "Fade Lab"
        assert len(state.units) == 1
        # Default unit is named after the company
        assert state.units[0].name == "Fade Lab"
        assert state.current_unit_id == state.units[0].id

    def test_existing_company_and_units_create_nothing(self):
        store = FakeStore()
        company = store.create_company(1, "Fade Lab")
        first = store.create_unit(company, "Centro")
        store.create_unit(company, "Sul")
        store.calls.clear()

        state = make_resolver(store).sync(principal())

        assert state.is_resolved
        assert state.current_unit_id == first.id
        assert store.count("create_company") == 0
        assert store.count("create_unit") == 0

    def test_lookup_failure_fails_closed(self):
        store = FakeStore()
        store.fail_lookup = True

        state = make_resolver(store).sync(principal(business_name="Fade Lab"))

        assert state.status == STATUS_ERROR
        assert state.company is None
        assert store.count("create_company") == 0

    def test_creation_failure_settles_guard(self):
        store = FakeStore()
        store.fail_create = True
        resolver = make_resolver(store)

        state = resolver.sync(principal())
        assert state.status == STATUS_ERROR
        assert resolver.company_guard.state == GUARD_IDLE

        # Next cycle starts fresh and may succeed
        store.fail_create = False
        state = resolver.sync(principal())
        assert state.status == STATUS_RESOLVED
        assert store.count("create_company") == 2

    def test_busy_company_guard_reports_provisioning(self):
        store = FakeStore()
        resolver = make_resolver(store)
        resolver.company_guard.try_begin()

        state = resolver.sync(principal())

        assert state.status == STATUS_PROVISIONING
        assert store.count("create_company") == 0

    def test_busy_unit_guard_reports_provisioning(self):
        store = FakeStore()
        store.create_company(1, "Fade Lab")
        resolver = make_resolver(store)
        resolver.unit_guard.try_begin()

        state = resolver.sync(principal())

        assert state.status == STATUS_PROVISIONING
        assert state.company is not None
        assert store.count("create_unit") == 0

    def test_recheck_inside_guard_finds_concurrent_company(self):
        store = FakeStore()
        other = SimpleNamespace(id=99, name="Made elsewhere", owner_user_id=1, to_dict=lambda: {})
        lookups = iter([None, other])
        store.find_company = lambda owner_user_id: next(lookups)

        state = make_resolver(store).sync(principal())

        assert state.company is other
        assert store.count("create_company") == 0

    def test_concurrent_syncs_create_one_company(self):
        store = FakeStore()
        entered = threading.Event()
        release = threading.Event()
        original_create = store.create_company

        def slow_create(owner_user_id, name):
            entered.set()
            release.wait(timeout=5)
            return original_create(owner_user_id, name)

        store.create_company = slow_create
        resolver = make_resolver(store)
        results = []

        worker = threading.Thread(target=lambda: results.append(resolver.sync(principal())))
        worker.start()
        assert entered.wait(timeout=5)

        # Same session, creation in flight
        concurrent = resolver.sync(principal())
        release.set()
        worker.join(timeout=5)

        assert concurrent.status == STATUS_PROVISIONING
        assert results[0].status == STATUS_RESOLVED
        assert len(store.companies) == 1

    def test_selection_survives_later_syncs(self):
        store = FakeStore()
        company = store.create_company(1, "Fade Lab")
        store.create_unit(company, "Centro")
        second = store.create_unit(company, "Sul")
        resolver = make_resolver(store)

        resolver.select_unit(principal(), second.id)
        state = resolver.sync(principal())

        assert state.current_unit_id == second.id

    def test_select_foreign_unit_is_refused(self):
        store = FakeStore()
        resolver = make_resolver(store)
        resolver.sync(principal())

        with pytest.raises(TenantAccessError):
            resolver.select_unit(principal(), 12345)


class TestResolverRegistry:

    def test_one_resolver_per_session(self):
        registry = ResolverRegistry(lambda: make_resolver(FakeStore()))

        assert registry.get(1) is registry.get(1)
        assert registry.get(1) is not registry.get(2)
        assert len(registry) == 2

    def test_discard_forgets_selection(self):
        registry = ResolverRegistry(lambda: make_resolver(FakeStore()))
        first = registry.get(1)
        registry.discard(1)

        assert registry.get(1) is not first

    def test_retain_drops_other_sessions(self):
        registry = ResolverRegistry(lambda: make_resolver(FakeStore()))
        kept = registry.get(1)
        registry.get(2)
        registry.get(3)

        assert registry.retain({1, 99}) == 2
        assert len(registry) == 1
        assert registry.get(1) is kept


class TestSqlProvisioning:
    """Resolver against the real database."""

    def test_provisions_from_profile(self, db_session, owner_a):
        state = TenantResolver(default_company_name="My Company").sync(owner_a)

        assert state.is_resolved
        company = db_session.query(Company).filter_by(owner_user_id=owner_a.id).one()
        units = db_session.query(Unit).filter_by(company_id=company.id).all()
        assert company.name == "Fade Lab"
        assert [u.name for u in units] == ["Fade Lab"]
        assert state.current_unit_id == units[0].id

    def test_two_resolvers_same_owner_one_company(self, db_session, owner_b):
        TenantResolver().sync(owner_b)
        state = TenantResolver().sync(owner_b)

        assert state.is_resolved
        assert db_session.query(Company).filter_by(owner_user_id=owner_b.id).count() == 1
        assert db_session.query(Unit).filter_by(company_id=state.company_id).count() == 1

    def test_headquarters_selected_first(self, db_session, company_a, unit_a):
        from barberdesk.services import unit_service
        hq = unit_service.create_unit(company_a.id, "Matriz", is_headquarters=True)

        state = TenantResolver().sync(company_a.owner)

        assert state.current_unit_id == hq.id


class TestUnitScoping:

    def test_require_unit_in_company_valid(self, db_session, company_a, unit_a):
        assert require_unit_in_company(unit_a.id, company_a.id).id == unit_a.id

    def test_require_unit_in_company_cross_tenant(self, app, db_session, company_a, unit_b):
        before = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").count()

        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                require_unit_in_company(unit_b.id, company_a.id)

        after = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").count()
        assert after == before + 1

    def test_require_unit_in_company_nonexistent(self, db_session, company_a):
        with pytest.raises(TenantAccessError):
            require_unit_in_company(99999, company_a.id)

    def test_get_company_unit_ids(self, db_session, company_a, company_b, unit_a, unit_b):
        assert get_company_unit_ids(company_a.id) == {unit_a.id}
        assert get_company_unit_ids(company_b.id) == {unit_b.id}


class TestTenantRoutes:

    def test_current_requires_auth(self, client, db_session):
        assert client.get("/api/tenant/current").status_code == 401

    def test_first_request_provisions(self, client, db_session, owner_b):
        headers = auth_headers(get_auth_token(client, owner_b.email))

        resp = client.get("/api/tenant/current", headers=headers)

        assert resp.status_code == 200
        assert resp.json["status"] == STATUS_RESOLVED
        assert resp.json["company"]["name"] == "Bruno Lima"
        assert len(resp.json["units"]) == 1
        assert resp.json["current_unit_id"] == resp.json["units"][0]["id"]

        again = client.get("/api/tenant/current", headers=headers)
        assert again.json["company"]["id"] == resp.json["company"]["id"]
        assert db_session.query(Company).filter_by(owner_user_id=owner_b.id).count() == 1

    def test_switch_unit(self, client, db_session, company_a, unit_a, owner_a_headers):
        from barberdesk.services import unit_service
        other = unit_service.create_unit(company_a.id, "Fade Lab Norte")

        resp = client.put("/api/tenant/current-unit", json={"unit_id": other.id}, headers=owner_a_headers)

        assert resp.status_code == 200
        assert resp.json["current_unit_id"] == other.id
        assert client.get("/api/units", headers=owner_a_headers).json["current_unit_id"] == other.id

    def test_switch_to_foreign_unit_is_404(self, client, db_session, unit_a, unit_b, owner_a_headers):
        resp = client.put("/api/tenant/current-unit", json={"unit_id": unit_b.id}, headers=owner_a_headers)
        assert resp.status_code == 404

    def test_switch_requires_integer(self, client, db_session, unit_a, owner_a_headers):
        resp = client.put("/api/tenant/current-unit", json={"unit_id": "abc"}, headers=owner_a_headers)
        assert resp.status_code == 400

    def test_logout_discards_selection(self, app, client, db_session, unit_a, owner_a):
        token = get_auth_token(client, owner_a.email)
        client.get("/api/tenant/current", headers=auth_headers(token))
        assert len(app.extensions["tenant_resolvers"]) == 1

        resp = client.post("/api/auth/logout", headers=auth_headers(token))

        assert resp.status_code == 200
        assert len(app.extensions["tenant_resolvers"]) == 0

    def _session_of(self, db_session, user):
        return db_session.query(SessionToken).filter_by(user_id=user.id).order_by(SessionToken.id.desc()).first()

    def test_idle_timeout_discards_resolver(self, app, client, db_session, unit_a, owner_a):
        token = get_auth_token(client, owner_a.email)
        client.get("/api/tenant/current", headers=auth_headers(token))
        assert len(app.extensions["tenant_resolvers"]) == 1

        session = self._session_of(db_session, owner_a)
        session.last_used_at = utcnow() - SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert len(app.extensions["tenant_resolvers"]) == 0

    def test_expired_session_discards_resolver(self, app, client, db_session, unit_a, owner_a):
        token = get_auth_token(client, owner_a.email)
        client.get("/api/tenant/current", headers=auth_headers(token))

        session = self._session_of(db_session, owner_a)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/tenant/current", headers=auth_headers(token)).status_code == 401
        assert len(app.extensions["tenant_resolvers"]) == 0

    def test_abandoned_session_pruned_on_next_login(self, app, client, db_session, unit_a, owner_a, owner_b):
        token = get_auth_token(client, owner_a.email)
        client.get("/api/tenant/current", headers=auth_headers(token))
        abandoned = self._session_of(db_session, owner_a)
        abandoned.last_used_at = utcnow() - SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        other = get_auth_token(client, owner_b.email)
        client.get("/api/tenant/current", headers=auth_headers(other))

        registry = app.extensions["tenant_resolvers"]
        assert len(registry) == 1
        assert registry.retain({self._session_of(db_session, owner_b).id}) == 0
