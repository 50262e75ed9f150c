# Overview: Pytest coverage for Flask CLI commands and system endpoints.

from datetime import timedelta

import pytest

from barberdesk.models import Company, PageVisit, SecurityEvent, User
from barberdesk.services import company_service
from barberdesk.time_utils import utcnow
from conftest import PASSWORD


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_users_create_and_grant(runner, db_session):
    result = runner.invoke(args=[
        "users", "create",
        "--email", "cli@shop.com",
        "--password", PASSWORD,
        "--business-name", "CLI Shop",
    ])
    assert "PASS Created user: cli@shop.com" in result.output

    result = runner.invoke(args=["users", "grant-role", "cli@shop.com", "super_admin"])
    assert "PASS" in result.output

    user = db_session.query(User).filter_by(email="cli@shop.com").one()
    assert user.role_names == {"owner", "super_admin"}
    assert user.profile_metadata["business_name"] == "CLI Shop"


def test_users_create_weak_password(runner, db_session):
    result = runner.invoke(args=["users", "create", "--email", "cli@shop.com", "--password", "weak"])
    assert "FAIL Password validation failed" in result.output
    assert db_session.query(User).count() == 0


def test_companies_set_plan(runner, db_session, company_a):
    result = runner.invoke(args=["companies", "set-plan", str(company_a.id), "--status", "active", "--price", "99.90"])

    assert "PASS Fade Lab: active at 99.90" in result.output
    assert db_session.get(Company, company_a.id).plan_status == "active"


def test_spots_show(runner, db_session, company_a):
    result = runner.invoke(args=["spots", "show"])

    assert "Companies: 1" in result.output
    assert "spots available" in result.output


def test_maintenance_cleanup(runner, db_session):
    old = utcnow() - timedelta(days=400)
    db_session.add(PageVisit(page_path="/old", visited_at=old))
    db_session.add(PageVisit(page_path="/new", visited_at=utcnow()))
    db_session.add(SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=old))
    db_session.commit()

    result = runner.invoke(args=["maintenance", "cleanup-page-visits"])
    assert "Deleted 1 page visits" in result.output
    result = runner.invoke(args=["maintenance", "cleanup-security-events", "--retention-days", "30"])
    assert "Deleted 1 security events" in result.output

    assert [v.page_path for v in db_session.query(PageVisit).all()] == ["/new"]


def test_health(client, db_session):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
    assert resp.json["checks"]["change_feed"]["details"]["subscribers"] >= 1


def test_version(client):
    resp = client.get("/version")
    assert resp.json["api_version"]


def test_company_owner_is_unique(db_session, owner_a):
    company_service.create_company(owner_a.id, "Fade Lab")

    with pytest.raises(company_service.CompanyError):
        company_service.create_company(owner_a.id, "Second")
