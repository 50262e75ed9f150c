"""
Pytest fixtures for barberdesk backend tests.

Provides test database setup, two-tenant fixtures (company/unit/barber/service
per owner), and test client helpers.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from barberdesk import create_app
from barberdesk.extensions import db
from barberdesk.models import ROLE_SUPER_ADMIN
from barberdesk.services import catalog_service, company_service, unit_service
from barberdesk.services.auth_service import assign_role, create_user
from barberdesk.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TOTAL_SPOTS': 30,
        'LATE_CANCELLATION_THRESHOLD_MINUTES': 10,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        # In-process state keyed by ids that were just deleted
        app.extensions["tenant_resolvers"].clear()
        app.extensions["company_count_cache"].invalidate()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def owner_a(db_session):
    """Owner A, signed up with a business name."""
    return create_user(
        "owner_a@fadelab.com",
        PASSWORD,
        profile={"business_name": "Fade Lab", "full_name": "Ana Souza"},
    )


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Owner B, signed up with only a full name."""
    return create_user(
        "owner_b@navalha.com",
        PASSWORD,
        profile={"full_name": "Bruno Lima"},
    )


@pytest.fixture(scope='function')
def company_a(db_session, owner_a):
    return company_service.create_company(owner_a.id, "Fade Lab")


@pytest.fixture(scope='function')
def company_b(db_session, owner_b):
    return company_service.create_company(owner_b.id, "Navalha")


@pytest.fixture(scope='function')
def unit_a(db_session, company_a):
    return unit_service.create_unit(company_a.id, "Fade Lab Centro")


@pytest.fixture(scope='function')
def unit_b(db_session, company_b):
    return unit_service.create_unit(company_b.id, "Navalha Sul")


@pytest.fixture(scope='function')
def barber_a(db_session, unit_a):
    return catalog_service.create_barber(unit_a.id, "Carlos", phone="+55 11 99999-0000")


@pytest.fixture(scope='function')
def barber_b(db_session, unit_b):
    return catalog_service.create_barber(unit_b.id, "Diego")


@pytest.fixture(scope='function')
def service_a(db_session, unit_a):
    return catalog_service.create_service(unit_a.id, "Haircut", duration_minutes=30, price=Decimal("45.00"))


@pytest.fixture(scope='function')
def service_b(db_session, unit_b):
    return catalog_service.create_service(unit_b.id, "Beard", duration_minutes=20, price=Decimal("30.00"))


@pytest.fixture(scope='function')
def super_admin(db_session):
    user = create_user("root@barberdesk.app", PASSWORD, role=None)
    assign_role(user.id, ROLE_SUPER_ADMIN)
    return user


@pytest.fixture(scope='function')
def in_two_hours():
    return (utcnow() + timedelta(hours=2)).replace(second=0, microsecond=0)


@pytest.fixture(scope='function')
def owner_a_headers(client, owner_a):
    return auth_headers(get_auth_token(client, owner_a.email))


@pytest.fixture(scope='function')
def owner_b_headers(client, owner_b):
    return auth_headers(get_auth_token(client, owner_b.email))


@pytest.fixture(scope='function')
def admin_headers(client, super_admin):
    return auth_headers(get_auth_token(client, super_admin.email))


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
