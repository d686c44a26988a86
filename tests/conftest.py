"""Shared test fixtures for the CRM test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, uploads in a tmp dir)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: admin, manager and two employees with bearer-token headers
"""

from datetime import datetime, timedelta, timezone

import pytest
from flask import g
from werkzeug.security import generate_password_hash

from crm import create_app
from crm.extensions import db as _db
from crm.models.lead import Lead
from crm.models.quotation import Quotation
from crm.models.user import User
from crm.services.auth_service import issue_token


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    app.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("uploads"))

    @app.before_request
    def _reset_cached_user():
        # The test app context outlives single requests; Flask-Login caches
        # the resolved user on g, so drop it before every request.
        g.pop("_login_user", None)

    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def make_user(name, email, role, password="password123"):
    user = User(
        name=name,
        email=email,
        password_hash=generate_password_hash(password),
        role=role,
    )
    _db.session.add(user)
    _db.session.flush()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


def make_lead(created_by, assigned_to=None, **kwargs):
    defaults = {
        "name": "Jane Prospect",
        "email": "jane@prospect.com",
        "company": "Prospect Inc",
        "source": "website",
        "status": "new",
    }
    defaults.update(kwargs)
    lead = Lead(
        created_by_id=created_by.id,
        assigned_to_id=assigned_to.id if assigned_to else None,
        **defaults,
    )
    _db.session.add(lead)
    _db.session.flush()
    return lead


def make_quotation(lead, created_by, number, **kwargs):
    defaults = {
        "client_name": lead.name,
        "client_email": lead.email,
        "client_company": lead.company,
        "valid_until": datetime.now(timezone.utc) + timedelta(days=30),
        "items": [{"description": "Service", "quantity": 1, "unitPrice": 100, "amount": 100}],
        "subtotal": 100,
        "tax": 10,
        "total": 110,
        "status": "draft",
    }
    defaults.update(kwargs)
    quotation = Quotation(
        quotation_number=number,
        lead_id=lead.id,
        created_by_id=created_by.id,
        **defaults,
    )
    _db.session.add(quotation)
    _db.session.flush()
    return quotation


@pytest.fixture
def seed_data(app, db_session):
    """Seed one user per role (two employees) and their auth headers.

    Returns a dict with all created objects for easy access in tests.
    """
    admin = make_user("Alice Admin", "admin@crm.test", "admin")
    manager = make_user("Mark Manager", "manager@crm.test", "manager")
    emp1 = make_user("Erin Employee", "erin@crm.test", "employee")
    emp2 = make_user("Ed Employee", "ed@crm.test", "employee")
    _db.session.commit()

    return {
        "admin": admin,
        "manager": manager,
        "emp1": emp1,
        "emp2": emp2,
        "admin_headers": auth_headers(admin),
        "manager_headers": auth_headers(manager),
        "emp1_headers": auth_headers(emp1),
        "emp2_headers": auth_headers(emp2),
    }


@pytest.fixture
def factory(db_session):
    """Record builders: factory.user(...), factory.lead(...), factory.quotation(...)."""

    class Factory:
        user = staticmethod(make_user)
        lead = staticmethod(make_lead)
        quotation = staticmethod(make_quotation)
        headers = staticmethod(auth_headers)

    return Factory
