"""
Pytest fixtures for the ledger test suite.

Provides:
- a fresh application with an in-memory SQLite database per test
- registered ADMIN and VIEWER users
- signed-in test clients for both roles
- factories for ProjectInput / ProjectRecord values

HTTP tests must not hold an app context open while using the client
(Flask-Login caches the user on `g`); use `with app.app_context():` around
direct database checks instead.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from config import TestingConfig
from ledger import create_app
from ledger.extensions import db
from ledger.identity import IdentityGateway, RegistrationRequest
from ledger.models import Role
from ledger.records import ProjectInput, ProjectRecord

ADMIN_PASSWORD = "admin-secret"
VIEWER_PASSWORD = "viewer-secret"


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(app):
    """Application context for tests that talk to the gateways directly."""
    with app.app_context():
        yield app


@pytest.fixture()
def users(app):
    with app.app_context():
        gateway = IdentityGateway()
        gateway.register(RegistrationRequest("admin", ADMIN_PASSWORD, Role.ADMIN))
        gateway.register(RegistrationRequest("viewer", VIEWER_PASSWORD, Role.VIEWER))
    return {"admin": ADMIN_PASSWORD, "viewer": VIEWER_PASSWORD}


def login(client, username, password):
    return client.post("/auth/login", data={"username": username, "password": password})


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(app, users):
    client = app.test_client()
    response = login(client, "admin", users["admin"])
    assert response.status_code == 302
    return client


@pytest.fixture()
def viewer_client(app, users):
    client = app.test_client()
    response = login(client, "viewer", users["viewer"])
    assert response.status_code == 302
    return client


@pytest.fixture()
def make_input():
    def factory(**overrides):
        values = dict(
            name="Site A",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            budget_amount=Decimal("100000"),
            advance_amount=Decimal("40000"),
            expense_amount=Decimal("15000"),
        )
        values.update(overrides)
        return ProjectInput(**values)

    return factory


@pytest.fixture()
def make_record():
    counter = {"n": 0}

    def factory(**overrides):
        counter["n"] += 1
        advance = Decimal(str(overrides.pop("advance_amount", "40000")))
        expense = Decimal(str(overrides.pop("expense_amount", "15000")))
        values = dict(
            id=f"p-{counter['n']}",
            name=f"Project {counter['n']}",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            budget_amount=Decimal("100000"),
            advance_amount=advance,
            expense_amount=expense,
            balance_amount=advance - expense,
            created_at=datetime(2024, 1, 1, 9, 0, counter["n"]),
        )
        values.update(overrides)
        return ProjectRecord(**values)

    return factory
