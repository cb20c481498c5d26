"""
Pytest configuration and shared fixtures for the salon booking tests.
"""

import datetime
import os
from decimal import Decimal

import jwt
import pytest

os.environ["TESTING"] = "True"
os.environ["FLASK_ENV"] = "testing"
os.environ.setdefault("SALON_TEST_DATABASE_URL", "sqlite:///:memory:")

from main import create_app  # noqa: E402
from salonbook.extensions import db as database  # noqa: E402
from salonbook.models import Base, Client, Salon, Service, Stylist, User  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret-for-testing-only-0123456789"


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    app = create_app()
    app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "AUTH_JWT_SECRET": TEST_JWT_SECRET,
            "AUTH_JWT_ALGORITHM": "HS256",
            "AUTH_JWT_AUDIENCE": None,
            "AUTH_JWT_ISSUER": None,
            "STRIPE_SECRET_KEY": None,
            "STRIPE_WEBHOOK_SECRET": None,
            "OPENAI_API_KEY": None,
            "BOOKING_TIMEZONE": "UTC",
            "ENFORCE_STYLIST_OVERLAP": True,
            "METRICS_RATING_SCOPE": "lifetime",
        }
    )

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    assert uri.startswith("sqlite"), f"Refusing to run tests against {uri}"

    yield app


@pytest.fixture
def db_session(app):
    """Fresh tables for every test."""
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)

        yield database.session

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app, db_session):
    return app.test_client()


@pytest.fixture
def owner(db_session):
    user = User(
        id="owner-sub-123",
        email="owner@example.com",
        first_name="Salon",
        last_name="Owner",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def salon(db_session, owner):
    salon = Salon(
        owner_id=owner.id,
        name="Test Salon",
        address="12 Rue de la Paix",
        phone="0102030405",
        email="contact@testsalon.com",
    )
    db_session.add(salon)
    db_session.commit()
    return salon


@pytest.fixture
def haircut(db_session, salon):
    service = Service(
        salon_id=salon.id,
        name="Haircut",
        duration_minutes=30,
        price=Decimal("25.00"),
        requires_deposit=False,
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def coloring(db_session, salon):
    service = Service(
        salon_id=salon.id,
        name="Coloring",
        duration_minutes=90,
        price=Decimal("80.00"),
        requires_deposit=True,
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def stylist(db_session, salon):
    stylist = Stylist(
        salon_id=salon.id,
        first_name="Alex",
        last_name="Martin",
        specialties=["color", "cuts"],
    )
    db_session.add(stylist)
    db_session.commit()
    return stylist


@pytest.fixture
def sample_client(db_session, salon):
    client = Client(
        salon_id=salon.id,
        first_name="Jamie",
        last_name="Doe",
        phone="0611223344",
        email="jamie@example.com",
    )
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def tomorrow():
    return datetime.datetime.now(datetime.timezone.utc).date() + datetime.timedelta(days=1)


def make_token(sub, **claims):
    payload = {
        "sub": sub,
        "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1),
    }
    payload.update(claims)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers(owner):
    """Authorization header for the salon owner."""
    return {"Authorization": f"Bearer {make_token(owner.id, email=owner.email)}"}
