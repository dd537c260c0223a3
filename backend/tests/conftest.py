"""
Pytest fixtures for Retoro backend tests.

Provides test database setup, a test client, seeded retailers, users and
an offline exchange-rate service.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest
from retoro import create_app
from retoro.extensions import db
from retoro.models import RetailerPolicy, ReturnItem, User
from retoro.services import currency_service
from retoro.services.auth_service import hash_password


API_KEY = "test-api-key"
PASSWORD = "Password123!"

# Rates relative to USD
RATES = {
    "USD": 1.0,
    "EUR": 0.5,
    "GBP": 0.8,
    "GEL": 2.5,
}


def rates_response(rates=None):
    response = Mock()
    response.raise_for_status = Mock()
    response.json = Mock(return_value={"base": "USD", "rates": dict(rates or RATES)})
    return response


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETORO_ENV': 'testing',
        'RETORO_API_KEY': API_KEY,
        'SITE_URL': 'http://localhost:3000',
        'MAILGUN_API_KEY': None,
        'MAILGUN_DOMAIN': None,
        'GOOGLE_CLIENT_ID': None,
        'GOOGLE_CLIENT_SECRET': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def exchange_rates(app):
    """
    Offline exchange-rate service. http is a Mock returning RATES; tests
    can change http.get.return_value / side_effect.
    """
    service = app.extensions[currency_service.EXTENSION_KEY]
    service.http = Mock()
    service.http.get.return_value = rates_response()
    service.invalidate()
    yield service
    service.invalidate()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def zara(db_session):
    """Retailer with a 30 day window."""
    retailer = RetailerPolicy(id="zara", name="Zara", return_window_days=30, has_free_returns=False)
    db_session.add(retailer)
    db_session.commit()
    return retailer


@pytest.fixture(scope='function')
def nordstrom(db_session):
    """Retailer with no practical deadline."""
    retailer = RetailerPolicy(id="nordstrom", name="Nordstrom", return_window_days=0, has_free_returns=True)
    db_session.add(retailer)
    db_session.commit()
    return retailer


@pytest.fixture(scope='function')
def user_a(db_session):
    user = User(email="alice@example.com", name="Alice", password_hash=hash_password(PASSWORD))
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session):
    user = User(email="bob@example.com", name="Bob", password_hash=hash_password(PASSWORD))
    db_session.add(user)
    db_session.commit()
    return user


def make_item(db_session, retailer, owner_type, owner_key, purchase_date=None, **overrides):
    """Insert a return item directly, bypassing the service layer."""
    from retoro.services.deadline_service import calculate_deadline

    purchase_date = purchase_date or datetime(2024, 1, 1)
    values = dict(
        retailer_id=retailer.id,
        name="Jacket",
        price=None,
        original_currency="USD",
        currency_symbol="$",
        purchase_date=purchase_date,
        return_deadline=calculate_deadline(purchase_date, retailer),
        is_returned=False,
        returned_date=None,
        owner_type=owner_type,
        user_id=owner_key,
    )
    values.update(overrides)
    item = ReturnItem(**values)
    db_session.add(item)
    db_session.commit()
    return item


def login(client, email: str, password: str = PASSWORD, **extra):
    """Helper to log in through the API; the session cookie lands in client."""
    return client.post('/api/auth/login', json={'email': email, 'password': password, **extra})


def api_key_headers(key: str = API_KEY) -> dict:
    return {'X-API-Key': key}
