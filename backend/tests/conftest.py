"""
Pytest fixtures for retailpos backend tests.

Provides an in-memory database, test client, and small factories for the
catalog rows most tests need.
"""

import pytest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Customer, Product, Supplier
from retailpos.services import session_service
from retailpos.services.auth_service import create_user


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def cashier(db_session):
    """A cashier account (low bcrypt cost keeps tests fast)."""
    return create_user("cashier1", TEST_PASSWORD, role="cashier", rounds=4)


@pytest.fixture(scope='function')
def auth_headers(cashier):
    _, token = session_service.create_session(cashier.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(name="Item", *, stock=10, cost_cents=100, price_cents=150, category=None, min_stock=0, barcode=None):
        counter["n"] += 1
        product = Product(
            name=name,
            barcode=barcode or f"TEST{counter['n']:04d}",
            category=category,
            cost_cents=cost_cents,
            price_cents=price_cents,
            stock=stock,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def supplier(db_session):
    s = Supplier(name="Acme Wholesale", phone="0100000000")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Mona", phone="0111111111")
    db_session.add(c)
    db_session.commit()
    return c
