"""
Pytest fixtures for storeledger backend tests.

Provides an in-memory database, per-test table cleanup, a test client and
a few catalog fixtures.
"""

import pytest
from storeledger import create_app
from storeledger.extensions import db
from storeledger.models import Product, Customer


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_LOW_STOCK_LIMIT': 5,
        'DEFAULT_REFUND_METHOD': 'cash',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
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


def _insert_product(session, name="Widget", price_cents=1000, stock=10, track_stock=True, low_stock_limit=5, **extra):
    product = Product(
        name=name,
        price_cents=price_cents,
        track_stock=track_stock,
        stock_quantity=stock,
        low_stock_limit=low_stock_limit,
        **extra,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name=..., price_cents=..., stock=..., track_stock=..., low_stock_limit=...)."""
    def _make(**kwargs):
        return _insert_product(db_session, **kwargs)
    return _make


@pytest.fixture(scope='function')
def product_a(db_session):
    """Tracked product A: 10 in stock at 10.00."""
    return _insert_product(db_session, name="Product A", price_cents=1000, stock=10)


@pytest.fixture(scope='function')
def product_b(db_session):
    """Tracked product B: 5 in stock at 20.00."""
    return _insert_product(db_session, name="Product B", price_cents=2000, stock=5)


@pytest.fixture(scope='function')
def service_item(db_session):
    """Non-tracked product (a service)."""
    return _insert_product(db_session, name="Gift Wrapping", price_cents=300, stock=0, track_stock=False)


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Jane Guest", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer
