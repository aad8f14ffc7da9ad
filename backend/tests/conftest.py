"""
Pytest fixtures for arcadepos backend tests.

Provides test database setup, a test client, and billing fixtures
(PCs, customers, catalog, discounts).
"""

from datetime import datetime

import pytest

from arcadepos import create_app
from arcadepos.extensions import db
from arcadepos.models.discounts import (
    TARGET_CATEGORY,
    TARGET_GAMING_SESSION,
    TARGET_PRODUCT,
    TARGET_SALE,
)
from arcadepos.services import customer_service, discount_service, inventory_service, pc_service

# 2 USD/h converts to exactly 180000 LBP/h at this rate
TEST_EXCHANGE_RATE = 90000

CASHIER_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'EXCHANGE_RATE_USD_TO_LBP': TEST_EXCHANGE_RATE,
        'DEFAULT_HOURLY_RATE_USD': '2',
        'MIN_BILLABLE_MINUTES': 0,
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


@pytest.fixture
def cashier_id():
    return CASHIER_ID


@pytest.fixture
def t0():
    """Fixed session start time."""
    return datetime(2026, 3, 14, 18, 0, 0)


@pytest.fixture
def pc(db_session):
    """PC billed at {2 USD, 180000 LBP} per hour."""
    return pc_service.create_pc("PC-01", "Station 1", hourly_rate_usd="2", location="Main Hall")


@pytest.fixture
def second_pc(db_session):
    return pc_service.create_pc("PC-02", "Station 2", hourly_rate_usd="3")


@pytest.fixture
def customer(db_session):
    return customer_service.create_customer("Rami Haddad", phone="+961 3 000000")


@pytest.fixture
def drinks(db_session):
    return inventory_service.create_category("Drinks")


@pytest.fixture
def snacks(db_session):
    return inventory_service.create_category("Snacks")


@pytest.fixture
def cola(db_session, drinks):
    """1.50 USD / 135000 LBP, 10 in stock."""
    return inventory_service.create_product("COLA-330", "Cola 330ml", "1.5", quantity_on_hand=10, category_id=drinks.id)


@pytest.fixture
def chips(db_session, snacks):
    """2.00 USD / 180000 LBP, 5 in stock."""
    return inventory_service.create_product("CHIPS-L", "Chips Large", "2", quantity_on_hand=5, category_id=snacks.id)


@pytest.fixture
def session_discount(db_session):
    """10% off gaming sessions."""
    return discount_service.create_discount(CASHIER_ID, {
        "name": "Happy Hour",
        "value": 10,
        "target": TARGET_GAMING_SESSION,
    })


@pytest.fixture
def sale_discount(db_session):
    """5% off whole sales."""
    return discount_service.create_discount(CASHIER_ID, {
        "name": "Loyalty 5",
        "value": 5,
        "target": TARGET_SALE,
    })


@pytest.fixture
def cola_discount(db_session, cola):
    """20% off cola only."""
    return discount_service.create_discount(CASHIER_ID, {
        "name": "Cola Promo",
        "value": 20,
        "target": TARGET_PRODUCT,
        "target_id": cola.id,
    })


@pytest.fixture
def drinks_discount(db_session, drinks):
    """50% off the drinks category."""
    return discount_service.create_discount(CASHIER_ID, {
        "name": "Drinks Half Off",
        "value": 50,
        "target": TARGET_CATEGORY,
        "target_id": drinks.id,
    })


@pytest.fixture
def auth_headers():
    return {"X-User-Id": str(CASHIER_ID)}
