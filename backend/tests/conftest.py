"""
Pytest fixtures for POS core backend tests.

Provides test database setup, two-vendor tenant fixtures, and test client.
"""

from decimal import Decimal

import pytest
from poscore import create_app
from poscore.extensions import db
from poscore.models import Vendor, Location, Register, Product, InventoryRecord
from poscore.models.auth import ROLE_CASHIER, ROLE_MANAGER
from poscore.services.auth_service import create_operator
from poscore.services.token_service import OperatorContext

PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'EXPOSE_ERROR_DETAILS': False,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
def vendor(db_session):
    """Vendor A (first tenant)."""
    vendor = Vendor(name="Green Leaf", slug="green-leaf", allow_negative_stock=False, is_active=True)
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def other_vendor(db_session):
    """Vendor B (second tenant)."""
    vendor = Vendor(name="High Desert", slug="high-desert", allow_negative_stock=False, is_active=True)
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def location(db_session, vendor):
    location = Location(vendor_id=vendor.id, name="Main Street", slug="main", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def second_location(db_session, vendor):
    location = Location(vendor_id=vendor.id, name="Uptown", slug="uptown", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def other_location(db_session, other_vendor):
    location = Location(vendor_id=other_vendor.id, name="Mesa", slug="mesa", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def cashier(db_session, vendor, location):
    return create_operator(
        vendor_id=vendor.id,
        username="cashier",
        email="cashier@greenleaf.test",
        password=PASSWORD,
        role=ROLE_CASHIER,
        location_id=location.id,
    )


@pytest.fixture(scope='function')
def manager(db_session, vendor, location):
    return create_operator(
        vendor_id=vendor.id,
        username="manager",
        email="manager@greenleaf.test",
        password=PASSWORD,
        role=ROLE_MANAGER,
        location_id=location.id,
    )


@pytest.fixture(scope='function')
def other_operator(db_session, other_vendor, other_location):
    return create_operator(
        vendor_id=other_vendor.id,
        username="cashier",
        email="cashier@highdesert.test",
        password=PASSWORD,
        role=ROLE_MANAGER,
        location_id=other_location.id,
    )


@pytest.fixture(scope='function')
def ctx(cashier):
    return OperatorContext.for_operator(cashier)


@pytest.fixture(scope='function')
def manager_ctx(manager):
    return OperatorContext.for_operator(manager)


@pytest.fixture(scope='function')
def other_ctx(other_operator):
    return OperatorContext.for_operator(other_operator)


@pytest.fixture(scope='function')
def register(db_session, vendor, location):
    register = Register(
        vendor_id=vendor.id,
        location_id=location.id,
        register_number="REG-01",
        name="Front Counter 1",
        is_active=True,
    )
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def product(db_session, vendor):
    product = Product(
        vendor_id=vendor.id,
        sku="FLW-001",
        name="Blue Dream 3.5g",
        category="flower",
        price=Decimal("35.00"),
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def inventory(db_session, vendor, location, product):
    """50 units on hand at an average cost of 2.00."""
    record = InventoryRecord(
        vendor_id=vendor.id,
        product_id=product.id,
        location_id=location.id,
        quantity=Decimal("50"),
        average_cost=Decimal("2.00"),
    )
    db_session.add(record)
    db_session.commit()
    return record


def reload(model, entity_id):
    """Fresh copy of a row, bypassing the identity map."""
    return db.session.get(model, entity_id, populate_existing=True)


def get_auth_token(client, username: str, password: str = PASSWORD, vendor_slug: str | None = None) -> str:
    """Helper to get auth token for an operator."""
    body = {'username': username, 'password': password}
    if vendor_slug:
        body['vendor'] = vendor_slug
    response = client.post('/api/auth/login', json=body)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
