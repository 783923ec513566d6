"""
Pytest fixtures for the POS backend tests.

Provides an in-memory SQLite app, a test client, seeded staff users,
bearer-token headers and a few catalog/order factories.
"""

from datetime import datetime

import pytest
from shopoms import create_app
from shopoms.extensions import db
from shopoms.models import User, Product, Order, OrderItem, ORDER_STATUS_OPEN
from shopoms.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'JWT_SECRET': 'test-signing-secret',
        'ORDER_PRICING_MODE': 'server',
        'ORDER_TAX_RATE': '0.10',
        'ORDER_PRICE_TOLERANCE': '0.01',
        'READS_REQUIRE_AUTH': True,
        'READ_ROLES': ('admin', 'cashier'),
        'CORS_ORIGINS': ('http://localhost:5173',),
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
def db_session(app):
    """Fresh tables for every test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def make_user(db_session, username: str, role: str, name: str | None = None) -> User:
    user = User(
        username=username,
        display_name=name or username.title(),
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin", "admin", name="System Admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return make_user(db_session, "cashier1", "cashier", name="Cashier One")


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str | None:
    """Helper to get auth token for a user."""
    response = client.post('/api/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "cashier1"))


def make_product(db_session, name: str, price_cents: int, category: str = "Drinks") -> Product:
    product = Product(name=name, category=category, price_cents=price_cents)
    db_session.add(product)
    db_session.commit()
    return product


def make_order(db_session, created_at: datetime, total_cents: int, lines=()) -> Order:
    """
    Insert an order directly, bypassing submission, so tests control created_at.

    `lines` is a sequence of (product_id, quantity).
    """
    order = Order(
        customer_name="",
        subtotal_cents=total_cents,
        tax_cents=0,
        total_cents=total_cents,
        status=ORDER_STATUS_OPEN,
        created_at=created_at,
    )
    for position, (product_id, quantity) in enumerate(lines or [(1, 1)]):
        order.items.append(OrderItem(position=position, product_id=product_id, quantity=quantity))
    db_session.add(order)
    db_session.commit()
    return order
