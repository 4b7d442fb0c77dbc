"""
Pytest fixtures for MACA backend tests.

Provides test database setup, warehouse fixtures, and test client.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from maca import create_app
from maca.extensions import db
from maca.models import User, UserRole, Product, ProductStock, Provider, Invoice
from maca.services.auth_service import hash_password

SAN_FRANCISCO = "San Francisco"
CENTRO = "Centro"
PASSWORD = "Clave12345"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONFLICT_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is deliberately slow; hash the shared test password once."""
    return hash_password(PASSWORD)


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


def _make_user(db_session, username, role, password_hash, default_warehouse=None):
    user = User(
        username=username,
        email=f"{username}@maca.local",
        full_name=username.title(),
        password_hash=password_hash,
        role=role,
        default_warehouse=default_warehouse,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, "admin", UserRole.ADMIN.value, password_hash)


@pytest.fixture(scope='function')
def seller_user(db_session, password_hash):
    return _make_user(db_session, "vendedor", UserRole.SELLER.value, password_hash, CENTRO)


def make_product(db_session, warehouse, code, sale_price="100000.00", sizes=None, **fields):
    """Product with one ProductStock row per {size: quantity}."""
    product = Product(
        warehouse=warehouse,
        code=code,
        name=fields.pop("name", f"Zapato {code}"),
        purchase_price=Decimal(fields.pop("purchase_price", "60000.00")),
        sale_price=Decimal(sale_price),
        **fields,
    )
    for size, quantity in (sizes or {}).items():
        product.stocks.append(ProductStock(size=size, quantity=quantity, reserved_quantity=0))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session):
    """San Francisco product: size 42 x10, size 40 x2. Sale price 100000."""
    return make_product(db_session, SAN_FRANCISCO, "BOT-001", sizes={"42": 10, "40": 2})


@pytest.fixture(scope='function')
def centro_product(db_session):
    return make_product(db_session, CENTRO, "BOT-001", sale_price="90000.00", sizes={"42": 5})


def make_provider(db_session, warehouse, document, payment_days=30):
    provider = Provider(
        warehouse=warehouse,
        document=document,
        name=f"Proveedor {document}",
        payment_days=payment_days,
    )
    db_session.add(provider)
    db_session.commit()
    return provider


@pytest.fixture(scope='function')
def provider(db_session):
    return make_provider(db_session, SAN_FRANCISCO, "900123456")


@pytest.fixture(scope='function')
def invoice(db_session, provider):
    """PENDING invoice of 500000 due in 30 days."""
    today = date.today()
    invoice = Invoice(
        warehouse=SAN_FRANCISCO,
        invoice_number="FAC-001",
        provider_id=provider.id,
        invoice_date=today,
        due_date=today + timedelta(days=30),
        subtotal=Decimal("500000.00"),
        tax=Decimal("0.00"),
        discount=Decimal("0.00"),
        total=Decimal("500000.00"),
        status="PENDING",
    )
    db_session.add(invoice)
    db_session.commit()
    return invoice


def get_auth_token(client, username: str, password: str = PASSWORD, warehouse: str = SAN_FRANCISCO) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password,
        'warehouse': warehouse,
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
def seller_headers(client, seller_user):
    return auth_headers(get_auth_token(client, "vendedor"))
