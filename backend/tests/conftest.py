"""
Pytest fixtures for icestock backend tests.

Provides an in-memory database, test client, captured mail, and shop /
manager / delivery partner records.
"""

import pytest
from icestock import create_app
from icestock.extensions import db
from icestock.models import User, Manager, DeliveryPartner, Customer, Product
from icestock.models.delivery import PARTNER_APPROVED
from icestock.services.auth_service import hash_password
from icestock.services import session_service


SUPERUSER_SECRET = "test-superuser-secret"
PASSWORD = "secret1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'MAIL_BACKEND': 'memory',
        'ADMIN_ID': SUPERUSER_SECRET,
        'ADMIN_EMAIL': None,
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
        app.extensions["mail_outbox"].clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def outbox(app, db_session):
    """Messages sent through the memory mail backend during the test."""
    return app.extensions["mail_outbox"]


def _make_user(db_session, name, email, gstin, verified=True):
    user = User(
        name=name,
        email=email,
        contact="9876543210",
        shop_name=f"{name} Ice Creams",
        shop_address="12 MG Road",
        gstin=gstin,
        password_hash=hash_password(PASSWORD),
        is_verified=verified,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    """Verified shop owner A."""
    return _make_user(db_session, "Asha", "asha@polar.test", "29ABCDE1234F1Z5")


@pytest.fixture(scope='function')
def other_owner(db_session):
    """Verified shop owner B (a second tenant)."""
    return _make_user(db_session, "Bala", "bala@frost.test", "33ABCDE1234F1Z5")


@pytest.fixture(scope='function')
def manager(db_session, owner):
    manager = Manager(
        admin_id=owner.id,
        name="Meena",
        email="meena@polar.test",
        contact="9123456780",
        password_hash=hash_password(PASSWORD),
    )
    db_session.add(manager)
    db_session.commit()
    return manager


@pytest.fixture(scope='function')
def make_partner(db_session):
    """Factory for delivery partners in any status."""
    def _make(owner=None, email="ravi@riders.test", status=PARTNER_APPROVED, name="Ravi", password=PASSWORD):
        partner = DeliveryPartner(
            name=name,
            email=email,
            phone="9000000001",
            password_hash=hash_password(password),
            status=status,
            created_by_user_id=owner.id if owner else None,
            admin_email=owner.email if owner else None,
        )
        db_session.add(partner)
        db_session.commit()
        return partner
    return _make


@pytest.fixture(scope='function')
def partner(make_partner, owner):
    """Approved delivery partner working for owner A."""
    return make_partner(owner=owner)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def partner_headers(db_session, partner):
    """Bearer headers for a freshly minted session of `partner`."""
    token = session_service.mint_session(partner)
    db_session.commit()
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer(db_session, owner):
    customer = Customer(
        user_id=owner.id,
        name="Kiran Stores",
        contacts=["9811111111"],
        shop_name="Kiran General",
        shop_address="4 Lake View",
        latitude=12.97,
        longitude=77.59,
        credit=0,
        debit=0,
        total_sales=0,
        remarks="",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product(db_session, owner):
    product = Product(
        user_id=owner.id,
        name="Vanilla Cone",
        category="Cones",
        unit="piece",
        purchase_price=20,
        selling_price=30,
        quantity=50,
        min_stock=5,
    )
    db_session.add(product)
    db_session.commit()
    return product
