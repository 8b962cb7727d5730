import os

# Must be set before inventra.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-inventra-suite-0123456789"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventra.core.database import get_db, init_db
from inventra.main import app
from inventra.models import User
from inventra.schemas import CustomerCreate, ItemCreate, TransactionCreate, TransactionItemCreate
from inventra.services.crm_service import CustomerService
from inventra.services.inventory_service import ItemService
from inventra.services.transaction_service import TransactionService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = User(
        name="Owner",
        email="owner@inventra.io",
        phone_number="5550001",
        company_name="Corner Shop",
        hashed_password="not-a-real-hash",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_item(db, user):
    def _make(name="Rice", quantity="10", buy_price="60", sell_price="100"):
        item = ItemService(db).create(
            ItemCreate(
                name=name,
                buy_price=Decimal(buy_price),
                sell_price=Decimal(sell_price),
                quantity=Decimal(quantity),
            ),
            user.id,
        )
        db.commit()
        return item
    return _make


@pytest.fixture
def make_customer(db, user):
    def _make(name="Alice", outstanding_balance="0"):
        customer = CustomerService(db).create(
            CustomerCreate(name=name, phone_number="5551234", outstanding_balance=Decimal(outstanding_balance)),
            user.id,
        )
        db.commit()
        return customer
    return _make


@pytest.fixture
def make_sale(db, user):
    """Create and commit a sale of one or more (item, quantity, price) lines"""
    def _make(lines, payment="0", customer=None, charges=(), date=None, key=None, notes=None):
        data = TransactionCreate(
            customer_id=customer.id if customer else None,
            items=[
                TransactionItemCreate(item_id=item.id, quantity=Decimal(str(qty)), price_per_unit=Decimal(str(price)))
                for item, qty, price in lines
            ],
            payment_received=Decimal(payment),
            additional_charges=[{"amount": Decimal(str(c)), "reason": "delivery"} for c in charges],
            transaction_date=date,
            notes=notes,
        )
        transaction = TransactionService(db).create(data, user.id, idempotency_key=key)
        db.commit()
        return transaction
    return _make


# ==================== API ====================

@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


REGISTRATION = {
    "name": "Shop Owner",
    "email": "shop.owner@inventra.io",
    "phone_number": "5559876",
    "company_name": "Owner Traders",
    "password": "secret123",
}


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/v1/auth/register", json=REGISTRATION)
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
