from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from delivery_api import create_app
from delivery_api.config import TestConfig
from delivery_api.extensions import db
from delivery_api.model import Address, Coupon, Product, Restaurant, User
from delivery_api.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(app):
    """Two customers, an owner with one restaurant, a rival owner, an admin."""
    customer = User(email="ana@example.com", name="Ana", role="customer")
    other_customer = User(email="bruno@example.com", name="Bruno", role="customer")
    owner = User(email="owner@example.com", name="Owner", role="restaurant_owner")
    rival = User(email="rival@example.com", name="Rival", role="restaurant_owner")
    admin = User(email="admin@example.com", name="Admin", role="admin")
    db.session.add_all([customer, other_customer, owner, rival, admin])
    db.session.flush()

    restaurant = Restaurant(owner_id=owner.id, name="Cantina", delivery_fee=Decimal("8.50"))
    rival_restaurant = Restaurant(owner_id=rival.id, name="Rival Grill", delivery_fee=Decimal("5.00"))
    closed = Restaurant(owner_id=owner.id, name="Closed Bistro", active=False, delivery_fee=Decimal("3.00"))
    db.session.add_all([restaurant, rival_restaurant, closed])
    db.session.flush()

    burger = Product(restaurant_id=restaurant.id, name="Burger", price=Decimal("15.00"))
    soda = Product(restaurant_id=restaurant.id, name="Soda", price=Decimal("5.00"))
    sold_out = Product(restaurant_id=restaurant.id, name="Pudding", price=Decimal("7.00"), available=False)
    foreign = Product(restaurant_id=rival_restaurant.id, name="Steak", price=Decimal("40.00"))
    address = Address(user_id=customer.id, street="Rua A", number="10", city="Recife", state="PE", zip_code="50000-000")
    other_address = Address(user_id=other_customer.id, street="Rua B", number="20", city="Recife", state="PE", zip_code="50000-001")
    db.session.add_all([burger, soda, sold_out, foreign, address, other_address])
    db.session.commit()

    return SimpleNamespace(
        customer=customer, other_customer=other_customer, owner=owner, rival=rival, admin=admin,
        restaurant=restaurant, rival_restaurant=rival_restaurant, closed=closed,
        burger=burger, soda=soda, sold_out=sold_out, foreign=foreign,
        address=address, other_address=other_address,
    )


@pytest.fixture
def auth():
    def headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return headers


@pytest.fixture
def make_coupon(app):
    def factory(code="SAVE10", kind="PERCENTAGE", value="10", **kwargs):
        kwargs.setdefault("expires_at", utcnow() + timedelta(days=7))
        c = Coupon(code=code.upper(), kind=kind, value=Decimal(str(value)), usage_count=0, **kwargs)
        db.session.add(c)
        db.session.commit()
        return c
    return factory


@pytest.fixture
def basket(seed):
    """2 x Burger @ 15.00 + 1 x Soda @ 5.00 -> subtotal 35.00."""
    return [
        {"product_id": str(seed.burger.id), "quantity": 2},
        {"product_id": str(seed.soda.id), "quantity": 1, "note": "no ice"},
    ]
