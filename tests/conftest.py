# tests/conftest.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import pytest

from bookmarket.app import create_app
from bookmarket.db import db
from bookmarket.errors import StorageUnavailable
from bookmarket.models import Order, OrderStatus
from bookmarket.services.image_storage import StoredImage
from bookmarket.services.order_lifecycle import OrderLifecycle
from bookmarket.services.order_store import ListingView


# -------------------------
# Fakes
# -------------------------

class FakeImageStorage:
    """Records every call; knobs make store/delete fail."""
    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.calls: List[str] = []
        self.fail_store = False
        self.fail_delete = False
        self._n = 0

    def store(self, data: bytes, mimetype: str, filename: str) -> StoredImage:
        self.calls.append(f"store:{filename}")
        if self.fail_store:
            raise StorageUnavailable("image storage unreachable")
        self._n += 1
        fid = f"img-{self._n}"
        self.files[fid] = data
        return StoredImage(file_id=fid, url=f"https://img.test/{fid}")

    def delete(self, file_id: str) -> None:
        self.calls.append(f"delete:{file_id}")
        self.deleted.append(file_id)
        if self.fail_delete:
            raise RuntimeError("storage down")
        self.files.pop(file_id, None)


class FakeListings:
    def __init__(self):
        self.rows: Dict[int, ListingView] = {}

    def add(self, listing_id: int, seller_id: int, price: str, published: bool = True) -> ListingView:
        v = ListingView(id=listing_id, seller_id=seller_id, price=Decimal(price), published=published)
        self.rows[listing_id] = v
        return v

    def get(self, listing_id: int) -> Optional[ListingView]:
        return self.rows.get(listing_id)


class InMemoryOrderStore:
    """Dict-backed store with the same conditional-update contract as SqlOrderStore.

    `before_write` runs once, right before the next update_status, to let a
    competing transition slip in between the engine's read and its write.
    """
    def __init__(self):
        self.rows: Dict[int, Order] = {}
        self._next_id = 1
        self.writes = 0
        self.before_write: Optional[Callable[[], None]] = None

    def get(self, order_id: int) -> Optional[Order]:
        return self.rows.get(order_id)

    def insert(self, order: Order) -> Order:
        order.id = self._next_id
        self._next_id += 1
        now = datetime.utcnow()
        order.created_at = order.updated_at = now
        self.rows[order.id] = order
        return order

    def update_status(self, order_id: int, expected_status: OrderStatus, fields: dict) -> Optional[Order]:
        hook, self.before_write = self.before_write, None
        if hook:
            hook()
        o = self.rows.get(order_id)
        if o is None or o.status is not expected_status:
            return None
        for k, v in fields.items():
            setattr(o, k, v)
        o.updated_at = datetime.utcnow()
        self.writes += 1
        return o

    def list_by_seller(self, seller_id: int, status: Optional[OrderStatus] = None) -> List[Order]:
        return [o for o in reversed(list(self.rows.values()))
                if o.seller_id == seller_id and (status is None or o.status is status)]

    def list_by_buyer(self, buyer_id: int, status: Optional[OrderStatus] = None) -> List[Order]:
        return [o for o in reversed(list(self.rows.values()))
                if o.buyer_id == buyer_id and (status is None or o.status is status)]


# -------------------------
# Engine fixtures (no database)
# -------------------------

SELLER, BUYER, STRANGER = 10, 20, 30


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def listings():
    fl = FakeListings()
    fl.add(1, SELLER, "9.99")
    fl.add(2, SELLER, "5.00", published=False)
    return fl


@pytest.fixture
def engine(store, listings):
    return OrderLifecycle(store, listings)


@pytest.fixture
def order_in(engine):
    """Build an order already walked to the requested status."""
    def _make(status: OrderStatus) -> Order:
        o = engine.create_order(1, BUYER)
        if status is OrderStatus.PENDING:
            return o
        if status is OrderStatus.CANCELED:
            # no edge leads here; set it directly
            o.status = OrderStatus.CANCELED
            return o
        engine.accept_order(o.id, SELLER)
        if status is OrderStatus.ACCEPTED:
            return o
        engine.ship_order(o.id, SELLER, "TRACK1")
        if status is OrderStatus.SHIPPED:
            return o
        return engine.deliver_order(o.id, BUYER)
    return _make


# -------------------------
# App fixtures (in-memory SQLite)
# -------------------------

@pytest.fixture
def images():
    return FakeImageStorage()


@pytest.fixture
def app(images):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SECRET_KEY": "test-secret",
            "JWT_SECRET": "test-jwt-secret",
        },
        image_storage=images,
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Register through the API; returns id, username and bearer headers."""
    def _make(username: str, user_type: str, password: str = "secret123") -> dict:
        c = app.test_client()
        r = c.post("/api/register", json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "firstName": username.title(),
            "lastName": "Test",
            "userType": user_type,
        })
        assert r.status_code == 201, r.get_json()
        body = r.get_json()
        return {
            "id": body["id"],
            "username": username,
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }
    return _make


@pytest.fixture
def seller(make_user):
    return make_user("sally", "seller")


@pytest.fixture
def other_seller(make_user):
    return make_user("otto", "seller")


@pytest.fixture
def buyer(make_user):
    return make_user("bob", "buyer")


@pytest.fixture
def stranger(make_user):
    return make_user("eve", "buyer")


@pytest.fixture
def book(client, seller):
    r = client.post("/api/books", headers=seller["headers"], json={
        "title": "Dune",
        "author": "Frank Herbert",
        "description": "Paperback",
        "price": 9.99,
        "category": "Fiction",
    })
    assert r.status_code == 201, r.get_json()
    return r.get_json()


@pytest.fixture
def order(client, buyer, book):
    r = client.post("/api/transactions", headers=buyer["headers"], json={"bookId": book["id"]})
    assert r.status_code == 201, r.get_json()
    return r.get_json()
