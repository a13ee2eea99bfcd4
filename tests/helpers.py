# tests/helpers.py
from datetime import datetime, timezone
from decimal import Decimal

import requests

from app.data.models import (
    CartItemModel,
    CartModel,
    ProductModel,
    UserModel,
    WishlistItemModel,
)
from app.services.order_service import OrderService


class RecordingPublisher:
    def __init__(self):
        self.published = []

    def publish(self, event):
        self.published.append(event)

    def of_type(self, cls):
        return [e for e in self.published if isinstance(e, cls)]


class FakeSender:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, html_body):
        if to in self.fail_for:
            raise RuntimeError(f"smtp down for {to}")
        self.sent.append((to, subject, html_body))
        return True


class FakeRedis:
    """Tylko to, czego uzywaja LockService i WebhookEventRegistry."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def get(self, name):
        return self.store.get(name)

    def exists(self, name):
        return 1 if name in self.store else 0

    def delete(self, name):
        return 1 if self.store.pop(name, None) is not None else 0

    def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


class FakeGateway:
    def __init__(self, intent_id="pi_test_123"):
        self.intent_id = intent_id
        self.calls = []

    def create_payment_intent(self, amount, currency, metadata, idempotency_key):
        self.calls.append(
            {"amount": amount, "currency": currency, "metadata": metadata, "idempotency_key": idempotency_key}
        )
        return {
            "id": self.intent_id,
            "client_secret": f"{self.intent_id}_secret",
            "amount": amount,
            "currency": currency,
            "status": "requires_payment_method",
        }


def add_user(db, user_id=1, email=None, first_name="Jan"):
    user = UserModel(id=user_id, email=email or f"user{user_id}@example.com", first_name=first_name)
    db.add(user)
    db.commit()
    return user


def add_product(db, product_id=1, name=None, price="10.00", stock=100, active=True):
    product = ProductModel(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(price),
        stock_quantity=stock,
        active=active,
    )
    db.add(product)
    db.commit()
    return product


def fill_cart(db, user_id, lines, updated_at=None):
    """lines: [(product_id, quantity, price)]"""
    cart = db.query(CartModel).filter(CartModel.user_id == user_id).one_or_none()
    if cart is None:
        cart = CartModel(user_id=user_id)
        db.add(cart)
        db.flush()
    cart.updated_at = updated_at or datetime.now(timezone.utc)
    for product_id, quantity, price in lines:
        db.add(CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity, price=Decimal(price)))
    db.commit()
    return cart


def add_to_wishlist(db, user_id, product_id):
    db.add(WishlistItemModel(user_id=user_id, product_id=product_id))
    db.commit()


def place_order(db, publisher, user_id=1, product_id=None, quantity=1, price="10.00", stock=50):
    """Uzytkownik + produkt + koszyk -> zamowienie PENDING przez OrderService."""
    product_id = product_id or user_id * 100
    if db.get(UserModel, user_id) is None:
        add_user(db, user_id)
    if db.get(ProductModel, product_id) is None:
        add_product(db, product_id, price=price, stock=stock)
    fill_cart(db, user_id, [(product_id, quantity, price)])

    return OrderService(db, publisher=publisher).create_order_from_cart(user_id, "ul. Testowa 1, Warszawa")


def set_order_state(db, order, status, updated_at=None):
    order.status = status
    if updated_at is not None:
        order.updated_at = updated_at
    db.commit()
    return order


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self.payload


class FakeHttpSession:
    """Zamiast requests.Session w StripeClient."""

    def __init__(self, status_code=200, intent_id="pi_http_1"):
        self.status_code = status_code
        self.intent_id = intent_id
        self.requests = []

    def post(self, url, data=None, auth=None, headers=None, timeout=None):
        self.requests.append({"url": url, "data": data, "auth": auth, "headers": headers, "timeout": timeout})
        return FakeResponse(
            {
                "id": self.intent_id,
                "client_secret": f"{self.intent_id}_secret_abc",
                "amount": data["amount"],
                "currency": data["currency"],
                "status": "requires_payment_method",
            },
            status_code=self.status_code,
        )
