import os

# Point the app at a throwaway in-memory database before it is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EVENTS_ENABLED"] = "0"

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine
from app.main import app


class ScriptedRandom:
    """Stand-in for random.Random that hands out pre-set values."""

    def __init__(self, numbers=(), suffixes=()):
        self.numbers = list(numbers)
        self.chars = list("".join(suffixes))

    def randint(self, low, high):
        return self.numbers.pop(0)

    def choice(self, seq):
        return self.chars.pop(0)


@pytest.fixture
def scripted_random():
    return ScriptedRandom


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def create_product(client):
    def _create(name="Green Tea", sku="SKU-1", sales_price=10.0, images=None, image=None):
        payload = {"name": name, "sku": sku, "salesPrice": sales_price, "images": images or []}
        if image is not None:
            payload["image"] = image
        resp = client.post("/api/products", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["product"]
    return _create


BILLING = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "phone": "+44 (20) 7946-0018",
    "email": "Ada@Engine.org",
    "country": "UK",
    "address": "12 St James's Square",
    "city": "London",
    "postcode": "SW1Y 4JH",
}


@pytest.fixture
def billing_payload():
    return dict(BILLING)


@pytest.fixture
def create_billing(client):
    def _create(**overrides):
        payload = dict(BILLING, **overrides)
        resp = client.post("/api/billing", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["billing"]
    return _create


@pytest.fixture
def create_order(client, create_billing):
    def _create(items, billing_id=None, **fields):
        if billing_id is None:
            billing_id = create_billing()["id"]
        payload = {"billingId": billing_id, "orderItems": items}
        payload.update(fields)
        resp = client.post("/api/orders", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["order"]
    return _create
