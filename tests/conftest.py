import asyncio
from decimal import Decimal
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from cart_engine.client import CartServiceClient, CartServiceUnavailable
from cart_engine.models import Cart, CartItem
from cart_engine.persistence import CartPersistence, InMemoryStorage
from cart_engine.store import CartStore
from cart_service.database import cart_db, coupon_db, product_db
from cart_service.main import app


class FlakyStorage(InMemoryStorage):
    """In-memory storage whose writes can be made to fail"""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        super().set(key, value)


class FakeCartService:
    """Stands in for CartServiceClient with scriptable failures"""

    def __init__(self, remote: Optional[Cart] = None):
        self.remote = remote or Cart()
        self.fail_fetch = 0
        self.fail_save = 0
        self.fetches = 0
        self.saved: list[Cart] = []
        self.gate: Optional[asyncio.Event] = None

    async def fetch_cart(self, token: str) -> Cart:
        self.fetches += 1
        if self.fail_fetch:
            self.fail_fetch -= 1
            raise CartServiceUnavailable("Cart Service unreachable")
        return self.remote.model_copy(deep=True)

    async def save_cart(self, token: str, cart: Cart) -> Cart:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_save:
            self.fail_save -= 1
            raise CartServiceUnavailable("Cart Service unreachable")
        self.saved.append(cart.model_copy(deep=True))
        self.remote = cart.model_copy(deep=True)
        return cart


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def make_item():
    def _make_item(
        product_id: str = "X",
        price: str = "10.00",
        stock: int = 10,
        quantity: int = 1,
        variant: Optional[dict] = None,
        name: Optional[str] = None,
    ) -> CartItem:
        return CartItem(
            product_id=product_id,
            name=name or f"Product {product_id}",
            unit_price=Decimal(price),
            quantity=quantity,
            available_stock=stock,
            variant=variant or {},
        )
    return _make_item


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def persistence(storage):
    return CartPersistence(storage, key="cart")


@pytest.fixture
def store(persistence):
    return CartStore(persistence, tax_rate=0)


@pytest.fixture
def fake_service():
    return FakeCartService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_service_state():
    cart_db.reset()
    coupon_db.reset()
    product_db.reset()
    yield
    cart_db.reset()
    coupon_db.reset()
    product_db.reset()


@pytest.fixture
def test_client():
    return TestClient(app)


@pytest.fixture
async def service_client():
    client = CartServiceClient("http://cart-service", transport=httpx.ASGITransport(app=app))
    yield client
    await client.close()
