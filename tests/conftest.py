"""Shared fixtures: an in-memory store behind its REST facade and the repositories on top."""
import pytest
from fastapi.testclient import TestClient

from mock_services.mock_store import MockStore, create_app
from storefront_orders.repositories import CatalogRepository, CouponRepository, OrderRepository
from storefront_orders.workflow import OrderPipeline


@pytest.fixture
def store():
    s = MockStore()
    s.add_product("P1", "سماعة", stock_count=5)
    return s


@pytest.fixture
def store_http(store):
    # TestClient is an httpx.Client, so the repositories talk to the mock unchanged
    return TestClient(create_app(store))


@pytest.fixture
def catalog(store_http):
    return CatalogRepository(store_http)


@pytest.fixture
def orders(store_http):
    return OrderRepository(store_http)


@pytest.fixture
def coupons(store_http):
    return CouponRepository(store_http)


@pytest.fixture
def events():
    return []


@pytest.fixture
def pipeline(catalog, orders, coupons, events):
    return OrderPipeline(catalog, orders, coupons, emit=events.append)


@pytest.fixture
def make_payload():
    def _make(**overrides):
        payload = {
            "customer_name": "أحمد محمد",
            "customer_phone": "01012345678",
            "customer_address": "12 شارع النيل",
            "governorate": "القاهرة",
            "payment_method": "cash_on_delivery",
            "items": [
                {"product_id": "P1", "product_name": "سماعة", "product_price": 100, "quantity": 2},
            ],
            "subtotal": 200,
            "delivery_fee": 50,
            "discount_amount": 0,
            "total": 250,
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def api(store_http, monkeypatch):
    from storefront_orders import main

    published = []
    monkeypatch.setattr(main, "notify_order_created", published.append)

    main.app.dependency_overrides[main.get_pipeline] = lambda: OrderPipeline(
        CatalogRepository(store_http), OrderRepository(store_http), CouponRepository(store_http)
    )
    main.app.dependency_overrides[main.get_order_repository] = lambda: OrderRepository(store_http)
    main.app.dependency_overrides[main.get_coupon_repository] = lambda: CouponRepository(store_http)

    client = TestClient(main.app)
    client.published = published
    yield client
    main.app.dependency_overrides.clear()
