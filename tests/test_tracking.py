"""Customer order tracking."""
import pytest

from storefront_orders.tracking import NOT_FOUND_MESSAGE, TrackingError, track_order


@pytest.fixture
def placed(pipeline, make_payload):
    return pipeline.run(make_payload(customer_phone="01012345678"))


def test_track_order(orders, placed):
    order = track_order(orders, placed.order_number.lower(), "5678")

    assert order["order_number"] == placed.order_number
    assert order["status"] == "pending"
    assert "customer_phone" not in order
    assert "customer_address" not in order
    assert [i["product_name"] for i in order["items"]] == ["سماعة"]


def test_phone_mismatch_looks_like_not_found(orders, placed):
    with pytest.raises(TrackingError) as exc:
        track_order(orders, placed.order_number, "0000")
    assert exc.value.status_code == 404
    assert exc.value.message == NOT_FOUND_MESSAGE


def test_unknown_order(orders):
    with pytest.raises(TrackingError) as exc:
        track_order(orders, "HS-20990101-0000", "1234")
    assert exc.value.status_code == 404
    assert exc.value.message == NOT_FOUND_MESSAGE


@pytest.mark.parametrize("number, digits, message", [
    (None, "1234", "رقم الطلب مطلوب"),
    ("HS-20260101-0001", "123", "آخر 4 أرقام من رقم الهاتف مطلوبة"),
    ("HS-20260101-0001", "12a4", "آخر 4 أرقام يجب أن تكون أرقام فقط"),
    ("HS", "1234", "رقم الطلب غير صالح"),
])
def test_bad_input(orders, number, digits, message):
    with pytest.raises(TrackingError) as exc:
        track_order(orders, number, digits)
    assert exc.value.status_code == 400
    assert exc.value.message == message


def test_item_failure_returns_empty_items(store, orders, placed):
    store.fail_on.add("order_items.select")
    assert track_order(orders, placed.order_number, "5678")["items"] == []


def test_endpoint(api, placed):
    response = api.post("/v1/orders/track", json={"orderNumber": placed.order_number, "phoneLast4": "5678"})
    assert response.status_code == 200
    assert response.json()["order"]["id"] == placed.id

    missing = api.post("/v1/orders/track", json={"orderNumber": placed.order_number, "phoneLast4": "9999"})
    assert missing.status_code == 404
    assert missing.json() == {"error": NOT_FOUND_MESSAGE}
