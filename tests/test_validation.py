"""Request-level validation of checkout payloads."""
import pytest

from storefront_orders.errors import InvalidRequest
from storefront_orders.validation import parse_order_request


@pytest.mark.parametrize("field, message", [
    ("customer_name", "اسم العميل مطلوب"),
    ("customer_phone", "رقم الهاتف مطلوب"),
    ("customer_address", "العنوان مطلوب"),
    ("governorate", "المحافظة مطلوبة"),
    ("payment_method", "طريقة الدفع مطلوبة"),
])
def test_required_text_fields(make_payload, field, message):
    for value in (None, "", "   "):
        with pytest.raises(InvalidRequest) as exc:
            parse_order_request(make_payload(**{field: value}))
        assert exc.value.message == message
        assert exc.value.status_code == 400


def test_first_missing_field_is_reported(make_payload):
    with pytest.raises(InvalidRequest) as exc:
        parse_order_request(make_payload(customer_phone="", governorate=""))
    assert exc.value.message == "رقم الهاتف مطلوب"


def test_empty_cart_rejected(make_payload):
    with pytest.raises(InvalidRequest) as exc:
        parse_order_request(make_payload(items=[]))
    assert exc.value.message == "يجب إضافة منتج واحد على الأقل"


@pytest.mark.parametrize("field, value, message", [
    ("subtotal", -1, "المجموع الفرعي غير صالح"),
    ("subtotal", "200", "المجموع الفرعي غير صالح"),
    ("delivery_fee", None, "رسوم التوصيل غير صالحة"),
    ("total", True, "المجموع غير صالح"),
    ("discount_amount", -5, "قيمة الخصم غير صالحة"),
])
def test_amounts(make_payload, field, value, message):
    with pytest.raises(InvalidRequest) as exc:
        parse_order_request(make_payload(**{field: value}))
    assert exc.value.message == message


@pytest.mark.parametrize("item", [
    {"product_id": "P1", "product_name": " ", "product_price": 10, "quantity": 1},
    {"product_id": "P1", "product_name": "x", "product_price": "10", "quantity": 1},
    {"product_id": "P1", "product_name": "x", "product_price": 10, "quantity": 0},
    {"product_id": "P1", "product_name": "x", "product_price": 10, "quantity": 1.5},
    "P1",
])
def test_malformed_items(make_payload, item):
    with pytest.raises(InvalidRequest) as exc:
        parse_order_request(make_payload(items=[item]))
    assert exc.value.message == "بيانات المنتجات غير صالحة"


def test_wrong_optional_type_rejected(make_payload):
    with pytest.raises(InvalidRequest):
        parse_order_request(make_payload(customer_email=42))


def test_non_object_body_rejected():
    with pytest.raises(InvalidRequest):
        parse_order_request(["not", "an", "order"])


def test_valid_request(make_payload):
    request = parse_order_request(make_payload(
        discount_amount=None,
        items=[
            {"product_id": "P1", "product_name": "سماعة", "product_price": 100, "quantity": 2},
            {"product_name": "تغليف هدية", "product_price": 15, "quantity": 1},
            {"product_id": "P1", "product_name": "سماعة", "product_price": 100, "quantity": 1},
        ],
    ))
    assert request.discount_amount == 0
    assert request.items[1].product_id is None
    assert request.tracked_product_ids() == ["P1"]


def test_total_is_not_recomputed(make_payload):
    # client totals are stored as sent
    request = parse_order_request(make_payload(total=1))
    assert request.total == 1
