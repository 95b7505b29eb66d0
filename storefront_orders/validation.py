"""
validation.py — Request-level Validation of Checkout Payloads

Runs before any store access. Checks are applied in a fixed order and the
first failing one is reported with a field-specific Arabic message, so the
storefront can show the customer exactly what to fix.
"""

import logging
from typing import Any

from pydantic import ValidationError

from .errors import InvalidRequest
from .models import OrderRequest

log = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = (
    ("customer_name", "اسم العميل مطلوب"),
    ("customer_phone", "رقم الهاتف مطلوب"),
    ("customer_address", "العنوان مطلوب"),
    ("governorate", "المحافظة مطلوبة"),
    ("payment_method", "طريقة الدفع مطلوبة"),
)

AMOUNT_FIELDS = (
    ("subtotal", "المجموع الفرعي غير صالح"),
    ("delivery_fee", "رسوم التوصيل غير صالحة"),
    ("total", "المجموع غير صالح"),
)

MISSING_ITEMS_MESSAGE = "يجب إضافة منتج واحد على الأقل"
INVALID_DISCOUNT_MESSAGE = "قيمة الخصم غير صالحة"
INVALID_ITEMS_MESSAGE = "بيانات المنتجات غير صالحة"


def _is_number(value: Any) -> bool:
    # bool is an int subclass, JSON true/false must not pass as amounts
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _valid_item(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    quantity = item.get("quantity")
    return (
        not _is_blank(item.get("product_name"))
        and _is_number(item.get("product_price"))
        and isinstance(quantity, int)
        and not isinstance(quantity, bool)
        and quantity >= 1
    )


def parse_order_request(payload: Any) -> OrderRequest:
    """
    Validates a decoded JSON body and returns the typed order request.

    Args:
        payload: The decoded request body.

    Returns:
        OrderRequest: The validated request. String fields keep their
        original spacing; the order writer trims them when persisting.

    Raises:
        InvalidRequest: On the first missing or malformed field.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest()

    for field, message in REQUIRED_TEXT_FIELDS:
        if _is_blank(payload.get(field)):
            raise InvalidRequest(message)

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidRequest(MISSING_ITEMS_MESSAGE)

    for field, message in AMOUNT_FIELDS:
        value = payload.get(field)
        if not _is_number(value) or value < 0:
            raise InvalidRequest(message)

    discount = payload.get("discount_amount")
    if discount is not None and (not _is_number(discount) or discount < 0):
        raise InvalidRequest(INVALID_DISCOUNT_MESSAGE)

    if not all(_valid_item(item) for item in items):
        raise InvalidRequest(INVALID_ITEMS_MESSAGE)

    data = dict(payload)
    if discount is None:
        data.pop("discount_amount", None)

    try:
        return OrderRequest.model_validate(data)
    except ValidationError as e:
        log.warning(f"Order request rejected by schema validation: {e.errors()}")
        raise InvalidRequest()
