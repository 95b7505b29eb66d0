"""
tracking.py — Order Lookup for Customers

Customers look up an order by its number and the last four digits of the
phone used at checkout. Unknown numbers and phone mismatches get the same
answer so that order numbers cannot be enumerated.
"""

import logging
import re

import httpx

from .repositories import OrderRepository

log = logging.getLogger(__name__)

PUBLIC_COLUMNS = (
    "id,order_number,status,created_at,updated_at,subtotal,delivery_fee,"
    "discount_amount,total,governorate,payment_method,payment_confirmed,customer_phone"
)

NOT_FOUND_MESSAGE = "الطلب غير موجود أو البيانات غير صحيحة"


class TrackingError(Exception):
    def __init__(self, message: str, status_code: int):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def track_order(orders: OrderRepository, order_number, phone_last4) -> dict:
    """
    Returns the public view of an order with its line items.

    Raises:
        TrackingError: 400 for malformed input, 404 when the order does not
            exist or the phone digits do not match.
        httpx.HTTPError: If the order itself cannot be read.
    """
    if not order_number or not isinstance(order_number, str):
        raise TrackingError("رقم الطلب مطلوب", 400)

    if not phone_last4 or not isinstance(phone_last4, str) or len(phone_last4) != 4:
        raise TrackingError("آخر 4 أرقام من رقم الهاتف مطلوبة", 400)

    if not re.fullmatch(r"\d{4}", phone_last4):
        raise TrackingError("آخر 4 أرقام يجب أن تكون أرقام فقط", 400)

    number = order_number.strip().upper()
    if len(number) < 5 or len(number) > 50:
        raise TrackingError("رقم الطلب غير صالح", 400)

    order = orders.find_by_number(number, PUBLIC_COLUMNS)
    if not order:
        log.info(f"[Track: {number}] Order not found.")
        raise TrackingError(NOT_FOUND_MESSAGE, 404)

    phone = order.pop("customer_phone", "") or ""
    if phone.strip()[-4:] != phone_last4:
        log.warning(f"[Track: {number}] Phone verification failed.")
        raise TrackingError(NOT_FOUND_MESSAGE, 404)

    try:
        items = orders.list_items(order["id"])
    except httpx.HTTPError as e:
        log.error(f"[Track: {number}] Line items could not be loaded: {e!r}")
        items = []

    log.info(f"[Track: {number}] Order tracked (status: {order.get('status')}).")
    return {**order, "items": items}
