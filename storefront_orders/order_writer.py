"""
order_writer.py — Two-phase Order Persistence with Compensation

The header and the line items are two sequential store writes, not a
database transaction. If the items cannot be written the header is deleted
again so that no order exists without its items.
"""

import logging
from typing import List

import httpx

from .errors import OrderItemsPersistenceFailed, OrderPersistenceFailed
from .models import CreatedOrder, OrderRequest, OrderStatus
from .repositories import OrderRepository

log = logging.getLogger(__name__)


def _clean(value):
    if value is None:
        return None
    return value.strip() or None


def build_order_row(order_number: str, request: OrderRequest) -> dict:
    """Header row with trimmed, denormalized request fields."""
    return {
        "order_number": order_number,
        "customer_name": request.customer_name.strip(),
        "customer_phone": request.customer_phone.strip(),
        "customer_email": _clean(request.customer_email),
        "customer_address": request.customer_address.strip(),
        "governorate": request.governorate.strip(),
        "payment_method": request.payment_method.strip(),
        "notes": _clean(request.notes),
        "coupon_code": request.normalized_coupon_code(),
        "subtotal": request.subtotal,
        "delivery_fee": request.delivery_fee,
        "discount_amount": request.discount_amount or 0,
        "total": request.total,
        "user_id": request.user_id or None,
        "status": OrderStatus.PENDING.value,
        "payment_confirmed": False,
    }


def build_item_rows(order_id: str, request: OrderRequest) -> List[dict]:
    return [
        {
            "order_id": order_id,
            "product_id": item.product_id or None,
            "product_name": item.product_name.strip(),
            "product_price": item.product_price,
            "quantity": item.quantity,
        }
        for item in request.items
    ]


class OrderWriter:
    """
    Persists an order header and its line items.

    Args:
        orders (OrderRepository): Order storage.
    """

    def __init__(self, orders: OrderRepository):
        self.orders = orders

    def write(self, order_number: str, request: OrderRequest, log_prefix: str = "") -> CreatedOrder:
        """
        Writes header, then items; deletes the header if the items fail.

        Returns:
            CreatedOrder: Generated id and order number.

        Raises:
            OrderPersistenceFailed: Header insert failed. Nothing persisted.
            OrderItemsPersistenceFailed: Items insert failed. The header was
                removed again (best effort).
        """
        # --- Phase 1: header ---
        try:
            row = self.orders.insert_order(build_order_row(order_number, request))
            order = CreatedOrder(id=str(row["id"]), order_number=row.get("order_number", order_number))
        except (httpx.HTTPError, ValueError, KeyError, IndexError) as e:
            log.error(f"{log_prefix} Order header {order_number} could not be created: {e!r}")
            raise OrderPersistenceFailed() from e

        log.info(f"{log_prefix} Order header created. (ID: {order.id}, Number: {order.order_number})")

        # --- Phase 2: line items ---
        try:
            self.orders.insert_items(build_item_rows(order.id, request))
        except httpx.HTTPError as e:
            log.error(f"{log_prefix} Line items for order {order.id} could not be created: {e!r}. Rolling back header.")
            self.rollback(order, log_prefix)
            raise OrderItemsPersistenceFailed() from e

        log.info(f"{log_prefix} {len(request.items)} line item(s) stored for order {order.id}.")
        return order

    def rollback(self, order: CreatedOrder, log_prefix: str = "") -> bool:
        """
        Compensating delete of a header whose items failed.

        A failure here leaves an orphaned header behind. It is logged for
        manual cleanup and not retried.
        """
        try:
            self.orders.delete_order(order.id)
        except httpx.HTTPError as e:
            log.critical(
                f"{log_prefix} COMPENSATION FAILED: order {order.id} ({order.order_number}) "
                f"exists without line items. MANUAL ACTION REQUIRED! {e!r}"
            )
            return False
        log.info(f"{log_prefix} Compensation done: order header {order.id} deleted.")
        return True
