"""
models.py — Data Models for Order Creation

Pydantic models for everything that crosses a boundary of the checkout
pipeline: the client's order request, the catalog's stock snapshot, the
rows written to the store and the event emitted once an order exists.

Models:
    - RequestedLineItem: One cart line as sent by the storefront.
    - OrderRequest: The complete checkout payload.
    - ProductStockSnapshot: Stock state of one catalog product.
    - OrderStatus: Lifecycle states of a persisted order.
    - CreatedOrder: Identifiers returned to the client on success.
    - OrderCreatedEvent: Notification payload published after success.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RequestedLineItem(BaseModel):
    """
    Represents a single cart line in an order request.

    Attributes:
        product_id (str | None): Catalog product id. None for ad-hoc items,
            which are not stock tracked.
        product_name (str): Product name snapshot at order time.
        product_price (float): Unit price snapshot at order time.
        quantity (int): Ordered quantity. Must be at least one.
    """
    product_id: Optional[str] = None
    product_name: str
    product_price: float
    quantity: int = Field(..., ge=1)


class OrderRequest(BaseModel):
    """
    Represents a checkout request submitted by the storefront.

    Totals are computed by the client; `total` is expected to equal
    `max(0, subtotal + delivery_fee - discount_amount)` but is stored as sent.
    """
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    customer_address: str
    governorate: str
    payment_method: str
    notes: Optional[str] = None
    coupon_code: Optional[str] = None
    items: List[RequestedLineItem]
    subtotal: float = Field(..., ge=0)
    delivery_fee: float = Field(..., ge=0)
    discount_amount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    user_id: Optional[str] = None

    def tracked_product_ids(self) -> List[str]:
        """Distinct product ids in item order, ad-hoc items skipped."""
        seen = []
        for item in self.items:
            if item.product_id and item.product_id not in seen:
                seen.append(item.product_id)
        return seen

    def normalized_coupon_code(self) -> Optional[str]:
        code = (self.coupon_code or "").strip()
        return code or None


class ProductStockSnapshot(BaseModel):
    """
    Stock state of a catalog product as read at validation time.

    Attributes:
        product_id (str): Catalog id.
        stock_count (int | None): Units on hand. None means not tracked.
        in_stock (bool): Availability flag maintained by the back office.
    """
    product_id: str
    stock_count: Optional[int] = None
    in_stock: bool = True


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class CreatedOrder(BaseModel):
    id: str
    order_number: str


class OrderCreatedEvent(BaseModel):
    """
    Emitted once an order and all of its line items are persisted.

    Consumed by notification collaborators (email, WhatsApp). Their failures
    never affect the recorded order.
    """
    order_id: str
    order_number: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    governorate: str
    payment_method: str
    total: float
    items: List[RequestedLineItem]
