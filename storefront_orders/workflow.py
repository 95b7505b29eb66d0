"""
workflow.py — Core Orchestration Logic for Order Creation

This module turns a finalized cart into a durable order. It coordinates the
catalog, order and coupon repositories in a fixed sequence.

Workflow Overview:
1. Validate the request (no store access)
2. Read the stock snapshot and check availability
3. Write the order header, then the line items (header deleted if items fail)
4. Decrement stock in one batch call
5. Increment the coupon usage counter
6. Emit an order-created event for the notification collaborators

Everything up to step 3 is all-or-nothing and reported to the caller. Steps
4 to 6 are bookkeeping: their failures are logged and never turn a created
order into an error.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from .coupons import record_coupon_usage
from .errors import (
    CatalogUnavailable,
    CouponAccountingFailed,
    InvalidRequest,
    OrderPipelineError,
    ProductNotFound,
    OutOfStock,
    StockReconciliationFailed,
)
from .inventory import read_inventory, reconcile_stock, stock_movements, validate_stock
from .models import CreatedOrder, OrderCreatedEvent, OrderRequest
from .order_numbers import OrderNumberGenerator
from .order_writer import OrderWriter
from .repositories import CatalogRepository, CouponRepository, OrderRepository
from .validation import parse_order_request

log = logging.getLogger(__name__)


class PipelineState(str, Enum):
    VALIDATING = "validating"
    CHECKING_STOCK = "checking_stock"
    WRITING_ORDER = "writing_order"
    RECONCILING_STOCK = "reconciling_stock"
    ACCOUNTING_COUPON = "accounting_coupon"
    SUCCEEDED = "succeeded"
    VALIDATION_FAILED = "validation_failed"
    STOCK_REJECTED = "stock_rejected"
    PERSISTENCE_FAILED = "persistence_failed"


EventSink = Callable[[OrderCreatedEvent], None]


class OrderPipeline:
    """
    Runs one checkout attempt per call to `run`.

    Instances hold no per-attempt state and may be shared between requests.
    Concurrent attempts are not synchronized with each other.

    Args:
        catalog (CatalogRepository): Stock reads and the batch decrement.
        orders (OrderRepository): Order header and line item storage.
        coupons (CouponRepository): Coupon usage counter.
        order_numbers (callable): Order number strategy.
        emit (callable): Optional sink for OrderCreatedEvent.
    """

    def __init__(self, catalog: CatalogRepository, orders: OrderRepository, coupons: CouponRepository,
                 order_numbers: Optional[Callable[[], str]] = None,
                 emit: Optional[EventSink] = None):
        self.catalog = catalog
        self.coupons = coupons
        self.writer = OrderWriter(orders)
        self.order_numbers = order_numbers or OrderNumberGenerator()
        self.emit = emit

    def _enter(self, state: PipelineState, log_prefix: str):
        log.debug(f"{log_prefix} -> {state.value}")

    def _fail(self, error: OrderPipelineError, state: PipelineState, log_prefix: str):
        """Tags `error` with the terminal state the attempt ended in."""
        error.state = state
        self._enter(state, log_prefix)

    def run(self, payload: Any, emit: Optional[EventSink] = None) -> CreatedOrder:
        """
        Executes the complete checkout for a single request.

        Args:
            payload: Decoded JSON body, or an already validated OrderRequest.
            emit (callable): Sink for the order-created event, overriding the
                one given at construction.

        Returns:
            CreatedOrder: Id and order number of the new order.

        Raises:
            InvalidRequest: Missing or malformed field. Nothing persisted.
            CatalogUnavailable: Stock snapshot unavailable. Nothing persisted.
            ProductNotFound / OutOfStock: Cart must be adjusted. Nothing persisted.
            OrderPersistenceFailed / OrderItemsPersistenceFailed: Storage failed,
                any partial write was rolled back.
        """
        attempt_id = uuid.uuid4().hex[:12]
        log_prefix = f"[Checkout: {attempt_id}]"

        # --- 1. Request validation ---
        self._enter(PipelineState.VALIDATING, log_prefix)
        try:
            request = payload if isinstance(payload, OrderRequest) else parse_order_request(payload)
        except InvalidRequest as e:
            self._fail(e, PipelineState.VALIDATION_FAILED, log_prefix)
            log.warning(f"{log_prefix} Rejected: invalid request ({e.message}).")
            raise

        log.info(
            f"{log_prefix} Creating order for {request.customer_name.strip()} "
            f"(phone: {request.customer_phone.strip()}, {len(request.items)} item(s))."
        )

        # --- 2. Stock check ---
        self._enter(PipelineState.CHECKING_STOCK, log_prefix)
        product_ids = request.tracked_product_ids()
        try:
            snapshot = read_inventory(self.catalog, product_ids)
            validate_stock(request.items, snapshot)
        except (ProductNotFound, OutOfStock) as e:
            self._fail(e, PipelineState.STOCK_REJECTED, log_prefix)
            log.warning(f"{log_prefix} Rejected: product {e.product_id} ({e.__class__.__name__}).")
            raise
        except CatalogUnavailable as e:
            self._fail(e, PipelineState.STOCK_REJECTED, log_prefix)
            log.error(f"{log_prefix} Aborted: catalog unavailable for products {product_ids}.")
            raise

        # --- 3. Order header + line items ---
        self._enter(PipelineState.WRITING_ORDER, log_prefix)
        order_number = self.order_numbers()
        try:
            order = self.writer.write(order_number, request, log_prefix)
        except OrderPipelineError as e:
            self._fail(e, PipelineState.PERSISTENCE_FAILED, log_prefix)
            raise

        # From here on the order stands.
        # --- 4. Stock reconciliation ---
        self._enter(PipelineState.RECONCILING_STOCK, log_prefix)
        movements = stock_movements(request.items)
        try:
            reconcile_stock(self.catalog, request.items)
            if movements:
                log.info(f"{log_prefix} Stock decremented for order {order.order_number}: {movements}")
        except StockReconciliationFailed as e:
            log.error(
                f"{log_prefix} STOCK NOT RECONCILED for order {order.id} ({order.order_number}). "
                f"Manual correction required. {e.message}"
            )
        except Exception as e:
            log.error(
                f"{log_prefix} STOCK NOT RECONCILED for order {order.id} ({order.order_number}), "
                f"movements {movements}. Manual correction required. {e!r}",
                exc_info=True,
            )

        # --- 5. Coupon usage ---
        self._enter(PipelineState.ACCOUNTING_COUPON, log_prefix)
        coupon_code = request.normalized_coupon_code()
        if coupon_code:
            try:
                record_coupon_usage(self.coupons, coupon_code)
                log.info(f"{log_prefix} Coupon {coupon_code} usage recorded.")
            except CouponAccountingFailed as e:
                log.error(f"{log_prefix} Coupon usage NOT recorded for order {order.id}. {e.message}")
            except Exception as e:
                log.error(
                    f"{log_prefix} Coupon {coupon_code} usage NOT recorded for order {order.id} "
                    f"({order.order_number}). {e!r}",
                    exc_info=True,
                )

        self._enter(PipelineState.SUCCEEDED, log_prefix)
        log.info(f"{log_prefix} Order created successfully: {order.order_number}")

        # --- 6. Notification event ---
        self._publish(order, request, emit or self.emit, log_prefix)
        return order

    def _publish(self, order: CreatedOrder, request: OrderRequest, emit: Optional[EventSink], log_prefix: str):
        if emit is None:
            return
        event = OrderCreatedEvent(
            order_id=order.id,
            order_number=order.order_number,
            customer_name=request.customer_name.strip(),
            customer_phone=request.customer_phone.strip(),
            customer_email=(request.customer_email or "").strip() or None,
            governorate=request.governorate.strip(),
            payment_method=request.payment_method.strip(),
            total=request.total,
            items=request.items,
        )
        try:
            emit(event)
        except Exception as e:
            log.error(f"{log_prefix} Order-created event for {order.order_number} not emitted: {e!r}")
