"""
inventory.py — Stock Snapshot, Availability Check and Stock Reconciliation

The read (`read_inventory`) and the write (`reconcile_stock`) are separate
store calls with no lock between them. Two checkouts racing for the last unit
can both pass `validate_stock`; the batch decrement keeps the stored count
arithmetically correct, which then goes below zero.
"""

import logging
from typing import Dict, Iterable, List

import httpx
from pydantic import ValidationError

from .errors import CatalogUnavailable, OutOfStock, ProductNotFound, StockReconciliationFailed
from .models import ProductStockSnapshot, RequestedLineItem
from .repositories import CatalogRepository

log = logging.getLogger(__name__)


def read_inventory(catalog: CatalogRepository, product_ids: Iterable[str]) -> Dict[str, ProductStockSnapshot]:
    """
    Reads the current stock state of the given products.

    Args:
        catalog (CatalogRepository): Catalog access.
        product_ids: Distinct catalog ids. May be empty when the cart only
            holds ad-hoc items, in which case the store is not called.

    Returns:
        dict: Product id → ProductStockSnapshot. Ids unknown to the catalog
        are absent.

    Raises:
        CatalogUnavailable: If the catalog cannot be read or answers garbage.
    """
    product_ids = list(product_ids)
    if not product_ids:
        return {}

    try:
        rows = catalog.fetch_stock(product_ids)
        snapshots = [
            ProductStockSnapshot(
                product_id=str(row["id"]),
                stock_count=row.get("stock_count"),
                in_stock=row.get("in_stock") is not False,
            )
            for row in rows
        ]
    except (httpx.HTTPError, ValueError, KeyError, TypeError, ValidationError) as e:
        log.error(f"Catalog read failed for products {product_ids}: {e!r}")
        raise CatalogUnavailable() from e

    return {snapshot.product_id: snapshot for snapshot in snapshots}


def validate_stock(items: List[RequestedLineItem], snapshot: Dict[str, ProductStockSnapshot]) -> None:
    """
    Checks every tracked line item against the snapshot, failing fast.

    Ad-hoc items (no product id) always pass, as do products whose
    `stock_count` is null while `in_stock` is set.

    Raises:
        ProductNotFound: A requested product id is absent from the snapshot.
        OutOfStock: The product is flagged unavailable or has fewer units
            than requested. The message carries the available count.
    """
    for item in items:
        if not item.product_id:
            continue

        product = snapshot.get(item.product_id)
        if product is None:
            raise ProductNotFound(item.product_id, item.product_name)

        if not product.in_stock:
            raise OutOfStock(item.product_id, item.product_name, 0)

        if product.stock_count is not None and product.stock_count < item.quantity:
            raise OutOfStock(item.product_id, item.product_name, max(product.stock_count, 0))


def stock_movements(items: List[RequestedLineItem]) -> List[dict]:
    """{product_id, quantity} pairs for every line item with a product id."""
    return [
        {"product_id": item.product_id, "quantity": item.quantity}
        for item in items
        if item.product_id
    ]


def reconcile_stock(catalog: CatalogRepository, items: List[RequestedLineItem]) -> List[dict]:
    """
    Decrements stock for all purchased catalog products in one atomic call.

    Returns:
        list[dict]: The movements sent to the store (empty if none).

    Raises:
        StockReconciliationFailed: If the batch decrement fails. The order
            already exists at this point; callers log and carry on.
    """
    movements = stock_movements(items)
    if not movements:
        return movements

    try:
        catalog.decrement_stock(movements)
    except httpx.HTTPError as e:
        raise StockReconciliationFailed(f"stock decrement failed for {movements}: {e!r}") from e
    return movements
