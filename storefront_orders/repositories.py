"""
This module provides the repositories for the hosted database the storefront
runs on. The database is reached over its REST interface:
- Catalog (products table, `decrement_stock` RPC)
- Orders (orders and order_items tables)
- Coupons (coupons table, `increment_coupon_usage` RPC)
Each class wraps one concern of the store. Transport and HTTP status errors are
logged and re-raised as `httpx.HTTPError`; callers decide what they mean.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import httpx

# Store address and service key (service role, bypasses row level security)
STORE_URL = os.environ.get("STORE_URL", "http://localhost:54321")
STORE_SERVICE_KEY = os.environ.get("STORE_SERVICE_KEY", "")

REST_PREFIX = "/rest/v1"

log = logging.getLogger(__name__)


def create_store_client(base_url: str = STORE_URL, service_key: str = STORE_SERVICE_KEY) -> httpx.Client:
    """
    Builds the HTTP client shared by all repositories.

    Args:
        base_url (str): Root URL of the hosted database.
        service_key (str): Service role key sent as `apikey` and bearer token.
    Returns:
        httpx.Client: Client with auth headers and timeouts configured.
    """
    timeout_config = httpx.Timeout(5.0, read=8.0)
    headers = {
        "apikey": service_key,
        "Authorization": f"Bearer {service_key}",
    }
    return httpx.Client(base_url=base_url, timeout=timeout_config, headers=headers)


class _StoreRepository:
    def __init__(self, http: httpx.Client):
        self.http = http

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.http.request(method, f"{REST_PREFIX}{path}", **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            log.error(f"Store call {method} {path} failed with HTTP {e.response.status_code}: {e.response.text}")
            raise
        except httpx.HTTPError as e:
            log.error(f"Store call {method} {path} failed: {e!r}")
            raise


# --- Catalog ---
class CatalogRepository(_StoreRepository):
    """
    Read and stock-keeping access to the products table.
    """

    def fetch_stock(self, product_ids: Iterable[str]) -> List[dict]:
        """
        Batch read of stock fields.
        Args:
            product_ids: Catalog ids to look up.
        Returns:
            list[dict]: Rows with 'id', 'stock_count' and 'in_stock'. Unknown ids
            are simply absent.
        Raises:
            httpx.HTTPError: If the store cannot be read.
        """
        id_filter = ",".join(product_ids)
        response = self._request(
            "GET", "/products",
            params={"id": f"in.({id_filter})", "select": "id,stock_count,in_stock"},
        )
        return response.json()

    def decrement_stock(self, items: List[dict]) -> None:
        """
        Atomic batch decrement through the `decrement_stock` RPC.
        Args:
            items (list): Dicts with 'product_id' and 'quantity'. The store applies
                all of them in one statement; counts may go below zero.
        Raises:
            httpx.HTTPError: If the call fails.
        """
        self._request("POST", "/rpc/decrement_stock", json={"items": items})


# --- Orders ---
class OrderRepository(_StoreRepository):
    """
    Insert, delete and lookup of orders and their line items.
    """

    def insert_order(self, row: dict) -> dict:
        """
        Inserts one order header.
        Returns:
            dict: The stored row including the generated 'id'.
        Raises:
            httpx.HTTPStatusError: 409 when the order number already exists.
        """
        response = self._request(
            "POST", "/orders", json=row, headers={"Prefer": "return=representation"}
        )
        return response.json()[0]

    def insert_items(self, rows: List[dict]) -> None:
        """Inserts all line items of one order in a single batch."""
        self._request("POST", "/order_items", json=rows, headers={"Prefer": "return=minimal"})

    def delete_order(self, order_id: str) -> None:
        self._request("DELETE", "/orders", params={"id": f"eq.{order_id}"})

    def find_by_number(self, order_number: str, columns: str = "*") -> Optional[dict]:
        response = self._request(
            "GET", "/orders", params={"order_number": f"eq.{order_number}", "select": columns}
        )
        rows = response.json()
        return rows[0] if rows else None

    def list_items(self, order_id: str) -> List[dict]:
        response = self._request(
            "GET", "/order_items",
            params={"order_id": f"eq.{order_id}", "select": "id,product_name,product_price,quantity"},
        )
        return response.json()


# --- Coupons ---
class CouponRepository(_StoreRepository):
    """
    Coupon lookup, usage accounting and the per-IP attempt log.
    """

    COLUMNS = "code,discount_type,discount_value,expires_at,max_uses,used_count,min_order_amount,is_active"

    def find_active(self, code: str) -> Optional[dict]:
        response = self._request(
            "GET", "/coupons",
            params={"code": f"eq.{code}", "is_active": "eq.true", "select": self.COLUMNS},
        )
        rows = response.json()
        return rows[0] if rows else None

    def increment_usage(self, code: str) -> None:
        """Atomic `used_count + 1` through the `increment_coupon_usage` RPC."""
        self._request("POST", "/rpc/increment_coupon_usage", json={"coupon_code_param": code})

    def count_failed_attempts(self, ip_address: str, since: datetime) -> int:
        """Failed validation attempts from `ip_address` at or after `since`."""
        response = self._request(
            "GET", "/coupon_attempts",
            params={
                "ip_address": f"eq.{ip_address}",
                "success": "eq.false",
                "created_at": f"gte.{since.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')}",
                "select": "id",
            },
        )
        return len(response.json())

    def record_attempt(self, ip_address: str, code: str, success: bool) -> None:
        self._request(
            "POST", "/coupon_attempts",
            json={"ip_address": ip_address, "attempted_code": code, "success": success},
        )
