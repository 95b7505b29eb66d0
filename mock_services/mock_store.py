"""
mock_store.py — Mock Implementation of the Hosted Database (REST API)

This module simulates the parts of the storefront's hosted database that the
order service uses, so the checkout pipeline can be exercised end to end
without a real backend.

Simulated resources:
    • products      — batch read by id list, `decrement_stock` RPC
    • orders        — insert (unique order_number), delete by id, lookup
    • order_items   — batch insert (all-or-nothing, must reference an order)
    • coupons       — lookup by code, `increment_coupon_usage` RPC
    • coupon_attempts — per-IP validation attempts, filtered read and insert

Fault injection:
    Operation names listed in `MockStore.fail_on` answer with HTTP 500, e.g.
    "order_items.insert" or "products.decrement".

Port:
    Default: 54321 (HTTP)
"""

import logging
import threading
import uuid
from datetime import datetime, timezone

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, Response

logging.basicConfig(level=logging.INFO)


class MockStore:
    """
    In-memory tables plus the fault switches and a call log.

    Attributes:
        products (dict): id → {id, name, stock_count, in_stock}
        orders (dict): id → order row
        order_items (list): line item rows
        coupons (dict): code → coupon row
        coupon_attempts (list): {ip_address, attempted_code, success, created_at}
        fail_on (set): Operation names that fail with HTTP 500.
        calls (list): Operation names in the order they were received.
    """

    def __init__(self):
        self.products = {}
        self.orders = {}
        self.order_items = []
        self.coupons = {}
        self.coupon_attempts = []
        self.fail_on = set()
        self.calls = []
        self.lock = threading.Lock()

    def add_product(self, product_id: str, name: str = "", stock_count=None, in_stock: bool = True):
        self.products[product_id] = {
            "id": product_id,
            "name": name,
            "stock_count": stock_count,
            "in_stock": in_stock,
        }

    def add_coupon(self, code: str, discount_type: str = "fixed", discount_value: float = 0,
                   used_count: int = 0, max_uses=None, min_order_amount=None,
                   expires_at=None, is_active: bool = True):
        self.coupons[code] = {
            "code": code,
            "discount_type": discount_type,
            "discount_value": discount_value,
            "used_count": used_count,
            "max_uses": max_uses,
            "min_order_amount": min_order_amount,
            "expires_at": expires_at,
            "is_active": is_active,
        }

    def add_attempt(self, ip_address: str, code: str = "X", success: bool = False, created_at: str = None):
        self.coupon_attempts.append({
            "id": str(uuid.uuid4()),
            "ip_address": ip_address,
            "attempted_code": code,
            "success": success,
            "created_at": created_at or _now(),
        })

    def stock_of(self, product_id: str):
        return self.products[product_id]["stock_count"]

    def items_for(self, order_id: str) -> list:
        return [row for row in self.order_items if row["order_id"] == order_id]

    def operation(self, name: str):
        self.calls.append(name)
        if name in self.fail_on:
            logging.warning(f"[STORE] Simulated failure for {name}.")
            raise HTTPException(status_code=500, detail={"message": f"simulated failure: {name}"})


def _eq(value):
    if value and value.startswith("eq."):
        return value[3:]
    return value


def _in(value):
    if value and value.startswith("in.(") and value.endswith(")"):
        return [part for part in value[4:-1].split(",") if part]
    return []


def _project(row: dict, select) -> dict:
    if not select or select == "*":
        return dict(row)
    return {column: row.get(column) for column in select.split(",")}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _gte(value):
    if value and value.startswith("gte."):
        return datetime.fromisoformat(value[4:].replace("Z", "+00:00"))
    return None


def create_app(store: MockStore) -> FastAPI:
    """Builds the REST facade over `store`."""
    app = FastAPI(title="Mock Store")

    @app.get("/rest/v1/products")
    def select_products(id: str = Query(None), select: str = Query("*")):
        store.operation("products.select")
        ids = _in(id)
        return [_project(store.products[pid], select) for pid in ids if pid in store.products]

    @app.post("/rest/v1/rpc/decrement_stock")
    def decrement_stock(payload: dict = Body(...)):
        store.operation("products.decrement")
        with store.lock:
            for movement in payload.get("items", []):
                product = store.products.get(movement["product_id"])
                if product is None or product["stock_count"] is None:
                    continue
                product["stock_count"] -= movement["quantity"]
        logging.info(f"[STORE] Stock decremented: {payload.get('items')}")
        return Response(status_code=204)

    @app.post("/rest/v1/orders", status_code=201)
    def insert_order(row: dict = Body(...)):
        store.operation("orders.insert")
        with store.lock:
            if any(o["order_number"] == row.get("order_number") for o in store.orders.values()):
                return JSONResponse(
                    {"code": "23505", "message": "duplicate key value violates unique constraint \"orders_order_number_key\""},
                    status_code=409,
                )
            now = _now()
            stored = {**row, "id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
            store.orders[stored["id"]] = stored
        logging.info(f"[STORE] Order {stored['order_number']} inserted.")
        return [stored]

    @app.delete("/rest/v1/orders")
    def delete_order(id: str = Query(...)):
        store.operation("orders.delete")
        order_id = _eq(id)
        with store.lock:
            store.orders.pop(order_id, None)
            # order_items.order_id references orders.id ON DELETE CASCADE
            store.order_items = [row for row in store.order_items if row["order_id"] != order_id]
        return Response(status_code=204)

    @app.get("/rest/v1/orders")
    def select_orders(order_number: str = Query(None), select: str = Query("*")):
        store.operation("orders.select")
        number = _eq(order_number)
        return [_project(o, select) for o in store.orders.values() if number is None or o["order_number"] == number]

    @app.post("/rest/v1/order_items", status_code=201)
    def insert_items(rows: list = Body(...)):
        store.operation("order_items.insert")
        with store.lock:
            if any(row.get("order_id") not in store.orders for row in rows):
                return JSONResponse({"code": "23503", "message": "foreign key violation"}, status_code=409)
            store.order_items.extend({**row, "id": str(uuid.uuid4())} for row in rows)
        return Response(status_code=201)

    @app.get("/rest/v1/order_items")
    def select_items(order_id: str = Query(None), select: str = Query("*")):
        store.operation("order_items.select")
        return [_project(row, select) for row in store.items_for(_eq(order_id))]

    @app.get("/rest/v1/coupons")
    def select_coupons(code: str = Query(None), is_active: str = Query(None), select: str = Query("*")):
        store.operation("coupons.select")
        coupon = store.coupons.get(_eq(code))
        if coupon is None or (is_active == "eq.true" and not coupon["is_active"]):
            return []
        return [_project(coupon, select)]

    @app.post("/rest/v1/rpc/increment_coupon_usage")
    def increment_coupon_usage(payload: dict = Body(...)):
        store.operation("coupons.increment")
        with store.lock:
            coupon = store.coupons.get(payload.get("coupon_code_param"))
            if coupon is not None:
                coupon["used_count"] = (coupon["used_count"] or 0) + 1
        return Response(status_code=204)

    @app.get("/rest/v1/coupon_attempts")
    def select_attempts(ip_address: str = Query(None), success: str = Query(None),
                        created_at: str = Query(None), select: str = Query("*")):
        store.operation("coupon_attempts.select")
        ip, since = _eq(ip_address), _gte(created_at)
        rows = [
            row for row in store.coupon_attempts
            if (ip is None or row["ip_address"] == ip)
            and (success is None or str(row["success"]).lower() == _eq(success))
            and (since is None or datetime.fromisoformat(row["created_at"]) >= since)
        ]
        return [_project(row, select) for row in rows]

    @app.post("/rest/v1/coupon_attempts", status_code=201)
    def insert_attempt(row: dict = Body(...)):
        store.operation("coupon_attempts.insert")
        with store.lock:
            store.add_attempt(row["ip_address"], row.get("attempted_code"), bool(row.get("success")))
        return Response(status_code=201)

    return app


def seed_demo_data(store: MockStore):
    store.add_product("P1", "سماعة", stock_count=5)
    store.add_product("P2", "شاحن", stock_count=0, in_stock=False)
    store.add_product("P3", "كابل", stock_count=None)
    store.add_coupon("WELCOME10", discount_type="percentage", discount_value=10)


store = MockStore()
seed_demo_data(store)
app = create_app(store)


if __name__ == "__main__":
    import uvicorn

    logging.info("Mock Store (REST) starting on port 54321...")
    uvicorn.run(app, host="0.0.0.0", port=54321)
