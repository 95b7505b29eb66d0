"""
main.py — FastAPI Entry Point for the Storefront Order Service

This module exposes the server-side functions the storefront calls directly
from the browser. Everything else (catalog, cart, admin screens) talks to the
hosted database on its own.

Responsibilities:
    • Create orders from a finalized cart (checkout pipeline)
    • Validate coupon codes before checkout
    • Let customers track an order by number and phone digits
    • Answer CORS preflight requests on every path
    • Provide system health information
"""

import json
from functools import lru_cache

import httpx
from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from .coupons import CouponRejected, validate_coupon
from .errors import GENERIC_ERROR_MESSAGE, InvalidRequest, OrderPipelineError
from .logging_config import get_logger, setup_logging
from .notifications import notify_order_created
from .repositories import CatalogRepository, CouponRepository, OrderRepository, create_store_client
from .tracking import TrackingError, track_order
from .workflow import OrderPipeline

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# Initialization
setup_logging()
log = get_logger(__name__)
app = FastAPI(title="Storefront Order Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.middleware("http")
async def answer_preflight(request: Request, call_next):
    """Every OPTIONS request gets an empty 200 with the CORS headers."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    return await call_next(request)


@app.exception_handler(OrderPipelineError)
async def pipeline_error_handler(request: Request, exc: OrderPipelineError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


# Store dependencies
@lru_cache(maxsize=1)
def get_store_client() -> httpx.Client:
    return create_store_client()


def get_order_repository() -> OrderRepository:
    return OrderRepository(get_store_client())


def get_coupon_repository() -> CouponRepository:
    return CouponRepository(get_store_client())


def get_pipeline() -> OrderPipeline:
    http = get_store_client()
    return OrderPipeline(
        catalog=CatalogRepository(http),
        orders=OrderRepository(http),
        coupons=CouponRepository(http),
    )


async def _read_json(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _client_ip(request: Request) -> str:
    """First `x-forwarded-for` hop, else `x-real-ip`, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or request.headers.get("x-real-ip") or "unknown"


# API Endpoint: Storefront → Checkout
@app.post("/v1/orders")
async def create_order(
        request: Request,
        background_tasks: BackgroundTasks,
        pipeline: OrderPipeline = Depends(get_pipeline),
):
    """
    Creates an order from the storefront's checkout payload.

    The order-created notification is scheduled as a background task so it
    runs after the response and cannot change it.

    Returns:
        dict: `{"success": true, "order": {"id", "order_number"}}`.

    Error responses:
        `{"error": <Arabic message>}` with 400 for invalid requests and stock
        rejections, 500 for catalog or storage failures.
    """
    payload = await _read_json(request)
    if payload is None:
        raise InvalidRequest()

    def emit(event):
        background_tasks.add_task(notify_order_created, event)

    try:
        order = await run_in_threadpool(pipeline.run, payload, emit)
    except OrderPipelineError:
        raise
    except Exception as e:
        log.critical(f"Unexpected error while creating order: {e}", exc_info=True)
        raise OrderPipelineError(GENERIC_ERROR_MESSAGE)

    return {"success": True, "order": order.model_dump()}


# API Endpoint: Coupon check before checkout
@app.post("/v1/coupons/validate")
async def check_coupon(request: Request, coupons: CouponRepository = Depends(get_coupon_repository)):
    """
    Validates a coupon code and returns its discount for the given total.

    Returns:
        dict: `{"valid": true, "coupon": {...}}` or `{"valid": false, "error": ...}`.
        Unknown codes add `remainingAttempts`; a blocked caller gets 429 with
        `blocked: true`.
    """
    body = await _read_json(request)
    if not isinstance(body, dict):
        body = {}

    try:
        quote = await run_in_threadpool(
            validate_coupon, coupons, body.get("code"), body.get("orderTotal"), _client_ip(request)
        )
    except CouponRejected as e:
        return JSONResponse({"valid": False, "error": e.message, **e.extra}, status_code=e.status_code)
    except Exception as e:
        log.error(f"Unexpected error while validating coupon: {e}", exc_info=True)
        return JSONResponse({"valid": False, "error": GENERIC_ERROR_MESSAGE}, status_code=500)

    return {"valid": True, "coupon": quote.model_dump()}


# API Endpoint: Customer order tracking
@app.post("/v1/orders/track")
async def track(request: Request, orders: OrderRepository = Depends(get_order_repository)):
    """
    Looks up an order by number, verified by the last four phone digits.

    Returns:
        dict: `{"order": {...public fields, "items": [...]}}`.
    """
    body = await _read_json(request)
    if not isinstance(body, dict):
        body = {}

    try:
        order = await run_in_threadpool(track_order, orders, body.get("orderNumber"), body.get("phoneLast4"))
    except TrackingError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        log.error(f"Unexpected error while tracking order: {e}", exc_info=True)
        return JSONResponse({"error": GENERIC_ERROR_MESSAGE}, status_code=500)

    return {"order": order}


# Health Check Endpoint
@app.get("/health")
def health_check():
    """
    Simple health check endpoint for container orchestrators.

    Returns:
        dict: A basic JSON object indicating service availability.
    """
    return {"status": "ok"}
