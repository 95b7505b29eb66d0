"""
coupons.py — Coupon Usage Accounting and Coupon Validation

`record_coupon_usage` runs inside the checkout pipeline after the order is
persisted. `validate_coupon` backs the standalone coupon check the storefront
calls while the customer is still editing the cart.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
from pydantic import BaseModel

from .errors import CouponAccountingFailed
from .repositories import CouponRepository

log = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")
MAX_CODE_LENGTH = 50
MAX_FAILED_ATTEMPTS = 5
BLOCK_WINDOW = timedelta(minutes=60)
BLOCKED_MESSAGE = "تم حظرك مؤقتاً بسبب كثرة المحاولات الفاشلة. حاول مرة أخرى بعد ساعة."


def record_coupon_usage(coupons: CouponRepository, code: str) -> None:
    """
    Increments the usage counter of `code` by one.

    Raises:
        CouponAccountingFailed: If the increment fails. Callers only log it.
    """
    try:
        coupons.increment_usage(code)
    except httpx.HTTPError as e:
        raise CouponAccountingFailed(f"usage increment failed for coupon {code}: {e!r}") from e


class CouponRejected(Exception):
    """
    The coupon cannot be applied.

    `status_code` is the HTTP status to answer with. `extra` holds additional
    response fields (`blocked`, `remainingAttempts`).
    """

    def __init__(self, message: str, status_code: int = 200, **extra):
        self.message = message
        self.status_code = status_code
        self.extra = extra
        super().__init__(message)


class CouponQuote(BaseModel):
    code: str
    discount_type: str
    discount_value: float
    discount_amount: float


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_amount(value) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def validate_coupon(coupons: CouponRepository, code, order_total=None, client_ip: str = "unknown",
                    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> CouponQuote:
    """
    Checks a coupon code against the store and computes its discount.

    Args:
        coupons (CouponRepository): Coupon storage.
        code: Raw code as typed by the customer.
        order_total: Current cart total, 0 if unknown.
        client_ip (str): Caller address the attempt is recorded under.
        now (callable): Clock used for the expiry check and the block window.

    Returns:
        CouponQuote: The coupon with the discount for `order_total`.

    Raises:
        CouponRejected: With status 400 for malformed input, 500 when the
            store cannot be read, 429 once `client_ip` has failed
            MAX_FAILED_ATTEMPTS times within BLOCK_WINDOW, and 200 for
            well-formed codes that do not apply (unknown, expired, exhausted,
            minimum not met).
    """
    if not code or not isinstance(code, str):
        raise CouponRejected("كود الكوبون مطلوب", 400)

    code = code.strip().upper()
    if len(code) > MAX_CODE_LENGTH or not CODE_PATTERN.match(code):
        raise CouponRejected("صيغة الكوبون غير صحيحة", 400)

    log.info(f"[Coupon: {code}] Validating for IP {client_ip}.")
    try:
        failed = coupons.count_failed_attempts(client_ip, now() - BLOCK_WINDOW)
    except httpx.HTTPError as e:
        log.warning(f"[Coupon: {code}] Attempt count unavailable for IP {client_ip}: {e!r}")
        failed = 0

    if failed >= MAX_FAILED_ATTEMPTS:
        log.warning(f"[Coupon: {code}] IP {client_ip} blocked after {failed} failed attempts.")
        raise CouponRejected(BLOCKED_MESSAGE, 429, blocked=True, remainingAttempts=0)

    try:
        coupon = coupons.find_active(code)
    except httpx.HTTPError as e:
        log.error(f"[Coupon: {code}] Lookup failed: {e!r}")
        raise CouponRejected("حدث خطأ في التحقق من الكوبون", 500) from e

    try:
        coupons.record_attempt(client_ip, code, success=coupon is not None)
    except httpx.HTTPError as e:
        log.warning(f"[Coupon: {code}] Attempt from IP {client_ip} not recorded: {e!r}")

    if not coupon:
        log.info(f"[Coupon: {code}] Unknown or inactive code attempted from IP {client_ip}.")
        raise CouponRejected("كود الكوبون غير صالح", remainingAttempts=max(0, MAX_FAILED_ATTEMPTS - failed - 1))

    expires_at = _parse_timestamp(coupon.get("expires_at"))
    if expires_at and expires_at < now():
        raise CouponRejected("انتهت صلاحية هذا الكوبون")

    max_uses = coupon.get("max_uses")
    if max_uses and (coupon.get("used_count") or 0) >= max_uses:
        raise CouponRejected("تم استنفاد عدد استخدامات هذا الكوبون")

    total = order_total if isinstance(order_total, (int, float)) and not isinstance(order_total, bool) else 0
    min_amount = coupon.get("min_order_amount")
    if min_amount and total < min_amount:
        raise CouponRejected(f"الحد الأدنى للطلب {_format_amount(min_amount)} ج.م لاستخدام هذا الكوبون")

    value = float(coupon.get("discount_value") or 0)
    if coupon.get("discount_type") == "percentage":
        discount = total * value / 100
    else:
        discount = value
    discount = min(discount, total)

    log.info(f"[Coupon: {code}] Validated, discount {discount}.")
    return CouponQuote(
        code=coupon["code"],
        discount_type=coupon.get("discount_type") or "fixed",
        discount_value=value,
        discount_amount=discount,
    )
