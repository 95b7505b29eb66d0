"""
order_numbers.py — Human-readable Order Numbers

Numbers look like `HS-20260101-1234`: store prefix, UTC date, four random
digits. There is no central counter. Uniqueness is guarded by the unique
constraint on `orders.order_number`; a duplicate makes the header insert fail
and the customer may simply resubmit.
"""

import os
import random
from datetime import datetime, timezone
from typing import Callable, Optional

ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "HS")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderNumberGenerator:
    """
    Date-scoped random order number strategy.

    Args:
        prefix (str): Store prefix.
        clock (callable): Returns the current datetime; the UTC date is used.
        rng (random.Random): Source of the four-digit suffix.
    """

    def __init__(self, prefix: str = ORDER_NUMBER_PREFIX,
                 clock: Callable[[], datetime] = utc_now,
                 rng: Optional[random.Random] = None):
        self.prefix = prefix
        self.clock = clock
        self.rng = rng or random.SystemRandom()

    def __call__(self) -> str:
        now = self.clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        suffix = self.rng.randrange(10000)
        return f"{self.prefix}-{now:%Y%m%d}-{suffix:04d}"
