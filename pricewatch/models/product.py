# pricewatch/models/product.py

"""Tracked catalog product model."""

import math
from dataclasses import dataclass
from datetime import datetime


def compute_discount_percent(
    current_price: float, original_price: float,
) -> int:
    """Whole-number discount of *current_price* against *original_price*.

    Half percentages round up (12.5 → 13).  Returns 0 when there is no
    discount or the original price is not positive.
    """
    if original_price <= 0 or original_price <= current_price:
        return 0
    ratio = (original_price - current_price) / original_price * 100
    return int(math.floor(ratio + 0.5))


@dataclass
class Product:
    """A catalog item monitored on behalf of at least one subscriber."""

    asin: str
    title: str
    current_price: float
    original_price: float
    currency: str = "USD"
    discount_percent: int = 0
    last_updated_at: datetime | None = None
    availability: str = ""
    product_url: str = ""
    image_url: str = ""
    id: int | None = None
