# pricewatch/models/price_history_entry.py

"""Immutable price observation model for the history ledger."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PriceHistoryEntry:
    """A single price observation for a product at a point in time."""

    id: int
    product_id: int
    price: float
    currency: str
    discount_percent: int
    observed_at: datetime
    is_lowest_price: bool = False
