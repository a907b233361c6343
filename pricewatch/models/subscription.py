# pricewatch/models/subscription.py

"""A user's standing interest in a product's price."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TrackedSubscription:
    """One (user, product) tracking request with its alert settings.

    ``alert_threshold_percent`` of ``None`` means "use the global
    default"; ``target_price`` of ``None`` disables the target check.
    """

    user_ref: str
    product_id: int
    target_price: float | None = None
    alert_enabled: bool = True
    alert_threshold_percent: float | None = 10.0
    created_at: datetime | None = None
    notes: str = ""
    id: int | None = None
