# pricewatch/models/notification.py

"""Notification intent produced by the alert evaluator."""

from dataclasses import dataclass

from pricewatch.models.product import Product

REASON_PRICE_DROP = "price_drop"
REASON_TARGET_PRICE = "target_price"
REASON_BOTH = "price_drop+target_price"


@dataclass(frozen=True)
class NotificationIntent:
    """A decision to tell *user_ref* about a price change on *product*."""

    user_ref: str
    product: Product
    percent_drop: float
    reason: str
