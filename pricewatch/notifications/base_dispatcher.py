# pricewatch/notifications/base_dispatcher.py

"""Abstract notification transport."""

import logging
from abc import ABC, abstractmethod

from pricewatch.models.product import Product


class NotificationDispatcher(ABC):
    """Delivers a price alert to one user."""

    def __init__(self, transport_name: str) -> None:
        self.transport_name = transport_name
        self.logger = logging.getLogger(
            f"pricewatch.notify.{transport_name}"
        )

    @staticmethod
    def format_message(
        product: Product, percent_drop: float, reason: str,
    ) -> str:
        """Render a one-line human readable alert."""
        return (
            f"{product.title or product.asin} is now "
            f"{product.currency} {product.current_price:,.2f} "
            f"({round(percent_drop)}% below "
            f"{product.currency} {product.original_price:,.2f}) "
            f"[{reason}]"
        )

    @abstractmethod
    def send(
        self,
        user_ref: str,
        product: Product,
        percent_drop: float,
        reason: str,
    ) -> bool:
        """Deliver the alert. Returns ``True`` on success."""
        ...
