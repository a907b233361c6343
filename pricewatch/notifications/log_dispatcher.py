# pricewatch/notifications/log_dispatcher.py

"""Dispatcher that records alerts in the run log."""

from pricewatch.models.product import Product
from pricewatch.notifications.base_dispatcher import NotificationDispatcher


class LogDispatcher(NotificationDispatcher):
    """Writes each alert to the log; used when no transport is set up."""

    def __init__(self) -> None:
        super().__init__("log")

    def send(
        self,
        user_ref: str,
        product: Product,
        percent_drop: float,
        reason: str,
    ) -> bool:
        self.logger.info(
            "ALERT for %s: %s",
            user_ref,
            self.format_message(product, percent_drop, reason),
        )
        return True
