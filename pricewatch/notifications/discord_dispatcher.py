# pricewatch/notifications/discord_dispatcher.py

"""Discord webhook transport for price alerts."""

from typing import Any

from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.models.product import Product
from pricewatch.notifications.base_dispatcher import NotificationDispatcher

_EMBED_COLOUR = 0x2ECC71


class DiscordWebhookDispatcher(NotificationDispatcher):
    """Posts one embed per alert to a Discord channel webhook."""

    def __init__(self, webhook_url: str | None = None) -> None:
        super().__init__("discord")
        self.webhook_url = webhook_url or Settings.DISCORD_WEBHOOK_URL
        self.session = curl_requests.Session()
        self._timeout: int = Settings.REQUEST_TIMEOUT

    def _payload(
        self,
        user_ref: str,
        product: Product,
        percent_drop: float,
        reason: str,
    ) -> dict[str, Any]:
        embed: dict[str, Any] = {
            "title": (product.title or product.asin)[:256],
            "description": self.format_message(
                product, percent_drop, reason,
            ),
            "color": _EMBED_COLOUR,
            "fields": [
                {
                    "name": "Price",
                    "value": (
                        f"{product.currency} "
                        f"{product.current_price:,.2f}"
                    ),
                    "inline": True,
                },
                {
                    "name": "Drop",
                    "value": f"{percent_drop:.1f}%",
                    "inline": True,
                },
                {"name": "Subscriber", "value": user_ref, "inline": True},
            ],
        }
        if product.product_url:
            embed["url"] = product.product_url
        if product.image_url:
            embed["thumbnail"] = {"url": product.image_url}
        return {"embeds": [embed]}

    def send(
        self,
        user_ref: str,
        product: Product,
        percent_drop: float,
        reason: str,
    ) -> bool:
        if not self.webhook_url:
            self.logger.error(
                "Discord webhook URL not configured; "
                "dropping alert for %s",
                user_ref,
            )
            return False
        try:
            resp = self.session.post(
                self.webhook_url,
                json=self._payload(
                    user_ref, product, percent_drop, reason,
                ),
                timeout=self._timeout,
            )
        except Exception as exc:
            self.logger.error(
                "Discord webhook request failed for %s: %s",
                user_ref,
                exc,
                exc_info=True,
            )
            return False
        # Discord answers 204 No Content on success
        if resp.status_code not in (200, 204):
            self.logger.error(
                "Discord webhook rejected alert for %s: HTTP %d",
                user_ref,
                resp.status_code,
            )
            return False
        self.logger.info(
            "Sent Discord alert to %s for %s",
            user_ref,
            product.asin,
        )
        return True
