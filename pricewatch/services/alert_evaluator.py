# pricewatch/services/alert_evaluator.py

"""Decides which subscribers hear about a price change."""

import logging
from collections.abc import Iterable

from pricewatch.config.settings import Settings
from pricewatch.models.notification import (
    REASON_BOTH,
    REASON_PRICE_DROP,
    REASON_TARGET_PRICE,
    NotificationIntent,
)
from pricewatch.models.product import Product
from pricewatch.models.subscription import TrackedSubscription

logger = logging.getLogger("pricewatch.alerts")


def percent_drop(product: Product) -> float:
    """Drop of the current price against the listed (original) price.

    Unrounded; 0.0 when the original price is not positive.
    """
    if product.original_price <= 0:
        return 0.0
    return (
        (product.original_price - product.current_price)
        / product.original_price
        * 100
    )


class AlertEvaluator:
    """Stateless alert rule: percentage threshold OR target price.

    There is no memory of earlier alerts.  The orchestrator only calls
    :meth:`evaluate` after a price change, so an unchanged price never
    re-alerts, but a further drop that still clears the threshold does.
    """

    def __init__(
        self, default_threshold: float | None = None,
    ) -> None:
        self.default_threshold = (
            default_threshold
            if default_threshold is not None
            else Settings.DEFAULT_ALERT_THRESHOLD
        )

    def _reason(
        self, product: Product, sub: TrackedSubscription, drop: float,
    ) -> str | None:
        threshold = (
            sub.alert_threshold_percent
            if sub.alert_threshold_percent is not None
            else self.default_threshold
        )
        meets_threshold = drop >= threshold
        meets_target = (
            sub.target_price is not None
            and product.current_price <= sub.target_price
        )
        if meets_threshold and meets_target:
            return REASON_BOTH
        if meets_threshold:
            return REASON_PRICE_DROP
        if meets_target:
            return REASON_TARGET_PRICE
        return None

    def evaluate(
        self,
        product: Product,
        subscriptions: Iterable[TrackedSubscription],
    ) -> list[NotificationIntent]:
        """Return one intent per enabled subscription whose rule fires."""
        drop = percent_drop(product)
        intents: list[NotificationIntent] = []
        for sub in subscriptions:
            if not sub.alert_enabled:
                continue
            reason = self._reason(product, sub, drop)
            if reason is None:
                continue
            logger.info(
                "Alert for %s on %s: %.1f%% drop (%s)",
                sub.user_ref,
                product.asin,
                drop,
                reason,
            )
            intents.append(
                NotificationIntent(
                    user_ref=sub.user_ref,
                    product=product,
                    percent_drop=drop,
                    reason=reason,
                )
            )
        return intents
