# pricewatch/catalog/base_catalog.py

"""Abstract base class for catalog sources that quote product prices."""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.errors import (
    MalformedResponseError,
    ProductNotFoundError,
    TransientFetchError,
)

# Statuses worth one more attempt inside the same cycle
_RETRYABLE_STATUSES: frozenset[int] = frozenset({
    408, 425, 429, 500, 502, 503, 504,
})


@dataclass
class CatalogQuote:
    """Current price and availability for one product identifier."""

    asin: str
    title: str
    current_price: float
    original_price: float
    currency: str = "USD"
    availability: str = ""
    product_url: str = ""
    image_url: str = ""


class CatalogSource(ABC):
    """Abstract base class for all catalog sources.

    Subclasses implement :meth:`fetch_price` and signal failures with
    the catalog error family: :class:`TransientFetchError`,
    :class:`ProductNotFoundError` or :class:`MalformedResponseError`.
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"pricewatch.catalog.{source_name}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )

    def _fetch_json(
        self,
        asin: str,
        url: str,
        params: dict[str, str],
    ) -> dict[str, Any]:
        """GET a JSON document, retrying transient failures at most once.

        HTTP 404 raises :class:`ProductNotFoundError`; an unparsable or
        non-object body raises :class:`MalformedResponseError`; network
        errors, timeouts, 429 and 5xx raise
        :class:`TransientFetchError` once retries are exhausted.
        """
        attempts = 1 + self.settings.MAX_IMMEDIATE_RETRIES
        last_error = "no attempt made"
        for attempt in range(attempts):
            if attempt:
                time.sleep(self.settings.RETRY_DELAY)
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    headers=self.settings.DEFAULT_HEADERS,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                last_error = f"request error: {exc}"
                self.logger.warning(
                    "[%s] Request error for %s on attempt %d: %s",
                    self.source_name,
                    asin,
                    attempt + 1,
                    exc,
                )
                continue

            if resp.status_code == 200:
                return self._decode(asin, resp)
            if resp.status_code == 404:
                raise ProductNotFoundError(asin, "HTTP 404")

            last_error = f"HTTP {resp.status_code}"
            self.logger.warning(
                "[%s] HTTP %d for %s on attempt %d",
                self.source_name,
                resp.status_code,
                asin,
                attempt + 1,
            )
            if resp.status_code not in _RETRYABLE_STATUSES:
                break

        raise TransientFetchError(asin, last_error)

    def _decode(
        self, asin: str, resp: curl_requests.Response,
    ) -> dict[str, Any]:
        """Parse a response body into a JSON object."""
        try:
            data: Any = resp.json()
        except ValueError as exc:
            self.logger.error(
                "[%s] Invalid JSON for %s: %.200s",
                self.source_name,
                asin,
                resp.text,
            )
            raise MalformedResponseError(
                asin, f"invalid JSON: {exc}",
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                asin, f"expected a JSON object, got {type(data).__name__}",
            )
        return data

    @staticmethod
    def extract_price(value: Any) -> float | None:
        """Coerce a payload price (number or '$1,299.00') to a float."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int | float):
            return float(value) if math.isfinite(value) else None
        if isinstance(value, str):
            cleaned = "".join(
                ch for ch in value if ch.isdigit() or ch == "."
            )
            try:
                return float(cleaned)
            except ValueError:
                return None
        return None

    @abstractmethod
    def fetch_price(self, asin: str) -> CatalogQuote:
        """Return current price data for the product *asin*."""
        ...
