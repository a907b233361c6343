# pricewatch/catalog/rainforest_catalog.py

"""Catalog source backed by the Rainforest Amazon product API."""

from typing import Any

from pricewatch.catalog.base_catalog import CatalogQuote, CatalogSource
from pricewatch.errors import MalformedResponseError, ProductNotFoundError


def _dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning ``None`` at the first missing key."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class RainforestCatalog(CatalogSource):
    """Quotes Amazon prices through the Rainforest ``product`` request."""

    def __init__(self, api_key: str | None = None) -> None:
        super().__init__("rainforest")
        self.api_key = (
            api_key
            if api_key is not None
            else self.settings.CATALOG_API_KEY
        )
        if not self.api_key:
            self.logger.warning(
                "RAINFOREST_API_KEY is not configured; "
                "catalog requests will be rejected"
            )

    def _product_params(self, asin: str) -> dict[str, str]:
        """Build the query string for a product detail request."""
        return {
            "api_key": self.api_key,
            "type": "product",
            "amazon_domain": self.settings.AMAZON_DOMAIN,
            "asin": asin,
        }

    def parse_product(
        self, asin: str, payload: dict[str, Any],
    ) -> CatalogQuote:
        """Map a Rainforest product payload to a :class:`CatalogQuote`."""
        product = payload.get("product")
        if not isinstance(product, dict) or not product:
            raise ProductNotFoundError(asin, "no product in response")

        current = self.extract_price(
            _dig(product, "buybox_winner", "price", "value")
        )
        if current is None or current <= 0:
            self.logger.error(
                "[rainforest] No usable buybox price for %s: %.200r",
                asin,
                product.get("buybox_winner"),
            )
            raise MalformedResponseError(asin, "missing buybox price")

        before = self.extract_price(
            _dig(product, "price", "before_price", "value")
        )
        original = before if before and before > 0 else current

        return CatalogQuote(
            asin=str(product.get("asin") or asin),
            title=str(product.get("title") or ""),
            current_price=current,
            original_price=original,
            currency=str(
                _dig(product, "buybox_winner", "price", "currency")
                or self.settings.DEFAULT_CURRENCY
            ),
            availability=str(
                _dig(product, "buybox_winner", "availability", "type")
                or ""
            ),
            product_url=str(product.get("link") or ""),
            image_url=str(_dig(product, "main_image", "link") or ""),
        )

    def fetch_price(self, asin: str) -> CatalogQuote:
        """Fetch and parse the current offer for *asin*."""
        self.logger.info("[rainforest] Fetching %s", asin)
        payload = self._fetch_json(
            asin,
            self.settings.CATALOG_API_URL,
            self._product_params(asin),
        )
        return self.parse_product(asin, payload)
