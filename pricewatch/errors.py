# pricewatch/errors.py

"""Exception hierarchy for the monitoring engine.

Every class carries a short ``kind`` tag.  The orchestrator copies it
into the per-product error list of a cycle report so operators can tell
a flaky network apart from a delisted product at a glance.
"""


class PriceWatchError(Exception):
    """Base class for all pricewatch errors."""

    kind: str = "error"


class CatalogError(PriceWatchError):
    """The catalog source could not provide a usable price."""

    kind = "catalog"
    transient: bool = False

    def __init__(self, asin: str, message: str) -> None:
        super().__init__(f"{asin}: {message}")
        self.asin = asin


class TransientFetchError(CatalogError):
    """Timeout, rate limit, or connection failure; retry next cycle."""

    kind = "transient"
    transient = True


class ProductNotFoundError(CatalogError):
    """The catalog does not know this identifier."""

    kind = "not_found"


class MalformedResponseError(CatalogError):
    """The catalog answered, but the payload could not be parsed."""

    kind = "malformed"


class PersistenceError(PriceWatchError):
    """The underlying store is unavailable or rejected a write."""

    kind = "persistence"


class DuplicateSubscriptionError(PriceWatchError):
    """The user already tracks this product."""

    kind = "duplicate"

    def __init__(self, user_ref: str, product_id: int) -> None:
        super().__init__(
            f"User {user_ref!r} already tracks product {product_id}"
        )
        self.user_ref = user_ref
        self.product_id = product_id
