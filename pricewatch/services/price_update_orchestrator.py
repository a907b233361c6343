# pricewatch/services/price_update_orchestrator.py

"""Runs one monitoring cycle across every tracked product."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from pricewatch.catalog.base_catalog import CatalogQuote, CatalogSource
from pricewatch.config.settings import Settings
from pricewatch.errors import (
    CatalogError,
    PersistenceError,
    TransientFetchError,
)
from pricewatch.models.product import Product, compute_discount_percent
from pricewatch.notifications.base_dispatcher import NotificationDispatcher
from pricewatch.services.alert_evaluator import AlertEvaluator
from pricewatch.storage.database import Database, utc_now
from pricewatch.storage.price_history_ledger import PriceHistoryLedger
from pricewatch.storage.product_store import ProductStore
from pricewatch.storage.tracking_store import TrackingStore

logger = logging.getLogger("pricewatch.orchestrator")

UPDATED = "updated"
SKIPPED = "skipped"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass
class ProductFailure:
    """Why one product could not be refreshed this cycle."""

    product_id: int
    reason: str
    kind: str = "error"
    asin: str = ""


@dataclass
class CycleReport:
    """Outcome of a completed (or aborted) monitoring cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[ProductFailure] = field(
        default_factory=lambda: list[ProductFailure]()
    )
    notifications_sent: int = 0
    notifications_failed: int = 0
    cancelled: bool = False
    aborted: bool = False
    fatal_error: str = ""


class PriceUpdateOrchestrator:
    """Coordinates catalog fetches, ledger writes and alerting.

    Per-product work runs in worker threads under a bounded semaphore.
    One product's failure is recorded in the cycle report and never
    stops the others.
    """

    def __init__(
        self,
        db: Database,
        catalog: CatalogSource,
        dispatcher: NotificationDispatcher,
        evaluator: AlertEvaluator | None = None,
        max_workers: int | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self._db = db
        self.products = ProductStore(db)
        self.ledger = PriceHistoryLedger(db)
        self.tracking = TrackingStore(db)
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.evaluator = evaluator or AlertEvaluator()
        self.max_workers = max(1, max_workers or Settings.MAX_WORKERS)
        self.fetch_timeout = fetch_timeout or Settings.FETCH_TIMEOUT

    # ── Private helpers ──────────────────────────────────

    async def _fetch(self, asin: str) -> CatalogQuote:
        """Fetch a quote, bounding the wait by ``fetch_timeout``.

        A timed-out worker thread is left to finish on its own.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.catalog.fetch_price, asin),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransientFetchError(
                asin, f"timed out after {self.fetch_timeout:.0f}s",
            ) from exc

    def _apply_update(
        self, product: Product, observed_at: datetime,
    ) -> None:
        """Save the product, append history and re-flag the minimum.

        All three writes share one transaction under the product's lock.
        """
        assert product.id is not None
        with self.ledger.product_lock(product.id), self._db.transaction():
            self.products.save(product)
            self.ledger.append(
                product.id,
                product.current_price,
                product.currency,
                product.discount_percent,
                observed_at,
            )
            self.ledger.recompute_lowest(product.id)

    def _record_observation(self, product: Product) -> Product:
        """Insert a brand-new product with its first history entry."""
        with self._db.transaction():
            created = self.products.create(product)
            assert created.id is not None
            self.ledger.append(
                created.id,
                created.current_price,
                created.currency,
                created.discount_percent,
                created.last_updated_at or utc_now(),
            )
            self.ledger.recompute_lowest(created.id)
        return created

    @staticmethod
    def _apply_quote(
        product: Product, quote: CatalogQuote, now: datetime,
    ) -> Product:
        return replace(
            product,
            title=quote.title or product.title,
            current_price=quote.current_price,
            original_price=quote.original_price,
            currency=quote.currency or product.currency,
            discount_percent=compute_discount_percent(
                quote.current_price, quote.original_price,
            ),
            availability=quote.availability,
            product_url=quote.product_url or product.product_url,
            image_url=quote.image_url or product.image_url,
            last_updated_at=now,
        )

    async def _notify(
        self, product: Product, report: CycleReport,
    ) -> None:
        """Evaluate subscribers of a changed product and dispatch alerts."""
        assert product.id is not None
        try:
            subscriptions = await asyncio.to_thread(
                self.tracking.subscriptions_for, product.id,
            )
        except PersistenceError as exc:
            logger.error(
                "Could not load subscribers of %s: %s",
                product.asin,
                exc,
            )
            return

        for intent in self.evaluator.evaluate(product, subscriptions):
            try:
                delivered = await asyncio.to_thread(
                    self.dispatcher.send,
                    intent.user_ref,
                    intent.product,
                    intent.percent_drop,
                    intent.reason,
                )
            except Exception as exc:
                logger.error(
                    "Notification to %s about %s failed: %s",
                    intent.user_ref,
                    product.asin,
                    exc,
                    exc_info=True,
                )
                delivered = False
            if delivered:
                report.notifications_sent += 1
            else:
                report.notifications_failed += 1
                logger.warning(
                    "Notification to %s about %s was not delivered",
                    intent.user_ref,
                    product.asin,
                )

    async def _process_product(
        self, product_id: int, report: CycleReport,
    ) -> str:
        """Refresh one product. Returns its outcome for the report."""
        asin = ""
        try:
            product = await asyncio.to_thread(
                self.products.get, product_id,
            )
            if product is None:
                raise PersistenceError(
                    f"Product {product_id} is tracked but not stored"
                )
            asin = product.asin

            quote = await self._fetch(asin)

            if quote.current_price == product.current_price:
                logger.debug(
                    "Price unchanged for %s (%.2f), skipping update",
                    asin,
                    product.current_price,
                )
                return SKIPPED

            now = utc_now()
            updated = self._apply_quote(product, quote, now)
            await asyncio.to_thread(self._apply_update, updated, now)
        except CatalogError as exc:
            level = logging.WARNING if exc.transient else logging.ERROR
            logger.log(
                level,
                "Fetch failed for product %d (%s): %s",
                product_id,
                exc.kind,
                exc,
            )
            report.errors.append(ProductFailure(
                product_id=product_id,
                reason=str(exc),
                kind=exc.kind,
                asin=asin,
            ))
            return FAILED
        except PersistenceError as exc:
            logger.error(
                "Update abandoned for product %d: %s",
                product_id,
                exc,
            )
            report.errors.append(ProductFailure(
                product_id=product_id,
                reason=str(exc),
                kind=exc.kind,
                asin=asin,
            ))
            return FAILED
        except Exception as exc:
            logger.error(
                "Unexpected error for product %d: %s",
                product_id,
                exc,
                exc_info=True,
            )
            report.errors.append(ProductFailure(
                product_id=product_id,
                reason=str(exc),
                kind="unexpected",
                asin=asin,
            ))
            return FAILED

        logger.info(
            "Updated price for %s: %s %.2f -> %.2f",
            asin,
            updated.currency,
            product.current_price,
            updated.current_price,
        )
        await self._notify(updated, report)
        return UPDATED

    # ── Public API ───────────────────────────────────────

    async def run_cycle(
        self, cancel_event: asyncio.Event | None = None,
    ) -> CycleReport:
        """Refresh every product referenced by an enabled subscription.

        Never raises for per-product problems.  If the tracked set
        cannot be read at all the report comes back with
        ``aborted=True``.  Setting *cancel_event* stops new products
        from starting; products already in flight finish normally.
        """
        report = CycleReport(started_at=utc_now())
        try:
            product_ids = await asyncio.to_thread(
                self.tracking.distinct_tracked_product_ids,
            )
        except Exception as exc:
            logger.error(
                "Cycle aborted: cannot enumerate tracked products: %s",
                exc,
                exc_info=True,
            )
            report.aborted = True
            report.fatal_error = str(exc)
            report.finished_at = utc_now()
            return report

        logger.info(
            "Updating prices for %d tracked products (%d workers)",
            len(product_ids),
            self.max_workers,
        )
        semaphore = asyncio.Semaphore(self.max_workers)

        async def run_one(product_id: int) -> str:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return CANCELLED
                return await self._process_product(product_id, report)

        outcomes = await asyncio.gather(
            *(run_one(pid) for pid in product_ids)
        )
        report.updated = outcomes.count(UPDATED)
        report.skipped = outcomes.count(SKIPPED)
        report.failed = outcomes.count(FAILED)
        report.cancelled = CANCELLED in outcomes
        report.finished_at = utc_now()

        logger.info(
            "Cycle finished: %d updated, %d skipped, %d failed, "
            "%d alerts sent, %d alerts failed%s",
            report.updated,
            report.skipped,
            report.failed,
            report.notifications_sent,
            report.notifications_failed,
            " (cancelled)" if report.cancelled else "",
        )
        return report

    async def register_product(self, asin: str) -> Product:
        """Return the stored product for *asin*, creating it on first fetch.

        Catalog errors propagate to the caller.
        """
        existing = await asyncio.to_thread(self.products.get_by_asin, asin)
        if existing is not None:
            return existing

        quote = await self._fetch(asin)
        now = utc_now()
        product = Product(
            asin=asin,
            title=quote.title,
            current_price=quote.current_price,
            original_price=quote.original_price,
            currency=quote.currency,
            discount_percent=compute_discount_percent(
                quote.current_price, quote.original_price,
            ),
            last_updated_at=now,
            availability=quote.availability,
            product_url=quote.product_url,
            image_url=quote.image_url,
        )
        return await asyncio.to_thread(self._record_observation, product)
