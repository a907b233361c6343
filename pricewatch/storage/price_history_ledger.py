# pricewatch/storage/price_history_ledger.py

"""Append-only price history with a single lowest-price marker."""

import logging
import sqlite3
import threading
from datetime import datetime, timedelta

from pricewatch.config.settings import Settings
from pricewatch.models.price_history_entry import PriceHistoryEntry
from pricewatch.storage.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
    utc_now,
)

logger = logging.getLogger("pricewatch.ledger")

_COLUMNS = (
    "id, product_id, price, currency, discount_percent, "
    "observed_at, is_lowest_price"
)


def since_for_period(
    period: str, now: datetime | None = None,
) -> datetime | None:
    """Map a reporting window (``7d``, ``30d``, ``90d``, ``all``) to a cutoff.

    Returns ``None`` for ``all``; unknown periods raise ``ValueError``.
    """
    if period == "all":
        return None
    days = Settings.HISTORY_PERIODS.get(period)
    if days is None:
        valid = ", ".join([*Settings.HISTORY_PERIODS, "all"])
        msg = f"Unknown period {period!r} (expected one of: {valid})"
        raise ValueError(msg)
    return (now or utc_now()) - timedelta(days=days)


def _row_to_entry(row: sqlite3.Row) -> PriceHistoryEntry:
    observed_at = from_db_timestamp(row["observed_at"])
    assert observed_at is not None
    return PriceHistoryEntry(
        id=row["id"],
        product_id=row["product_id"],
        price=row["price"],
        currency=row["currency"],
        discount_percent=row["discount_percent"],
        observed_at=observed_at,
        is_lowest_price=bool(row["is_lowest_price"]),
    )


class PriceHistoryLedger:
    """SQLite-backed ledger of price observations.

    Entries are never updated except for the ``is_lowest_price`` flag.
    Appends and lowest-price recomputation for one product are
    serialised by a per-product lock; different products never contend
    on it.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._locks: dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def product_lock(self, product_id: int) -> threading.RLock:
        """Return the (re-entrant) lock scoped to *product_id*."""
        with self._locks_guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[product_id] = lock
            return lock

    # ── Writing ──────────────────────────────────────────

    def append(
        self,
        product_id: int,
        price: float,
        currency: str,
        discount_percent: int,
        observed_at: datetime,
    ) -> int:
        """Write a new immutable observation and return its id.

        Raises :class:`~pricewatch.errors.PersistenceError` when the
        store is unavailable.
        """
        with self.product_lock(product_id), self._db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO price_history (product_id, price, "
                "currency, discount_percent, observed_at, "
                "is_lowest_price) VALUES (?, ?, ?, ?, ?, 0)",
                (
                    product_id,
                    price,
                    currency,
                    discount_percent,
                    to_db_timestamp(observed_at),
                ),
            )
            entry_id = cur.lastrowid
        assert entry_id is not None
        logger.debug(
            "Appended history entry %d for product %d at %.2f",
            entry_id,
            product_id,
            price,
        )
        return entry_id

    def recompute_lowest(self, product_id: int) -> int | None:
        """Move the lowest-price flag onto the current minimum entry.

        Ties on price go to the earliest observation.  Returns the id of
        the flagged entry, or ``None`` when the product has no history.
        """
        with self.product_lock(product_id), self._db.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM price_history WHERE product_id = ? "
                "ORDER BY price ASC, observed_at ASC, id ASC LIMIT 1",
                (product_id,),
            ).fetchone()
            if row is None:
                return None
            winner: int = row["id"]
            # Clear first: the partial unique index allows one flag.
            conn.execute(
                "UPDATE price_history SET is_lowest_price = 0 "
                "WHERE product_id = ? AND is_lowest_price = 1 "
                "AND id != ?",
                (product_id, winner),
            )
            conn.execute(
                "UPDATE price_history SET is_lowest_price = 1 "
                "WHERE id = ?",
                (winner,),
            )
        logger.debug(
            "Lowest price for product %d is entry %d",
            product_id,
            winner,
        )
        return winner

    # ── Querying ─────────────────────────────────────────

    def history(
        self,
        product_id: int,
        since: datetime | None = None,
    ) -> list[PriceHistoryEntry]:
        """Return observations for a product, oldest first."""
        if since is None:
            rows = self._db.query(
                f"SELECT {_COLUMNS} FROM price_history "
                "WHERE product_id = ? ORDER BY observed_at ASC, id ASC",
                (product_id,),
            )
        else:
            rows = self._db.query(
                f"SELECT {_COLUMNS} FROM price_history "
                "WHERE product_id = ? AND observed_at >= ? "
                "ORDER BY observed_at ASC, id ASC",
                (product_id, to_db_timestamp(since)),
            )
        return [_row_to_entry(r) for r in rows]

    def lowest_entry(
        self, product_id: int,
    ) -> PriceHistoryEntry | None:
        """Return the entry currently flagged as the lowest price."""
        rows = self._db.query(
            f"SELECT {_COLUMNS} FROM price_history "
            "WHERE product_id = ? AND is_lowest_price = 1",
            (product_id,),
        )
        return _row_to_entry(rows[0]) if rows else None

    def summary(
        self, product_id: int,
    ) -> dict[str, object] | None:
        """Compute min / max / avg / latest price for a product."""
        rows = self._db.query(
            "SELECT MIN(price), MAX(price), AVG(price), COUNT(id) "
            "FROM price_history WHERE product_id = ?",
            (product_id,),
        )
        stats = rows[0]
        if stats[3] == 0:
            return None
        latest = self._db.query(
            "SELECT price FROM price_history WHERE product_id = ? "
            "ORDER BY observed_at DESC, id DESC LIMIT 1",
            (product_id,),
        )
        lowest = self.lowest_entry(product_id)
        return {
            "min": stats[0],
            "max": stats[1],
            "avg": round(stats[2], 2),
            "count": stats[3],
            "latest": latest[0][0] if latest else 0.0,
            "lowest_observed_at": (
                lowest.observed_at if lowest else None
            ),
        }
