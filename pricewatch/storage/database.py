# pricewatch/storage/database.py

"""SQLite engine shared by the product, history and tracking stores."""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pricewatch.config.settings import Settings
from pricewatch.errors import PersistenceError

logger = logging.getLogger("pricewatch.database")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    asin             TEXT    NOT NULL UNIQUE,
    title            TEXT    NOT NULL,
    current_price    REAL    NOT NULL,
    original_price   REAL    NOT NULL,
    currency         TEXT    NOT NULL DEFAULT 'USD',
    discount_percent INTEGER NOT NULL DEFAULT 0,
    availability     TEXT    NOT NULL DEFAULT '',
    product_url      TEXT    NOT NULL DEFAULT '',
    image_url        TEXT    NOT NULL DEFAULT '',
    last_updated_at  TEXT
);

CREATE TABLE IF NOT EXISTS price_history (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id       INTEGER NOT NULL
                     REFERENCES products(id) ON DELETE RESTRICT,
    price            REAL    NOT NULL,
    currency         TEXT    NOT NULL DEFAULT 'USD',
    discount_percent INTEGER NOT NULL DEFAULT 0,
    observed_at      TEXT    NOT NULL,
    is_lowest_price  INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_history_product_date
    ON price_history(product_id, observed_at);

CREATE UNIQUE INDEX IF NOT EXISTS idx_history_single_lowest
    ON price_history(product_id) WHERE is_lowest_price = 1;

CREATE TABLE IF NOT EXISTS subscriptions (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    user_ref                TEXT    NOT NULL,
    product_id              INTEGER NOT NULL
                            REFERENCES products(id) ON DELETE RESTRICT,
    target_price            REAL,
    alert_enabled           INTEGER NOT NULL DEFAULT 1,
    alert_threshold_percent REAL,
    created_at              TEXT    NOT NULL,
    notes                   TEXT    NOT NULL DEFAULT '',
    UNIQUE (user_ref, product_id)
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_product
    ON subscriptions(product_id, alert_enabled);
"""


def to_db_timestamp(value: datetime) -> str:
    """Serialise *value* as a fixed-width UTC ISO string.

    Naive datetimes are taken to be UTC.  The fixed width keeps
    lexicographic order equal to chronological order in SQL.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(
        timespec="microseconds",
    )


def from_db_timestamp(raw: str | None) -> datetime | None:
    """Parse a timestamp written by :func:`to_db_timestamp`."""
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Database:
    """Thread-aware SQLite handle.

    Each thread gets its own connection (worker threads from
    ``asyncio.to_thread`` included).  Writes go through
    :meth:`transaction`, which opens a ``BEGIN IMMEDIATE`` transaction
    on the outermost call; nested calls on the same thread join it.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        self.path = db_path or Settings.DB_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._registry_lock = threading.Lock()
        try:
            self.connection().executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Could not initialise schema at {self.path}: {exc}"
            ) from exc
        logger.debug("Database opened at %s", self.path)

    def connection(self) -> sqlite3.Connection:
        """Return the calling thread's connection, opening it if needed."""
        conn: sqlite3.Connection | None = getattr(
            self._local, "conn", None,
        )
        if conn is not None:
            return conn
        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=Settings.DB_BUSY_TIMEOUT,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Database unavailable at {self.path}: {exc}"
            ) from exc
        self._local.conn = conn
        self._local.depth = 0
        with self._registry_lock:
            self._connections.append(conn)
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically; roll back on any exception.

        ``sqlite3.Error`` raised inside the block is re-raised as
        :class:`PersistenceError`.
        """
        conn = self.connection()
        depth: int = self._local.depth
        if depth == 0:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise PersistenceError(
                    f"Could not begin transaction: {exc}"
                ) from exc
        self._local.depth = depth + 1
        try:
            yield conn
        except sqlite3.Error as exc:
            self._local.depth = depth
            if depth == 0:
                self._rollback(conn)
            raise PersistenceError(str(exc)) from exc
        except BaseException:
            self._local.depth = depth
            if depth == 0:
                self._rollback(conn)
            raise
        self._local.depth = depth
        if depth == 0:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise PersistenceError(
                    f"Commit failed: {exc}"
                ) from exc

    def query(
        self, sql: str, params: tuple[Any, ...] = (),
    ) -> list[sqlite3.Row]:
        """Run a read-only statement and return all rows."""
        try:
            return self.connection().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc

    def close(self) -> None:
        """Close every connection opened by any thread."""
        with self._registry_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.warning("Rollback failed", exc_info=True)
