# tests/test_database.py

"""Tests for the shared SQLite engine."""

import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pricewatch.errors import PersistenceError
from pricewatch.storage.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
)


class TestTimestamps(unittest.TestCase):
    """Round-trip and ordering of stored timestamps."""

    def test_naive_treated_as_utc(self) -> None:
        """Naive datetimes are stored as UTC."""
        raw = to_db_timestamp(datetime(2026, 1, 1, 12, 0))
        self.assertEqual(raw, "2026-01-01T12:00:00.000000+00:00")

    def test_aware_converted_to_utc(self) -> None:
        """Offsets are normalised to UTC."""
        plus_two = timezone(timedelta(hours=2))
        raw = to_db_timestamp(datetime(2026, 1, 1, 14, 0, tzinfo=plus_two))
        self.assertEqual(raw, "2026-01-01T12:00:00.000000+00:00")

    def test_lexicographic_order_matches_time(self) -> None:
        """Fixed-width strings sort chronologically."""
        early = to_db_timestamp(datetime(2026, 1, 1, 9, 0, 0, 5))
        late = to_db_timestamp(datetime(2026, 1, 1, 10, 0))
        self.assertLess(early, late)

    def test_parse_none(self) -> None:
        """A NULL column parses to None."""
        self.assertIsNone(from_db_timestamp(None))


class TestDatabase(unittest.TestCase):
    """Transaction semantics of Database."""

    def setUp(self) -> None:
        """Open a fresh database in a temp directory."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")

    def tearDown(self) -> None:
        """Close the database."""
        self.db.close()

    def _insert_product(self, asin: str) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO products (asin, title, current_price, "
                "original_price) VALUES (?, 'x', 1.0, 1.0)",
                (asin,),
            )

    def _count(self) -> int:
        return self.db.query("SELECT COUNT(*) FROM products")[0][0]

    def test_schema_created(self) -> None:
        """All three tables exist after opening."""
        names = {
            r[0]
            for r in self.db.query(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
        }
        self.assertTrue(
            {"products", "price_history", "subscriptions"} <= names
        )

    def test_commit_on_success(self) -> None:
        """A clean block commits."""
        self._insert_product("B1")
        self.assertEqual(self._count(), 1)

    def test_rollback_on_error(self) -> None:
        """An exception inside the block discards its writes."""
        with self.assertRaises(RuntimeError):
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO products (asin, title, current_price, "
                    "original_price) VALUES ('B1', 'x', 1.0, 1.0)"
                )
                raise RuntimeError("boom")
        self.assertEqual(self._count(), 0)

    def test_sqlite_error_becomes_persistence_error(self) -> None:
        """Constraint violations surface as PersistenceError."""
        self._insert_product("B1")
        with self.assertRaises(PersistenceError):
            self._insert_product("B1")
        self.assertEqual(self._count(), 1)

    def test_nested_transactions_join_outer(self) -> None:
        """An inner block's writes roll back with the outer block."""
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self._insert_product("B1")
                self._insert_product("B2")
                raise RuntimeError("boom")
        self.assertEqual(self._count(), 0)

    def test_inner_failure_rolls_back_everything(self) -> None:
        """A failing nested write aborts the whole transaction."""
        self._insert_product("B1")
        with self.assertRaises(PersistenceError):
            with self.db.transaction():
                self._insert_product("B2")
                self._insert_product("B1")
        self.assertEqual(self._count(), 1)

    def test_connection_per_thread(self) -> None:
        """Worker threads get their own connection."""
        seen: list[object] = []

        def grab() -> None:
            seen.append(self.db.connection())

        worker = threading.Thread(target=grab)
        worker.start()
        worker.join()
        self.assertIsNot(seen[0], self.db.connection())

    def test_bad_query_raises_persistence_error(self) -> None:
        """Read errors are translated too."""
        with self.assertRaises(PersistenceError):
            self.db.query("SELECT * FROM missing_table")

    def test_reopens_after_close(self) -> None:
        """Closing drops connections; the next call reconnects."""
        self._insert_product("B1")
        self.db.close()
        self.assertEqual(self._count(), 1)


if __name__ == "__main__":
    unittest.main()
