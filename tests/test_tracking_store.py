# tests/test_tracking_store.py

"""Tests for subscription storage and the tracked-products query."""

import tempfile
import unittest
from pathlib import Path

from pricewatch.errors import DuplicateSubscriptionError, PersistenceError
from pricewatch.models.product import Product
from pricewatch.models.subscription import TrackedSubscription
from pricewatch.storage.database import Database
from pricewatch.storage.product_store import ProductStore
from pricewatch.storage.tracking_store import TrackingStore


class TestTrackingStore(unittest.TestCase):
    """TrackingStore tests."""

    def setUp(self) -> None:
        """Create a fresh temp DB with three products."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")
        self.store = TrackingStore(self.db)
        products = ProductStore(self.db)
        self.pids: list[int] = []
        for asin in ("B1", "B2", "B3"):
            p = products.create(Product(asin, asin, 10.0, 10.0))
            assert p.id is not None
            self.pids.append(p.id)

    def tearDown(self) -> None:
        """Close the database."""
        self.db.close()

    def _track(
        self, user: str, pid: int, enabled: bool = True,
    ) -> TrackedSubscription:
        return self.store.add_subscription(TrackedSubscription(
            user_ref=user, product_id=pid, alert_enabled=enabled,
        ))

    def test_add_assigns_id_and_timestamp(self) -> None:
        """Stored subscriptions carry an id and creation time."""
        sub = self._track("alice", self.pids[0])
        self.assertIsNotNone(sub.id)
        self.assertIsNotNone(sub.created_at)

    def test_default_threshold_is_ten(self) -> None:
        """New subscriptions alert at a 10% drop by default."""
        self._track("alice", self.pids[0])
        stored = self.store.subscriptions_for(self.pids[0])[0]
        self.assertEqual(stored.alert_threshold_percent, 10.0)
        self.assertIsNone(stored.target_price)

    def test_duplicate_rejected(self) -> None:
        """A user tracks a given product at most once."""
        self._track("alice", self.pids[0])
        with self.assertRaises(DuplicateSubscriptionError):
            self._track("alice", self.pids[0])

    def test_unknown_product_rejected(self) -> None:
        """Subscriptions must reference a stored product."""
        with self.assertRaises(PersistenceError):
            self._track("alice", 9999)

    def test_distinct_ids_enabled_only(self) -> None:
        """Only products with an enabled subscription are refreshed."""
        self._track("alice", self.pids[0])
        self._track("bob", self.pids[0])
        self._track("alice", self.pids[1], enabled=False)
        self._track("carol", self.pids[2])
        self.assertEqual(
            self.store.distinct_tracked_product_ids(),
            [self.pids[0], self.pids[2]],
        )

    def test_distinct_ids_empty(self) -> None:
        """No subscriptions, nothing to refresh."""
        self.assertEqual(self.store.distinct_tracked_product_ids(), [])

    def test_subscriptions_for_filters_disabled(self) -> None:
        """Disabled subscriptions are hidden unless asked for."""
        self._track("alice", self.pids[0])
        self._track("bob", self.pids[0], enabled=False)
        enabled = self.store.subscriptions_for(self.pids[0])
        everyone = self.store.subscriptions_for(
            self.pids[0], enabled_only=False,
        )
        self.assertEqual([s.user_ref for s in enabled], ["alice"])
        self.assertEqual(len(everyone), 2)

    def test_remove_subscription(self) -> None:
        """Removing reports whether anything was deleted."""
        self._track("alice", self.pids[0])
        self.assertTrue(self.store.remove_subscription("alice", self.pids[0]))
        self.assertFalse(self.store.remove_subscription("alice", self.pids[0]))
        self.assertEqual(self.store.subscriptions_for(self.pids[0]), [])

    def test_subscriptions_of_user_newest_first(self) -> None:
        """A user's subscriptions come back newest first."""
        self._track("alice", self.pids[0])
        self._track("bob", self.pids[1])
        self._track("alice", self.pids[2])
        subs = self.store.subscriptions_of_user("alice")
        self.assertEqual(
            [s.product_id for s in subs], [self.pids[2], self.pids[0]],
        )
        self.assertEqual(self.store.subscriptions_of_user("nobody"), [])

    def test_update_changes_only_given_fields(self) -> None:
        """Fields not passed keep their stored values."""
        self.store.add_subscription(TrackedSubscription(
            user_ref="alice",
            product_id=self.pids[0],
            target_price=8.0,
            notes="kitchen",
        ))
        updated = self.store.update_subscription(
            "alice", self.pids[0], alert_threshold_percent=25.0,
        )
        assert updated is not None
        self.assertEqual(updated.alert_threshold_percent, 25.0)
        self.assertEqual(updated.target_price, 8.0)
        self.assertEqual(updated.notes, "kitchen")
        self.assertTrue(updated.alert_enabled)

    def test_update_can_clear_target(self) -> None:
        """Passing target_price=None removes the target."""
        self.store.add_subscription(TrackedSubscription(
            user_ref="alice", product_id=self.pids[0], target_price=8.0,
        ))
        updated = self.store.update_subscription(
            "alice", self.pids[0], target_price=None,
        )
        assert updated is not None
        self.assertIsNone(updated.target_price)

    def test_disabling_stops_refresh(self) -> None:
        """A disabled subscription no longer selects its product."""
        self._track("alice", self.pids[0])
        self.store.update_subscription(
            "alice", self.pids[0], alert_enabled=False,
        )
        self.assertEqual(self.store.distinct_tracked_product_ids(), [])
        self.store.update_subscription(
            "alice", self.pids[0], alert_enabled=True,
        )
        self.assertEqual(
            self.store.distinct_tracked_product_ids(), [self.pids[0]],
        )

    def test_update_missing_subscription(self) -> None:
        """Updating something the user does not track returns None."""
        self.assertIsNone(
            self.store.update_subscription("alice", self.pids[0], notes="x")
        )

    def test_update_rejects_unknown_fields(self) -> None:
        """Only alert settings can be changed."""
        self._track("alice", self.pids[0])
        with self.assertRaises(ValueError):
            self.store.update_subscription(
                "alice", self.pids[0], product_id=self.pids[1],
            )

    def test_tracked_product_cannot_be_deleted(self) -> None:
        """Products referenced by a subscription are protected."""
        self._track("alice", self.pids[0])
        with self.assertRaises(PersistenceError):
            with self.db.transaction() as conn:
                conn.execute(
                    "DELETE FROM products WHERE id = ?", (self.pids[0],),
                )


if __name__ == "__main__":
    unittest.main()
