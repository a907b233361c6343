# pricewatch/storage/tracking_store.py

"""Read side of user subscriptions, plus the operator write path."""

import logging
import sqlite3
from dataclasses import replace
from typing import Any

from pricewatch.errors import DuplicateSubscriptionError, PersistenceError
from pricewatch.models.subscription import TrackedSubscription
from pricewatch.storage.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
    utc_now,
)

logger = logging.getLogger("pricewatch.tracking")

_COLUMNS = (
    "id, user_ref, product_id, target_price, alert_enabled, "
    "alert_threshold_percent, created_at, notes"
)

_UPDATABLE = frozenset({
    "target_price",
    "alert_enabled",
    "alert_threshold_percent",
    "notes",
})


def _row_to_subscription(row: sqlite3.Row) -> TrackedSubscription:
    return TrackedSubscription(
        id=row["id"],
        user_ref=row["user_ref"],
        product_id=row["product_id"],
        target_price=row["target_price"],
        alert_enabled=bool(row["alert_enabled"]),
        alert_threshold_percent=row["alert_threshold_percent"],
        created_at=from_db_timestamp(row["created_at"]),
        notes=row["notes"],
    )


class TrackingStore:
    """Subscriptions table access used by the monitoring cycle."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def distinct_tracked_product_ids(self) -> list[int]:
        """Products referenced by at least one enabled subscription."""
        rows = self._db.query(
            "SELECT DISTINCT product_id FROM subscriptions "
            "WHERE alert_enabled = 1 ORDER BY product_id",
        )
        return [r[0] for r in rows]

    def subscriptions_for(
        self,
        product_id: int,
        enabled_only: bool = True,
    ) -> list[TrackedSubscription]:
        """Return subscriptions on *product_id*, oldest first."""
        sql = f"SELECT {_COLUMNS} FROM subscriptions WHERE product_id = ?"
        if enabled_only:
            sql += " AND alert_enabled = 1"
        rows = self._db.query(
            sql + " ORDER BY created_at, id", (product_id,),
        )
        return [_row_to_subscription(r) for r in rows]

    def add_subscription(
        self, subscription: TrackedSubscription,
    ) -> TrackedSubscription:
        """Store a new subscription and return it with id and timestamp.

        Raises :class:`DuplicateSubscriptionError` if the user already
        tracks the product.
        """
        created_at = subscription.created_at or utc_now()
        try:
            with self._db.transaction() as conn:
                cur = conn.execute(
                    "INSERT INTO subscriptions (user_ref, product_id, "
                    "target_price, alert_enabled, "
                    "alert_threshold_percent, created_at, notes) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        subscription.user_ref,
                        subscription.product_id,
                        subscription.target_price,
                        int(subscription.alert_enabled),
                        subscription.alert_threshold_percent,
                        to_db_timestamp(created_at),
                        subscription.notes,
                    ),
                )
                new_id = cur.lastrowid
        except PersistenceError as exc:
            if isinstance(exc.__cause__, sqlite3.IntegrityError) and (
                "UNIQUE" in str(exc.__cause__)
            ):
                raise DuplicateSubscriptionError(
                    subscription.user_ref, subscription.product_id,
                ) from exc
            raise
        logger.info(
            "User %s now tracks product %d",
            subscription.user_ref,
            subscription.product_id,
        )
        return replace(subscription, id=new_id, created_at=created_at)

    def remove_subscription(
        self, user_ref: str, product_id: int,
    ) -> bool:
        """Delete a subscription. Returns whether one existed."""
        with self._db.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM subscriptions "
                "WHERE user_ref = ? AND product_id = ?",
                (user_ref, product_id),
            )
            removed = cur.rowcount > 0
        if removed:
            logger.info(
                "User %s stopped tracking product %d",
                user_ref,
                product_id,
            )
        return removed

    def subscriptions_of_user(
        self, user_ref: str,
    ) -> list[TrackedSubscription]:
        """Return every subscription held by *user_ref*, newest first."""
        rows = self._db.query(
            f"SELECT {_COLUMNS} FROM subscriptions WHERE user_ref = ? "
            "ORDER BY created_at DESC, id DESC",
            (user_ref,),
        )
        return [_row_to_subscription(r) for r in rows]

    def update_subscription(
        self, user_ref: str, product_id: int, **changes: Any,
    ) -> TrackedSubscription | None:
        """Change alert settings of an existing subscription.

        Accepts any of ``target_price``, ``alert_enabled``,
        ``alert_threshold_percent`` and ``notes``; fields not passed are
        left as they are.  Returns the updated subscription, or ``None``
        if the user does not track the product.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            msg = f"Cannot update subscription fields: {sorted(unknown)}"
            raise ValueError(msg)
        if "alert_enabled" in changes:
            changes["alert_enabled"] = int(bool(changes["alert_enabled"]))

        with self._db.transaction() as conn:
            if changes:
                assignments = ", ".join(f"{name} = ?" for name in changes)
                conn.execute(
                    f"UPDATE subscriptions SET {assignments} "
                    "WHERE user_ref = ? AND product_id = ?",
                    (*changes.values(), user_ref, product_id),
                )
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM subscriptions "
                "WHERE user_ref = ? AND product_id = ?",
                (user_ref, product_id),
            ).fetchone()
        if row is None:
            return None
        logger.info(
            "User %s updated product %d: %s",
            user_ref,
            product_id,
            ", ".join(sorted(changes)) or "no changes",
        )
        return _row_to_subscription(row)
