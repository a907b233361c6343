# pricewatch/storage/product_store.py

"""Persistence for tracked product records."""

import logging
import sqlite3
from dataclasses import replace

from pricewatch.errors import PersistenceError
from pricewatch.models.product import Product
from pricewatch.storage.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
)

logger = logging.getLogger("pricewatch.products")

_COLUMNS = (
    "id, asin, title, current_price, original_price, currency, "
    "discount_percent, availability, product_url, image_url, "
    "last_updated_at"
)


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        asin=row["asin"],
        title=row["title"],
        current_price=row["current_price"],
        original_price=row["original_price"],
        currency=row["currency"],
        discount_percent=row["discount_percent"],
        availability=row["availability"],
        product_url=row["product_url"],
        image_url=row["image_url"],
        last_updated_at=from_db_timestamp(row["last_updated_at"]),
    )


class ProductStore:
    """Reads and writes the ``products`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, product_id: int) -> Product | None:
        """Return the product with *product_id*, or ``None``."""
        rows = self._db.query(
            f"SELECT {_COLUMNS} FROM products WHERE id = ?",
            (product_id,),
        )
        return _row_to_product(rows[0]) if rows else None

    def get_by_asin(self, asin: str) -> Product | None:
        """Return the product with external identifier *asin*."""
        rows = self._db.query(
            f"SELECT {_COLUMNS} FROM products WHERE asin = ?",
            (asin,),
        )
        return _row_to_product(rows[0]) if rows else None

    def list_all(self) -> list[Product]:
        """Return every stored product ordered by title."""
        rows = self._db.query(
            f"SELECT {_COLUMNS} FROM products ORDER BY title",
        )
        return [_row_to_product(r) for r in rows]

    def create(self, product: Product) -> Product:
        """Insert *product* and return a copy carrying its new id."""
        with self._db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO products (asin, title, current_price, "
                "original_price, currency, discount_percent, "
                "availability, product_url, image_url, last_updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    product.asin,
                    product.title,
                    product.current_price,
                    product.original_price,
                    product.currency,
                    product.discount_percent,
                    product.availability,
                    product.product_url,
                    product.image_url,
                    self._ts(product),
                ),
            )
            new_id = cur.lastrowid
        logger.info(
            "Created product %s (%s) at %s %.2f",
            product.asin,
            new_id,
            product.currency,
            product.current_price,
        )
        return replace(product, id=new_id)

    def save(self, product: Product) -> None:
        """Persist the mutable price fields of an existing product."""
        if product.id is None:
            msg = f"Cannot save unsaved product {product.asin}"
            raise PersistenceError(msg)
        with self._db.transaction() as conn:
            cur = conn.execute(
                "UPDATE products SET title = ?, current_price = ?, "
                "original_price = ?, currency = ?, "
                "discount_percent = ?, availability = ?, "
                "product_url = ?, image_url = ?, last_updated_at = ? "
                "WHERE id = ?",
                (
                    product.title,
                    product.current_price,
                    product.original_price,
                    product.currency,
                    product.discount_percent,
                    product.availability,
                    product.product_url,
                    product.image_url,
                    self._ts(product),
                    product.id,
                ),
            )
            if cur.rowcount != 1:
                msg = f"Product {product.id} vanished during update"
                raise PersistenceError(msg)

    @staticmethod
    def _ts(product: Product) -> str | None:
        if product.last_updated_at is None:
            return None
        return to_db_timestamp(product.last_updated_at)
