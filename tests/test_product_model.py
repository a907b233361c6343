# tests/test_product_model.py

"""Tests for the Product dataclass and discount arithmetic."""

import unittest

from pricewatch.models.product import Product, compute_discount_percent


class TestComputeDiscountPercent(unittest.TestCase):
    """Whole-percent discount derived from current vs original price."""

    def test_simple_discount(self) -> None:
        """100 → 85 is a 15% discount."""
        self.assertEqual(compute_discount_percent(85.0, 100.0), 15)

    def test_rounds_to_nearest(self) -> None:
        """Fractions round to the nearest whole percent."""
        self.assertEqual(compute_discount_percent(66.0, 99.0), 33)
        self.assertEqual(compute_discount_percent(29.99, 39.99), 25)

    def test_half_rounds_up(self) -> None:
        """12.5% becomes 13, not banker's-rounded 12."""
        self.assertEqual(compute_discount_percent(87.5, 100.0), 13)

    def test_no_discount_when_equal(self) -> None:
        """Equal prices mean no discount."""
        self.assertEqual(compute_discount_percent(50.0, 50.0), 0)

    def test_no_discount_when_price_rose(self) -> None:
        """A price above the original is not a negative discount."""
        self.assertEqual(compute_discount_percent(120.0, 100.0), 0)

    def test_zero_original_price(self) -> None:
        """A missing original price yields zero."""
        self.assertEqual(compute_discount_percent(10.0, 0.0), 0)


class TestProductModel(unittest.TestCase):
    """Product dataclass unit tests."""

    def test_defaults(self) -> None:
        """Optional fields default to expected values."""
        product = Product(
            asin="B000TEST01",
            title="Kettle",
            current_price=30.0,
            original_price=30.0,
        )
        self.assertEqual(product.currency, "USD")
        self.assertEqual(product.discount_percent, 0)
        self.assertIsNone(product.last_updated_at)
        self.assertIsNone(product.id)
        self.assertEqual(product.availability, "")

    def test_equality(self) -> None:
        """Two products with identical fields are equal."""
        a = Product("B1", "A", 10.0, 12.0)
        b = Product("B1", "A", 10.0, 12.0)
        self.assertEqual(a, b)

    def test_inequality_different_price(self) -> None:
        """Products with different prices are not equal."""
        a = Product("B1", "A", 10.0, 12.0)
        b = Product("B1", "A", 11.0, 12.0)
        self.assertNotEqual(a, b)


if __name__ == "__main__":
    unittest.main()
