import os
import sys
import unittest
from datetime import datetime
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.models import CartItem, Product, Receipt  # noqa: E402
from core.pricing import (  # noqa: E402
    NBSP,
    compute_profit,
    compute_subtotal,
    compute_total,
    format_price,
)
from utils.pure import generate_markdown_table, receipt_markdown  # noqa: E402


def make_product(pid="p1", sell=10000, cost=6000, stock=10, **kw) -> Product:
    return Product(
        id=pid,
        name=kw.pop("name", f"Product {pid}"),
        cost_price=Decimal(cost),
        sell_price=Decimal(sell),
        stock=stock,
        **kw,
    )


class FormatPriceTestCase(unittest.TestCase):
    def test_thousands_use_dots(self):
        self.assertEqual(format_price(20000), f"Rp{NBSP}20.000")
        self.assertEqual(format_price(Decimal("1234567")), f"Rp{NBSP}1.234.567")
        self.assertEqual(format_price(0), f"Rp{NBSP}0")
        self.assertEqual(format_price(999), f"Rp{NBSP}999")

    def test_rounds_half_up_to_whole_rupiah(self):
        self.assertEqual(format_price(Decimal("1499.5")), f"Rp{NBSP}1.500")
        self.assertEqual(format_price("2500.49"), f"Rp{NBSP}2.500")
        self.assertEqual(format_price(0.5), f"Rp{NBSP}1")

    def test_negative_amounts(self):
        self.assertEqual(format_price(-5000), f"-Rp{NBSP}5.000")


class TotalsTestCase(unittest.TestCase):
    def setUp(self):
        self.items = [
            CartItem(make_product("a"), 2),
            CartItem(make_product("b", sell=5000, cost=4000), 1, Decimal(4500)),
        ]

    def test_subtotal_uses_override(self):
        self.assertEqual(compute_subtotal(self.items), Decimal(24500))

    def test_profit_against_cost(self):
        # (10000 - 6000) * 2 + (4500 - 4000) * 1
        self.assertEqual(compute_profit(self.items), Decimal(8500))

    def test_total_is_not_clamped(self):
        self.assertEqual(compute_total(self.items, 500), Decimal(24000))
        self.assertEqual(compute_total(self.items, 30000), Decimal(-5500))

    def test_zero_override_is_honored(self):
        item = CartItem(make_product("c"), 3, Decimal(0))
        self.assertEqual(item.effective_price, Decimal(0))
        self.assertEqual(compute_subtotal([item]), Decimal(0))
        self.assertEqual(compute_profit([item]), Decimal(-18000))

    def test_empty(self):
        self.assertEqual(compute_subtotal([]), Decimal(0))
        self.assertEqual(compute_profit([]), Decimal(0))


class MarkdownTestCase(unittest.TestCase):
    def test_table_with_headers(self):
        md = generate_markdown_table(["A", "B"], [[1, "x|y"]], ["l", "r"])
        self.assertEqual(md.splitlines(), ["| A | B |", "| :--- | ---: |", "| 1 | x\\|y |"])

    def test_first_row_becomes_header(self):
        md = generate_markdown_table(None, [["User", "alice"], ["Email", "a@b.c"]])
        lines = md.splitlines()
        self.assertEqual(lines[0], "| User | alice |")
        self.assertEqual(lines[1], "| :---: | :---: |")
        self.assertEqual(len(lines), 3)

    def test_empty_and_mismatched(self):
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])

    def test_receipt_markdown(self):
        item = CartItem(make_product("a", name="Kertas A4"), 2)
        receipt = Receipt(
            id="r1",
            items=(item,),
            subtotal=Decimal(20000),
            discount=Decimal(0),
            total=Decimal(20000),
            profit=Decimal(8000),
            timestamp=datetime(2025, 3, 1, 10, 15),
            payment_method="QRIS",
            receipt_number="INV-20250301-0001",
        )
        md = receipt_markdown(receipt, format_price)
        self.assertIn("### Receipt INV-20250301-0001", md)
        self.assertIn("01/03/2025 10:15", md)
        self.assertIn("| Kertas A4 | 2 |", md)
        self.assertIn(f"**Total:** Rp{NBSP}20.000", md)
        self.assertIn("**Payment:** QRIS", md)


if __name__ == "__main__":
    unittest.main()
