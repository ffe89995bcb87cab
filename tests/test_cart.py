import os
import sys
import unittest
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.cart import CartStore  # noqa: E402
from core.models import Product  # noqa: E402


def make_product(pid="p1", sell=10000, cost=6000, stock=10) -> Product:
    return Product(pid, f"Product {pid}", Decimal(cost), Decimal(sell), stock)


class CartStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.cart = CartStore()
        self.calls = 0
        self.cart.subscribe(self._on_change)

    def _on_change(self):
        self.calls += 1

    def test_add_merges_duplicates(self):
        p = make_product()
        self.cart.add(p, 2)
        self.cart.add(p, 3)
        self.assertEqual(len(self.cart), 1)
        self.assertEqual(self.cart.get("p1").quantity, 5)
        self.assertEqual(self.calls, 2)

    def test_order_is_insertion_order(self):
        self.cart.add(make_product("b"))
        self.cart.add(make_product("a"))
        self.cart.add(make_product("b"))
        self.assertEqual([i.product.id for i in self.cart.items], ["b", "a"])

    def test_re_add_replaces_override(self):
        p = make_product()
        self.cart.add(p, 1, 8000)
        self.assertEqual(self.cart.get("p1").final_price, Decimal(8000))

        self.cart.add(p, 1, Decimal(7500))
        self.assertEqual(self.cart.get("p1").final_price, Decimal(7500))
        self.assertEqual(self.cart.get("p1").quantity, 2)

        # no override given: back to the catalog price
        self.cart.add(p, 1)
        self.assertIsNone(self.cart.get("p1").final_price)
        self.assertEqual(self.cart.subtotal, Decimal(30000))

    def test_non_positive_quantity_removes(self):
        self.cart.add(make_product("a"), 2)
        self.cart.add(make_product("b"), 1)
        self.cart.set_quantity("a", 0)
        self.assertIsNone(self.cart.get("a"))
        self.cart.set_quantity("b", -3)
        self.assertTrue(self.cart.is_empty)

    def test_add_negative_merge_removes(self):
        p = make_product()
        self.cart.add(p, 2)
        self.cart.add(p, -2)
        self.assertIsNone(self.cart.get("p1"))

    def test_new_entry_with_zero_quantity_ignored(self):
        self.cart.add(make_product(), 0)
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(self.calls, 0)

    def test_absent_ids_are_noops(self):
        self.cart.add(make_product("a"))
        self.calls = 0
        self.cart.set_quantity("zzz", 4)
        self.cart.remove("zzz")
        self.assertEqual(self.calls, 0)
        self.assertEqual(len(self.cart), 1)

    def test_set_quantity_keeps_position(self):
        self.cart.add(make_product("a"))
        self.cart.add(make_product("b"))
        self.cart.set_quantity("a", 7, 9000)
        self.assertEqual([i.product.id for i in self.cart], ["a", "b"])
        self.assertEqual(self.cart.get("a").quantity, 7)
        self.assertEqual(self.cart.get("a").effective_price, Decimal(9000))

    def test_snapshot_is_detached(self):
        self.cart.add(make_product("a"))
        snap = self.cart.snapshot()
        self.cart.add(make_product("b"))
        self.cart.clear()
        self.assertEqual([i.product.id for i in snap], ["a"])

    def test_clear(self):
        self.cart.clear()
        self.assertEqual(self.calls, 0)
        self.cart.add(make_product())
        self.cart.clear()
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(self.calls, 2)

    def test_unsubscribe_and_failing_listener(self):
        def broken():
            raise RuntimeError("boom")

        unsubscribe = self.cart.subscribe(broken)
        self.cart.add(make_product())  # listener error is logged, not raised
        unsubscribe()
        unsubscribe()
        self.cart.clear()
        self.assertEqual(self.calls, 2)


if __name__ == "__main__":
    unittest.main()
