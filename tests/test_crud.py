import os
import sys
import tempfile
import unittest
from datetime import datetime
from decimal import Decimal

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.errors import BackendError  # noqa: E402
from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.backend import SqliteBackend  # noqa: E402


class SqliteTestCase(unittest.IsolatedAsyncioTestCase):
    """Points the DB to a temporary file and forces schema creation."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    async def asyncSetUp(self):
        async with db_database.connect() as conn:
            cur = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table';"
            )
            await cur.fetchall()
            await cur.close()
        self.uid = await crud.create_user("alice@example.com", "alice", "hash")

    def tearDown(self):
        self.temp_dir.cleanup()


class CrudTestCase(SqliteTestCase):
    # ---------- Users ----------

    async def test_user_lookup(self):
        user = await crud.get_user_by_email("alice@example.com")
        self.assertEqual(user["id"], self.uid)
        self.assertEqual(user["username"], "alice")

        # email and username columns are case-insensitive
        self.assertEqual(await crud.lookup_email("ALICE"), "alice@example.com")
        self.assertEqual(
            await crud.lookup_email("Alice@Example.com"), "alice@example.com"
        )
        self.assertIsNone(await crud.lookup_email("bob"))

        self.assertTrue(await crud.username_or_email_taken("x@example.com", "alice"))
        self.assertTrue(await crud.username_or_email_taken("alice@example.com", "x"))
        self.assertFalse(await crud.username_or_email_taken("bob@example.com", "bob"))

    async def test_password_reset_token(self):
        self.assertIsNone(await crud.create_password_reset("nobody@example.com"))
        token = await crud.create_password_reset("alice@example.com")
        self.assertTrue(token)

    # ---------- Products ----------

    async def test_insert_list_and_update_products(self):
        await crud.insert_product(
            self.uid, {"name": "Pulpen", "cost_price": 1500, "sell_price": 3000, "stock": 40}
        )
        row = await crud.insert_product(
            self.uid,
            {"name": "Buku Tulis", "cost_price": 4000, "sell_price": 6000, "is_photocopy": False},
        )

        products = await crud.list_products(self.uid)
        self.assertEqual([p["name"] for p in products], ["Buku Tulis", "Pulpen"])
        self.assertIs(products[0]["is_photocopy"], False)
        self.assertEqual(products[0]["stock"], 0)

        updated = await crud.update_product(self.uid, row["id"], {"stock": 12})
        self.assertEqual(updated, 1)
        got = await crud.get_product(row["id"])
        self.assertEqual(got["stock"], 12)
        self.assertEqual(Decimal(str(got["sell_price"])), Decimal("6000"))

        # another owner cannot touch the row
        self.assertEqual(await crud.update_product("someone", row["id"], {"stock": 1}), 0)
        self.assertIsNone(await crud.get_product("missing"))

        with self.assertRaises(ValueError):
            await crud.update_product(self.uid, row["id"], {"user_id": "x"})

    async def test_products_are_scoped_to_owner(self):
        other = await crud.create_user("bob@example.com", "bob", "hash")
        await crud.insert_product(self.uid, {"name": "Map"})
        await crud.insert_product(other, {"name": "Lem"})
        self.assertEqual([p["name"] for p in await crud.list_products(self.uid)], ["Map"])
        self.assertEqual([p["name"] for p in await crud.list_products(other)], ["Lem"])

    # ---------- Invoices & receipts ----------

    async def test_invoice_counters(self):
        day = datetime(2025, 3, 1, 9, 30)
        self.assertEqual(await crud.next_invoice_seq("INV", day), 1)
        self.assertEqual(await crud.next_invoice_seq("INV", day), 2)
        # separate sequences per prefix and per day
        self.assertEqual(await crud.next_invoice_seq("MAN", day), 1)
        self.assertEqual(await crud.next_invoice_seq("INV", datetime(2025, 3, 2)), 1)

    async def test_receipt_with_items_and_deleted_product(self):
        product = await crud.insert_product(
            self.uid, {"name": "Fotokopi", "cost_price": 100, "sell_price": 250}
        )
        receipt = await crud.insert_receipt(
            {
                "user_id": self.uid,
                "receipt_number": "INV-20250301-0001",
                "subtotal": Decimal("500"),
                "discount": Decimal("0"),
                "total": Decimal("500"),
                "profit": Decimal("300"),
                "payment_method": "Cash",
            }
        )
        self.assertTrue(receipt["id"])
        self.assertTrue(receipt["created_at"])

        await crud.insert_receipt_items(
            [
                {
                    "receipt_id": receipt["id"],
                    "product_id": product["id"],
                    "product_name": "Fotokopi",
                    "quantity": 2,
                    "sell_price": Decimal("250"),
                    "cost_price": Decimal("100"),
                    "final_price": Decimal("250"),
                }
            ]
        )

        receipts = await crud.list_receipts(self.uid)
        self.assertEqual(len(receipts), 1)
        items = receipts[0]["items"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["quantity"], 2)
        self.assertEqual(items[0]["product"]["name"], "Fotokopi")

        async with db_database.connect() as conn:
            await conn.execute("DELETE FROM products WHERE id = ?;", (product["id"],))
            await conn.commit()

        items = (await crud.list_receipts(self.uid))[0]["items"]
        self.assertIsNone(items[0]["product"])
        self.assertIsNone(items[0]["product_id"])
        self.assertEqual(items[0]["product_name"], "Fotokopi")


class SqliteBackendTestCase(SqliteTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.backend = SqliteBackend(self.uid)

    async def test_update_missing_product_raises(self):
        with self.assertRaises(BackendError):
            await self.backend.update_product("missing", {"stock": 1})

    async def test_insert_without_name_raises(self):
        with self.assertRaises(BackendError):
            await self.backend.insert_product({"sell_price": 10})

    async def test_invoice_numbers(self):
        today = datetime.now().strftime("%Y%m%d")
        first = await self.backend.generate_invoice_number(False)
        second = await self.backend.generate_invoice_number(False)
        manual = await self.backend.generate_invoice_number(True)
        self.assertEqual(first, f"INV-{today}-0001")
        self.assertEqual(second, f"INV-{today}-0002")
        self.assertEqual(manual, f"MAN-{today}-0001")

    async def test_items_for_unknown_receipt_raise(self):
        with self.assertRaises(BackendError):
            await self.backend.insert_receipt_items(
                [
                    {
                        "receipt_id": "nope",
                        "product_id": None,
                        "product_name": "X",
                        "quantity": 1,
                        "sell_price": 1,
                        "cost_price": 1,
                        "final_price": 1,
                    }
                ]
            )

    async def test_receipt_gets_owner(self):
        await self.backend.insert_receipt(
            {
                "receipt_number": "INV-20250301-0009",
                "subtotal": 0,
                "discount": 0,
                "total": 0,
                "profit": 0,
            }
        )
        rows = await self.backend.fetch_receipts()
        self.assertEqual(rows[0]["user_id"], self.uid)
        self.assertEqual(rows[0]["items"], [])


if __name__ == "__main__":
    unittest.main()
