import os
import sys
import tempfile
import unittest
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.backend import MemoryBackend  # noqa: E402
from core.catalog import CatalogStore, row_to_product, to_columns  # noqa: E402
from core.errors import BackendError  # noqa: E402
from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.backend import SqliteBackend  # noqa: E402


class Recorder:
    def __init__(self):
        self.messages = []

    def __call__(self, message, severity="information", **_kwargs):
        self.messages.append((message, severity))


class FlakyBackend(MemoryBackend):
    broken = False
    malformed = False

    async def fetch_products(self):
        if self.broken:
            raise BackendError("offline")
        if self.malformed:
            return [{"id": "x", "name": "A", "cost_price": 0, "sell_price": 0, "stock": []}]
        return await super().fetch_products()


class ColumnMappingTestCase(unittest.TestCase):
    def test_only_given_fields(self):
        self.assertEqual(to_columns({"stock": 3}), {"stock": 3})
        self.assertEqual(to_columns({}), {})

    def test_unknown_field(self):
        with self.assertRaises(ValueError):
            to_columns({"stock": 1, "colour": "red"})

    def test_row_coercion(self):
        p = row_to_product(
            {
                "id": 7,
                "name": "Lem",
                "cost_price": 1500,
                "sell_price": "2500.5",
                "stock": "4",
                "is_photocopy": 1,
            }
        )
        self.assertEqual(p.id, "7")
        self.assertEqual(p.sell_price, Decimal("2500.5"))
        self.assertEqual(p.stock, 4)
        self.assertIs(p.is_photocopy, True)
        self.assertIsNone(p.barcode)


class CatalogStoreTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.backend = FlakyBackend()
        self.notify = Recorder()
        self.catalog = CatalogStore(self.backend, self.notify)

    async def test_create_then_load(self):
        ok = await self.catalog.create(
            {"name": "Fotokopi", "sell_price": 250, "cost_price": 100, "is_photocopy": True}
        )
        self.assertTrue(ok)
        self.assertEqual(self.catalog.products, ())
        self.assertIn(("Product added", "information"), self.notify.messages)

        self.assertTrue(await self.catalog.load())
        (p,) = self.catalog.products
        self.assertEqual(p.name, "Fotokopi")
        self.assertTrue(p.is_photocopy)

    async def test_create_failure(self):
        self.assertFalse(await self.catalog.create({"sell_price": 1}))
        self.assertIn(("Failed to add product", "error"), self.notify.messages)

    async def test_update_patches_cache(self):
        row = await self.backend.insert_product(
            {"name": "Map", "cost_price": 2000, "sell_price": 3500, "stock": 5}
        )
        await self.catalog.load()

        self.assertTrue(await self.catalog.update(row["id"], sell_price="4000"))
        p = self.catalog.get(row["id"])
        self.assertEqual(p.sell_price, Decimal(4000))
        self.assertEqual(p.stock, 5)
        self.assertIn(("Product updated", "information"), self.notify.messages)

        self.assertTrue(await self.catalog.update(row["id"]))  # nothing to write

    async def test_update_unknown_product(self):
        self.assertFalse(await self.catalog.update("missing", stock=1))
        self.assertIn(("Failed to update product", "error"), self.notify.messages)

    async def test_failed_load_keeps_cache(self):
        await self.backend.insert_product({"name": "Map"})
        await self.catalog.load()
        self.backend.broken = True

        self.assertFalse(await self.catalog.load())
        self.assertEqual(len(self.catalog.products), 1)
        self.assertFalse(self.catalog.loading)
        self.assertIn(("Failed to load products", "error"), self.notify.messages)

    async def test_malformed_row_keeps_cache(self):
        await self.backend.insert_product({"name": "Map"})
        await self.catalog.load()
        self.backend.malformed = True

        self.assertFalse(await self.catalog.load())
        self.assertEqual([p.name for p in self.catalog.products], ["Map"])
        self.assertFalse(self.catalog.loading)
        self.assertIn(("Failed to load products", "error"), self.notify.messages)

    async def test_search_and_barcode(self):
        await self.backend.insert_product({"name": "Kertas A4", "barcode": "8991", "category": "ATK"})
        await self.backend.insert_product({"name": "Pulpen", "barcode": "8992", "category": "ATK"})
        await self.backend.insert_product({"name": "Fotokopi", "category": "Jasa"})
        await self.catalog.load()

        self.assertEqual([p.name for p in self.catalog.search("atk")], ["Kertas A4", "Pulpen"])
        self.assertEqual([p.name for p in self.catalog.search("KERTAS")], ["Kertas A4"])
        self.assertEqual(len(self.catalog.search("  ")), 3)
        self.assertEqual(self.catalog.find_by_barcode(" 8992 ").name, "Pulpen")
        self.assertIsNone(self.catalog.find_by_barcode(""))
        self.assertIsNone(self.catalog.find_by_barcode("0000"))


class SqliteCatalogTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database._initialized = False

    def tearDown(self):
        self.temp_dir.cleanup()

    async def asyncSetUp(self):
        uid = await crud.create_user("kasir@example.com", "kasir", "hash")
        self.backend = SqliteBackend(uid)
        self.catalog = CatalogStore(self.backend)

    async def test_partial_update_leaves_other_columns(self):
        await self.catalog.create(
            {
                "name": "Buku Tulis",
                "cost_price": Decimal("4000"),
                "sell_price": Decimal("6000"),
                "stock": 20,
                "barcode": "899100",
            }
        )
        await self.catalog.load()
        (p,) = self.catalog.products

        self.assertTrue(await self.catalog.update(p.id, stock=17))

        fresh = CatalogStore(self.backend)
        await fresh.load()
        (q,) = fresh.products
        self.assertEqual(q.stock, 17)
        self.assertEqual(q.name, "Buku Tulis")
        self.assertEqual(q.cost_price, Decimal(4000))
        self.assertEqual(q.sell_price, Decimal(6000))
        self.assertEqual(q.barcode, "899100")

    async def test_update_unknown_id_fails(self):
        self.assertFalse(await self.catalog.update("missing", stock=1))


if __name__ == "__main__":
    unittest.main()
