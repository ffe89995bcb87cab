"""
Storage collaborators behind the register.

Backend is the narrow interface the catalog and the transaction processor talk
to. Rows use storage column names (cost_price, sell_price, is_photocopy, ...).
Every method raises BackendError when the store cannot complete the call.

MemoryBackend keeps everything in process and serves sessions without a
signed-in user. The persistent implementation lives in db.backend.
"""

from __future__ import annotations

import itertools
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol

from core.errors import BackendError

Row = Dict[str, Any]

INVOICE_PREFIX = {False: "INV", True: "MAN"}


def format_invoice_number(is_manual: bool, day: datetime, seq: int) -> str:
    """INV-20250101-0001 for automatic sales, MAN-... for manual entries."""
    return f"{INVOICE_PREFIX[bool(is_manual)]}-{day:%Y%m%d}-{seq:04d}"


class Backend(Protocol):
    owner_id: Optional[str]

    async def fetch_products(self) -> List[Row]:
        """All products visible to the owner, ordered by name."""

    async def insert_product(self, row: Mapping[str, Any]) -> Row:
        """Insert a product row; returns it with its generated id."""

    async def update_product(self, product_id: str, columns: Mapping[str, Any]) -> None:
        """Set only the given columns on one product."""

    async def generate_invoice_number(self, is_manual: bool) -> str:
        """Next unique invoice number for the automatic or manual sequence."""

    async def insert_receipt(self, row: Mapping[str, Any]) -> Row:
        """Insert a receipt; returns it with generated id and created_at."""

    async def insert_receipt_items(self, rows: List[Mapping[str, Any]]) -> None:
        """Insert the line items of one receipt."""

    async def fetch_receipts(self) -> List[Row]:
        """
        Owner's receipts, newest first. Each row carries an "items" list of
        receipt_items rows, each joined with its "product" row (or None).
        """


class MemoryBackend:
    """Backend kept in plain dicts; gone when the process exits."""

    def __init__(self, owner_id: Optional[str] = None) -> None:
        self.owner_id = owner_id
        self._products: Dict[str, Row] = {}
        self._receipts: Dict[str, Row] = {}
        self._receipt_items: List[Row] = []
        self._invoice_seq: Dict[str, itertools.count] = {}

    async def fetch_products(self) -> List[Row]:
        rows = [dict(r) for r in self._products.values()]
        rows.sort(key=lambda r: r["name"])
        return rows

    async def insert_product(self, row: Mapping[str, Any]) -> Row:
        if not row.get("name"):
            raise BackendError("product name is required")
        product_id = str(uuid.uuid4())
        stored = {
            "id": product_id,
            "name": row["name"],
            "cost_price": row.get("cost_price", 0),
            "sell_price": row.get("sell_price", 0),
            "stock": row.get("stock", 0),
            "barcode": row.get("barcode"),
            "category": row.get("category"),
            "is_photocopy": bool(row.get("is_photocopy", False)),
            "user_id": self.owner_id,
        }
        self._products[product_id] = stored
        return dict(stored)

    async def update_product(self, product_id: str, columns: Mapping[str, Any]) -> None:
        if product_id not in self._products:
            raise BackendError(f"product {product_id} not found")
        self._products[product_id].update(columns)

    async def generate_invoice_number(self, is_manual: bool) -> str:
        now = datetime.now()
        key = f"{INVOICE_PREFIX[bool(is_manual)]}{now:%Y%m%d}"
        seq = self._invoice_seq.setdefault(key, itertools.count(1))
        return format_invoice_number(is_manual, now, next(seq))

    async def insert_receipt(self, row: Mapping[str, Any]) -> Row:
        receipt_id = str(uuid.uuid4())
        stored = dict(row, id=receipt_id, created_at=datetime.now())
        self._receipts[receipt_id] = stored
        return dict(stored)

    async def insert_receipt_items(self, rows: List[Mapping[str, Any]]) -> None:
        for row in rows:
            if row.get("receipt_id") not in self._receipts:
                raise BackendError("receipt_items.receipt_id has no receipt")
        self._receipt_items.extend(dict(r) for r in rows)

    async def fetch_receipts(self) -> List[Row]:
        result = []
        for receipt in self._receipts.values():
            items = []
            for item in self._receipt_items:
                if item["receipt_id"] != receipt["id"]:
                    continue
                product = self._products.get(item["product_id"])
                items.append(dict(item, product=dict(product) if product else None))
            result.append(dict(receipt, items=items))
        result.sort(key=lambda r: r["created_at"], reverse=True)
        return result
