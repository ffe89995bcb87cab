from __future__ import annotations

import sqlite3
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Mapping, Optional

import db.crud as crud
from core.backend import INVOICE_PREFIX, format_invoice_number
from core.errors import BackendError
from utils.logger import get_logger

_logger = get_logger(__name__)


def _storage_call(func):
    """Re-raise sqlite failures as BackendError."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except sqlite3.Error as e:
            _logger.debug(f"{func.__name__} failed: {e!r}")
            raise BackendError(f"{func.__name__}: {e}") from e

    return wrapper


class SqliteBackend:
    """Persistent backend scoped to one signed-in user."""

    def __init__(self, owner_id: Optional[str]) -> None:
        self.owner_id = owner_id

    @_storage_call
    async def fetch_products(self) -> List[Dict[str, Any]]:
        return await crud.list_products(self.owner_id)

    @_storage_call
    async def insert_product(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        if not row.get("name"):
            raise BackendError("product name is required")
        return await crud.insert_product(self.owner_id, row)

    @_storage_call
    async def update_product(self, product_id: str, columns: Mapping[str, Any]) -> None:
        updated = await crud.update_product(self.owner_id, product_id, columns)
        if columns and not updated:
            raise BackendError(f"product {product_id} not found")

    @_storage_call
    async def generate_invoice_number(self, is_manual: bool) -> str:
        now = datetime.now()
        seq = await crud.next_invoice_seq(INVOICE_PREFIX[bool(is_manual)], now)
        return format_invoice_number(is_manual, now, seq)

    @_storage_call
    async def insert_receipt(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return await crud.insert_receipt(dict(row, user_id=self.owner_id))

    @_storage_call
    async def insert_receipt_items(self, rows: List[Mapping[str, Any]]) -> None:
        await crud.insert_receipt_items(rows)

    @_storage_call
    async def fetch_receipts(self) -> List[Dict[str, Any]]:
        return await crud.list_receipts(self.owner_id)
