from __future__ import annotations

import dataclasses
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from core.backend import Backend, Row
from core.errors import BackendError
from core.models import Product
from utils.logger import get_logger

_logger = get_logger(__name__)

Notifier = Callable[..., None]

# application field -> storage column
FIELD_TO_COLUMN: Dict[str, str] = {
    "name": "name",
    "cost_price": "cost_price",
    "sell_price": "sell_price",
    "stock": "stock",
    "barcode": "barcode",
    "category": "category",
    "is_photocopy": "is_photocopy",
}


def _silent(*_args, **_kwargs) -> None:
    return None


def row_to_product(row: Mapping[str, Any]) -> Product:
    return Product(
        id=str(row["id"]),
        name=row["name"],
        cost_price=Decimal(str(row["cost_price"] or 0)),
        sell_price=Decimal(str(row["sell_price"] or 0)),
        stock=int(row["stock"] or 0),
        barcode=row.get("barcode"),
        category=row.get("category"),
        is_photocopy=bool(row.get("is_photocopy")),
    )


def to_columns(fields: Mapping[str, Any]) -> Row:
    """
    Translate application field names to storage columns.
    Only keys present in fields are emitted; unknown keys are a ValueError.
    """
    unknown = set(fields) - set(FIELD_TO_COLUMN)
    if unknown:
        raise ValueError(f"Unknown product field(s): {', '.join(sorted(unknown))}")
    return {FIELD_TO_COLUMN[k]: v for k, v in fields.items()}


class CatalogStore:
    """
    Cached product list in front of a Backend.

    load() replaces the cache, create() relies on the next load() to show the
    new row, update() patches both the backend and the cached entry.
    """

    def __init__(self, backend: Backend, notify: Notifier = _silent) -> None:
        self._backend = backend
        self._notify = notify
        self._products: Tuple[Product, ...] = ()
        self.loading = False

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    def get(self, product_id: str) -> Optional[Product]:
        for p in self._products:
            if p.id == product_id:
                return p
        return None

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        code = (barcode or "").strip()
        if not code:
            return None
        for p in self._products:
            if p.barcode == code:
                return p
        return None

    def search(self, text: str) -> Tuple[Product, ...]:
        """Case-insensitive substring match over name, barcode and category."""
        needle = (text or "").strip().lower()
        if not needle:
            return self._products
        return tuple(
            p
            for p in self._products
            if needle in p.name.lower()
            or needle in (p.barcode or "").lower()
            or needle in (p.category or "").lower()
        )

    async def load(self) -> bool:
        self.loading = True
        try:
            rows = await self._backend.fetch_products()
            products = tuple(row_to_product(r) for r in rows)
        except Exception:
            _logger.exception("Error loading products")
            self._notify("Failed to load products", severity="error")
            return False
        finally:
            self.loading = False

        self._products = products
        _logger.debug(f"Loaded {len(products)} products")
        return True

    async def create(self, fields: Mapping[str, Any]) -> bool:
        """Insert a product (fields without id). The cache is left for load()."""
        columns = to_columns(fields)
        try:
            await self._backend.insert_product(columns)
        except BackendError:
            _logger.exception("Error adding product")
            self._notify("Failed to add product", severity="error")
            return False
        self._notify("Product added")
        return True

    async def update(self, product_id: str, quiet: bool = False, **changes: Any) -> bool:
        """
        Write only the given fields, leaving every other column untouched.
        quiet suppresses the success toast (used for bulk stock updates).
        """
        columns = to_columns(changes)
        if not columns:
            return True
        try:
            await self._backend.update_product(product_id, columns)
        except BackendError:
            _logger.exception(f"Error updating product {product_id}")
            self._notify("Failed to update product", severity="error")
            return False

        self._products = tuple(
            row_to_product({**dataclasses.asdict(p), **columns})
            if p.id == product_id
            else p
            for p in self._products
        )
        if not quiet:
            self._notify("Product updated")
        return True
