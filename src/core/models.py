# provide dataclass models for the register

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    cost_price: Decimal
    sell_price: Decimal
    stock: int
    barcode: Optional[str] = None
    category: Optional[str] = None
    is_photocopy: bool = False


@dataclass(frozen=True)
class CartItem:
    product: Product
    quantity: int
    final_price: Optional[Decimal] = None  # overrides product.sell_price

    @property
    def effective_price(self) -> Decimal:
        if self.final_price is not None:
            return self.final_price
        return self.product.sell_price

    @property
    def line_total(self) -> Decimal:
        return self.effective_price * self.quantity


@dataclass(frozen=True)
class Receipt:
    id: str
    items: Tuple[CartItem, ...]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    profit: Decimal
    timestamp: datetime
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None


@dataclass(frozen=True)
class TransactionFailure:
    """
    Returned instead of a Receipt when a commit did not complete.

    stage is one of "invoice", "receipt", "items", "stock". Nothing that already
    reached the backend is undone; receipt_id and unreconciled describe what is
    left behind so somebody can fix stock by hand.
    """

    stage: str
    reason: str
    receipt_id: Optional[str] = None
    receipt_number: Optional[str] = None
    unreconciled: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def needs_reconciliation(self) -> bool:
        return self.receipt_id is not None
