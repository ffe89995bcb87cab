from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Union

from core.backend import Backend
from core.catalog import CatalogStore, Notifier
from core.models import CartItem, Product, Receipt, TransactionFailure
from core.pricing import Amount, compute_profit, compute_subtotal, to_decimal
from utils.logger import get_logger

_logger = get_logger(__name__)

CommitResult = Union[Receipt, TransactionFailure, None]

MANUAL_PAYMENT_METHOD = "Cash"


def _silent(*_args, **_kwargs) -> None:
    return None


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(str(value))
    return datetime.now()


def _item_from_row(row: Mapping[str, Any]) -> CartItem:
    """
    Rebuild a sold line. Name and prices come from the snapshot stored on the
    line; the joined product row only fills in stock and descriptive fields.
    """
    product_row = row.get("product") or {}
    product = Product(
        id=str(row.get("product_id") or ""),
        name=row.get("product_name") or product_row.get("name") or "",
        cost_price=Decimal(str(row.get("cost_price") or 0)),
        sell_price=Decimal(str(row.get("sell_price") or 0)),
        stock=int(product_row.get("stock") or 0),
        barcode=product_row.get("barcode"),
        category=product_row.get("category"),
        is_photocopy=bool(product_row.get("is_photocopy")),
    )
    final_price = row.get("final_price")
    return CartItem(
        product=product,
        quantity=int(row["quantity"]),
        final_price=Decimal(str(final_price)) if final_price is not None else None,
    )


def row_to_receipt(row: Mapping[str, Any]) -> Receipt:
    return Receipt(
        id=str(row["id"]),
        items=tuple(_item_from_row(i) for i in row.get("items") or []),
        subtotal=Decimal(str(row["subtotal"])),
        discount=Decimal(str(row["discount"])),
        total=Decimal(str(row["total"])),
        profit=Decimal(str(row["profit"])),
        timestamp=_as_datetime(row.get("created_at")),
        payment_method=row.get("payment_method"),
        receipt_number=row.get("receipt_number"),
    )


class TransactionProcessor:
    """
    Turns a cart snapshot into a stored receipt.

    The processor never touches the cart; callers clear it once a receipt row
    exists. Steps that already reached the backend are not undone when a later
    step fails, the returned TransactionFailure says what was left behind.
    """

    def __init__(
        self,
        backend: Backend,
        catalog: CatalogStore,
        identity: Optional[str],
        notify: Notifier = _silent,
    ) -> None:
        self._backend = backend
        self._catalog = catalog
        self._identity = identity
        self._notify = notify

    async def commit(
        self,
        cart_snapshot: Sequence[CartItem],
        payment_method: Optional[str] = None,
        discount: Amount = 0,
        is_manual: bool = False,
    ) -> CommitResult:
        if not self._identity or not cart_snapshot:
            return None

        items = tuple(cart_snapshot)
        discount = to_decimal(discount)
        subtotal = compute_subtotal(items)
        total = subtotal - discount
        profit = compute_profit(items)

        stage = "invoice"
        receipt_row = None
        receipt_number = None
        try:
            receipt_number = await self._backend.generate_invoice_number(is_manual)

            stage = "receipt"
            receipt_row = await self._backend.insert_receipt(
                {
                    "user_id": self._identity,
                    "subtotal": subtotal,
                    "discount": discount,
                    "total": total,
                    "profit": profit,
                    "payment_method": payment_method,
                    "receipt_number": receipt_number,
                }
            )

            stage = "items"
            await self._backend.insert_receipt_items(
                [
                    {
                        "receipt_id": receipt_row["id"],
                        "product_id": item.product.id,
                        "product_name": item.product.name,
                        "quantity": item.quantity,
                        "sell_price": item.product.sell_price,
                        "cost_price": item.product.cost_price,
                        "final_price": item.effective_price,
                    }
                    for item in items
                ]
            )
        except Exception as e:
            _logger.exception(f"Error processing transaction at stage '{stage}'")
            self._notify("Failed to process transaction", severity="error")
            return TransactionFailure(
                stage=stage,
                reason=str(e) or type(e).__name__,
                receipt_id=str(receipt_row["id"]) if receipt_row else None,
                receipt_number=receipt_number,
            )

        receipt_id = str(receipt_row["id"])
        unreconciled = await self._decrement_stock(items)
        if unreconciled:
            _logger.error(
                f"Receipt {receipt_number} ({receipt_id}) saved but stock was not "
                f"updated for: {', '.join(unreconciled)}"
            )
            self._notify(
                f"Failed to process transaction: stock not updated for "
                f"receipt {receipt_number}",
                severity="error",
            )
            return TransactionFailure(
                stage="stock",
                reason="stock update failed",
                receipt_id=receipt_id,
                receipt_number=receipt_number,
                unreconciled=tuple(unreconciled),
            )

        self._notify("Transaction saved")
        return Receipt(
            id=receipt_id,
            items=items,
            subtotal=subtotal,
            discount=discount,
            total=total,
            profit=profit,
            timestamp=_as_datetime(receipt_row.get("created_at")),
            payment_method=payment_method,
            receipt_number=receipt_number,
        )

    async def _decrement_stock(self, items: Sequence[CartItem]) -> List[str]:
        """Returns ids of products whose stock could not be written."""
        failed: List[str] = []
        for item in items:
            current = self._catalog.get(item.product.id) or item.product
            new_stock = current.stock - item.quantity
            if new_stock < 0:
                _logger.warning(
                    f"Stock for {current.name} goes negative ({new_stock})"
                )
            try:
                ok = await self._catalog.update(
                    item.product.id, quiet=True, stock=new_stock
                )
            except Exception:
                _logger.exception(f"Stock update raised for {item.product.id}")
                ok = False
            if not ok:
                failed.append(item.product.id)
        return failed

    async def record_manual(
        self, items: Sequence[CartItem], discount: Amount = 0
    ) -> CommitResult:
        """Store a hand-written sale on the manual invoice sequence."""
        return await self.commit(
            items, MANUAL_PAYMENT_METHOD, discount=discount, is_manual=True
        )

    async def load_receipts(self) -> Optional[List[Receipt]]:
        """Owner's receipts, newest first; None when the backend failed."""
        if not self._identity:
            return []
        try:
            rows = await self._backend.fetch_receipts()
            return [row_to_receipt(r) for r in rows]
        except Exception:
            _logger.exception("Error loading receipts")
            self._notify("Failed to load transaction history", severity="error")
            return None
