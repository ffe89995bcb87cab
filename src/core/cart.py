from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterator, List, Optional, Tuple

from core.models import CartItem, Product
from core.pricing import Amount, compute_subtotal, to_decimal
from utils.logger import get_logger

_logger = get_logger(__name__)

CartListener = Callable[[], None]


def _price_or_none(value: Optional[Amount]) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


class CartStore:
    """
    Ordered, in-memory list of line items for the sale being rung up.

    At most one entry exists per product id. Nothing here talks to a backend.

    Price overrides follow "last write wins": add() and set_quantity() always
    store the override they are given, so re-adding a product without an
    override drops the one set earlier.
    """

    def __init__(self) -> None:
        self._items: List[CartItem] = []
        self._listeners: List[CartListener] = []

    # ---------------------------
    # Read API
    # ---------------------------

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    def snapshot(self) -> List[CartItem]:
        """Copy of the current entries; later cart mutations do not affect it."""
        return list(self._items)

    def get(self, product_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.product.id == product_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def subtotal(self) -> Decimal:
        return compute_subtotal(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self.snapshot())

    # ---------------------------
    # Mutations
    # ---------------------------

    def add(
        self,
        product: Product,
        quantity: int = 1,
        price_override: Optional[Amount] = None,
    ) -> None:
        existing = self.get(product.id)
        if existing:
            self.set_quantity(product.id, existing.quantity + quantity, price_override)
            return

        if quantity <= 0:
            return
        self._items.append(
            CartItem(product, quantity, _price_or_none(price_override))
        )
        self._changed()

    def set_quantity(
        self,
        product_id: str,
        quantity: int,
        price_override: Optional[Amount] = None,
    ) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return

        for idx, item in enumerate(self._items):
            if item.product.id == product_id:
                self._items[idx] = CartItem(
                    item.product, quantity, _price_or_none(price_override)
                )
                self._changed()
                return

    def remove(self, product_id: str) -> None:
        before = len(self._items)
        self._items = [i for i in self._items if i.product.id != product_id]
        if len(self._items) != before:
            self._changed()

    def clear(self) -> None:
        if self._items:
            self._items = []
            self._changed()

    # ---------------------------
    # Change notification
    # ---------------------------

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Call listener after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                _logger.exception("Cart listener failed")
