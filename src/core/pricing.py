# money helpers shared by the cart, the processor and the views

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from core.models import CartItem
from utils import config

Amount = Union[Decimal, int, float, str]

NBSP = "\u00a0"


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep the digits the user typed
    return Decimal(str(value))


def format_price(amount: Amount) -> str:
    """
    Format an amount the way id-ID renders IDR: "Rp 20.000".

    Whole rupiah only (half-up), "." groups thousands, negatives get a leading
    minus sign.
    """
    value = to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,.0f}".replace(",", ".")
    return f"{sign}{config.CURRENCY_SYMBOL}{NBSP}{digits}"


def effective_price(item: CartItem) -> Decimal:
    return item.effective_price


def compute_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((item.effective_price * item.quantity for item in items), Decimal(0))


def compute_total(items: Iterable[CartItem], discount: Amount = 0) -> Decimal:
    """subtotal - discount; not clamped, a large discount gives a negative total."""
    return compute_subtotal(items) - to_decimal(discount)


def compute_profit(items: Iterable[CartItem]) -> Decimal:
    return sum(
        (
            (item.effective_price - item.product.cost_price) * item.quantity
            for item in items
        ),
        Decimal(0),
    )
