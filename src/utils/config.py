# runtime settings, read once from the environment
import os
from decimal import Decimal
from typing import Optional


def _env_string(name: str, default: Optional[str] = None) -> Optional[str]:
    """Trimmed env var; empty strings count as unset."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw if raw else default


def _env_decimal(name: str, default: str) -> Decimal:
    raw = _env_string(name, default)
    try:
        return Decimal(raw)
    except ArithmeticError:
        return Decimal(default)


DEBUG = bool(_env_string("DEBUG"))

DB_PATH = _env_string("POS_DB_PATH", "data/pos.sqlite")
RECEIPT_DIR = _env_string("POS_RECEIPT_DIR", "data/receipts")

SHOP_NAME = _env_string("POS_SHOP_NAME", "Toko Serba Ada")
CURRENCY_SYMBOL = _env_string("POS_CURRENCY_SYMBOL", "Rp")

# placeholder capability check for catalog management, not a security boundary
ADMIN_PASSWORD = _env_string("POS_ADMIN_PASSWORD", "122344566")

PRINTER_POLL_SECONDS = float(_env_decimal("POS_PRINTER_POLL_SECONDS", "2"))
RECEIPT_WIDTH = 32  # characters on a 58mm thermal roll
