from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.backend import Backend, MemoryBackend
from core.cart import CartStore
from core.catalog import CatalogStore, Notifier
from core.models import Receipt, TransactionFailure
from core.pricing import Amount
from core.printing import (
    BrowserPrintSurface,
    NullThermalPrinter,
    PrinterController,
    PrinterFallbackChain,
    PrinterTransport,
)
from core.transaction import CommitResult, TransactionProcessor
from db.backend import SqliteBackend
from utils.logger import get_logger

_logger = get_logger(__name__)

LOCAL_IDENTITY = "local"


def _silent(*_args, **_kwargs) -> None:
    return None


@dataclass
class PosSession:
    """
    Everything the register needs for one login.

    The backend is picked once in create(): persistent storage for a signed-in
    user, an in-memory store otherwise. Nothing downstream looks at identity
    again.
    """

    identity: str
    backend: Backend
    cart: CartStore
    catalog: CatalogStore
    processor: TransactionProcessor
    printer: PrinterFallbackChain
    transport: PrinterTransport
    printer_controller: PrinterController

    @property
    def is_local(self) -> bool:
        return isinstance(self.backend, MemoryBackend)

    @classmethod
    def create(
        cls,
        user_id: Optional[str] = None,
        notify: Notifier = _silent,
        backend: Optional[Backend] = None,
        transport: Optional[PrinterTransport] = None,
        surface: Optional[BrowserPrintSurface] = None,
    ) -> "PosSession":
        if backend is None:
            backend = SqliteBackend(user_id) if user_id else MemoryBackend()
        identity = user_id or LOCAL_IDENTITY
        transport = transport or NullThermalPrinter()

        catalog = CatalogStore(backend, notify)
        _logger.info(
            f"Session for {identity} using {type(backend).__name__}"
        )
        return cls(
            identity=identity,
            backend=backend,
            cart=CartStore(),
            catalog=catalog,
            processor=TransactionProcessor(backend, catalog, identity, notify),
            printer=PrinterFallbackChain(
                transport, surface or BrowserPrintSurface(), notify=notify
            ),
            transport=transport,
            printer_controller=PrinterController(transport, notify),
        )

    async def checkout(
        self,
        payment_method: Optional[str] = None,
        discount: Amount = 0,
        is_manual: bool = False,
    ) -> CommitResult:
        """
        Commit the cart. The cart is cleared once a receipt row exists, so a
        partial failure can not be paid a second time; it is kept only when
        nothing was written. Manual entries are always booked as cash on the
        manual sequence.
        """
        snapshot = self.cart.snapshot()
        if is_manual:
            result = await self.processor.record_manual(snapshot, discount)
        else:
            result = await self.processor.commit(snapshot, payment_method, discount)
        if isinstance(result, Receipt) or (
            isinstance(result, TransactionFailure) and result.needs_reconciliation
        ):
            self.cart.clear()
            await self.catalog.load()
        return result

