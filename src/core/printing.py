"""
Receipt printing.

A thermal transport is tried first, then a reconnect, then a printable HTML
page opened in the browser. PrinterFallbackChain.print never raises; progress
is reported through the notify callback.
"""

from __future__ import annotations

import asyncio
import html
import webbrowser
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Protocol, runtime_checkable

from core.errors import PrinterCancelled
from core.models import Receipt
from core.pricing import format_price as default_format_price
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

PriceFormatter = Callable[[object], str]
Notifier = Callable[..., None]
StatusListener = Callable[[bool], None]


def _silent(*_args, **_kwargs) -> None:
    return None


@runtime_checkable
class PrinterTransport(Protocol):
    def is_connected(self) -> bool: ...

    async def connect(self) -> bool: ...

    async def disconnect(self) -> None: ...

    async def print(self, text: str) -> bool: ...

    def get_platform_info(self) -> str: ...


class NullThermalPrinter:
    """Used when no thermal hardware is configured; it never connects."""

    def is_connected(self) -> bool:
        return False

    async def connect(self) -> bool:
        return False

    async def disconnect(self) -> None:
        return None

    async def print(self, text: str) -> bool:
        return False

    def get_platform_info(self) -> str:
        return "none"


# ---------------------------
# Payload formatting
# ---------------------------


def _two_cols(left: str, right: str, width: int) -> str:
    gap = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def format_thermal_receipt(
    receipt: Receipt,
    format_price: PriceFormatter = default_format_price,
    width: int = config.RECEIPT_WIDTH,
    shop_name: str = config.SHOP_NAME,
) -> str:
    rule = "-" * width
    lines = [
        shop_name.center(width).rstrip(),
        rule,
        f"No   : {receipt.receipt_number or receipt.id}",
        f"Date : {receipt.timestamp:%d/%m/%Y %H:%M}",
        rule,
    ]
    for item in receipt.items:
        lines.append(item.product.name[:width])
        lines.append(
            _two_cols(
                f"  {item.quantity} x {format_price(item.effective_price)}",
                format_price(item.line_total),
                width,
            )
        )
    lines.append(rule)
    lines.append(_two_cols("Subtotal", format_price(receipt.subtotal), width))
    if receipt.discount:
        lines.append(_two_cols("Discount", "-" + format_price(receipt.discount), width))
    lines.append(_two_cols("TOTAL", format_price(receipt.total), width))
    if receipt.payment_method:
        lines.append(_two_cols("Payment", receipt.payment_method, width))
    lines.append(rule)
    lines.append("Thank you!".center(width).rstrip())
    return "\n".join(lines) + "\n\n\n"


def render_receipt_html(
    receipt: Receipt,
    format_price: PriceFormatter = default_format_price,
    shop_name: str = config.SHOP_NAME,
) -> str:
    """80mm printable page that opens the print dialog on load."""
    e = html.escape
    rows = "\n".join(
        f"<tr><td>{e(i.product.name)}</td><td class='qty'>{i.quantity}</td>"
        f"<td class='amt'>{e(format_price(i.line_total))}</td></tr>"
        for i in receipt.items
    )
    discount_row = (
        f"<tr><td colspan='2'>Discount</td>"
        f"<td class='amt'>-{e(format_price(receipt.discount))}</td></tr>"
        if receipt.discount
        else ""
    )
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{e(receipt.receipt_number or receipt.id)}</title>
    <style>
      body {{ margin: 0; padding: 8px; max-width: 80mm; font-family: monospace; }}
      table {{ width: 100%; border-collapse: collapse; }}
      .qty, .amt {{ text-align: right; }}
      .total td {{ font-weight: bold; border-top: 1px dashed #111; }}
      @media print {{ button {{ display: none; }} }}
    </style>
  </head>
  <body>
    <h3>{e(shop_name)}</h3>
    <div>No: {e(receipt.receipt_number or receipt.id)}</div>
    <div>{receipt.timestamp:%d/%m/%Y %H:%M}</div>
    <table>
      {rows}
      <tr><td colspan="2">Subtotal</td><td class="amt">{e(format_price(receipt.subtotal))}</td></tr>
      {discount_row}
      <tr class="total"><td colspan="2">Total</td><td class="amt">{e(format_price(receipt.total))}</td></tr>
    </table>
    <div>{e(receipt.payment_method or "")}</div>
    <button onclick="window.print()">Print</button>
    <script>window.addEventListener('load', () => setTimeout(() => window.print(), 250));</script>
  </body>
</html>
"""


class BrowserPrintSurface:
    """Writes the receipt as HTML and hands it to the system browser."""

    def __init__(
        self,
        directory: str = config.RECEIPT_DIR,
        opener: Callable[[str], bool] = webbrowser.open,
        format_price: PriceFormatter = default_format_price,
    ) -> None:
        self._directory = Path(directory)
        self._opener = opener
        self._format_price = format_price

    async def print_receipt(self, receipt: Receipt) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        name = (receipt.receipt_number or receipt.id).replace("/", "-")
        path = self._directory / f"{name}.html"
        path.write_text(render_receipt_html(receipt, self._format_price), "utf-8")
        await asyncio.to_thread(self._opener, path.resolve().as_uri())
        return path


# ---------------------------
# Fallback chain
# ---------------------------


class PrinterFallbackChain:
    """
    Tries, in order: print on an already connected thermal printer, connect
    then print, print through the browser. First success wins.
    """

    def __init__(
        self,
        transport: PrinterTransport,
        surface: BrowserPrintSurface,
        format_price: PriceFormatter = default_format_price,
        notify: Notifier = _silent,
    ) -> None:
        self._transport = transport
        self._surface = surface
        self._format_price = format_price
        self._notify = notify

    async def print(self, receipt: Receipt) -> Optional[str]:
        """Returns "thermal", "thermal-reconnect", "browser" or None."""
        payload = format_thermal_receipt(receipt, self._format_price)
        errored = False

        try:
            if self._transport.is_connected():
                if await self._transport.print(payload):
                    self._notify("Receipt printed on thermal printer")
                    return "thermal"
        except Exception:
            _logger.exception("Thermal print failed")
            errored = True

        try:
            if await self._transport.connect():
                if await self._transport.print(payload):
                    self._notify("Thermal printer connected and receipt printed")
                    return "thermal-reconnect"
        except PrinterCancelled:
            _logger.info("Printer connection cancelled by user")
        except Exception:
            _logger.exception("Thermal reconnect failed")
            errored = True

        if errored:
            self._notify("Thermal printer failed, using browser printer...", severity="warning")
        else:
            self._notify("Thermal printer unavailable, using browser printer...")

        try:
            await self._surface.print_receipt(receipt)
        except Exception:
            _logger.exception("Browser print failed")
            self._notify("An error occurred while printing.", severity="error")
            return None
        return "browser"


# ---------------------------
# Connection status
# ---------------------------


class PrinterStatusWatcher:
    """
    Reports connection changes of a transport to a listener.

    Transports exposing subscribe(callback) -> unsubscribe push their state;
    for the rest, is_connected() is polled every interval seconds. The listener
    is only called when the state differs from the last one reported.
    """

    def __init__(
        self,
        transport: PrinterTransport,
        listener: StatusListener,
        interval: float = config.PRINTER_POLL_SECONDS,
    ) -> None:
        self._transport = transport
        self._listener = listener
        self._interval = interval
        self._last: Optional[bool] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return bool(self._last)

    @property
    def polling(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        self.check()
        subscribe = getattr(self._transport, "subscribe", None)
        if callable(subscribe):
            self._unsubscribe = subscribe(self._emit)
        else:
            self._task = asyncio.get_running_loop().create_task(self._poll())

    def stop(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task:
            self._task.cancel()
            self._task = None

    def check(self) -> None:
        try:
            state = bool(self._transport.is_connected())
        except Exception:
            _logger.exception("Printer status check failed")
            state = False
        self._emit(state)

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.check()

    def _emit(self, state: bool) -> None:
        if state == self._last:
            return
        self._last = state
        try:
            self._listener(state)
        except Exception:
            _logger.exception("Printer status listener failed")


@dataclass
class ConnectedDevice:
    id: str
    name: str
    platform: str
    connected_at: datetime = field(default_factory=datetime.now)


class PrinterController:
    """Connect / disconnect commands behind the printer button."""

    def __init__(self, transport: PrinterTransport, notify: Notifier = _silent) -> None:
        self._transport = transport
        self._notify = notify
        self.devices: List[ConnectedDevice] = []
        self.connecting = False

    async def connect(self) -> bool:
        self.connecting = True
        try:
            if not await self._transport.connect():
                self._notify("Failed to connect to thermal printer", severity="error")
                return False
        except PrinterCancelled:
            self._notify("Connection cancelled by user")
            return False
        except Exception as e:
            _logger.exception("Printer connection error")
            self._notify(f"Failed to connect: {e}", severity="error")
            return False
        finally:
            self.connecting = False

        platform = self._transport.get_platform_info()
        name = f"Thermal Printer ({platform})"
        self.devices = [d for d in self.devices if d.platform != platform]
        self.devices.append(
            ConnectedDevice(
                id=f"device-{datetime.now():%Y%m%d%H%M%S%f}",
                name=name,
                platform=platform,
            )
        )
        self._notify(f"Connected to {name}")
        return True

    async def disconnect(self, device_id: Optional[str] = None) -> bool:
        try:
            await self._transport.disconnect()
        except Exception:
            _logger.exception("Printer disconnect error")
            self._notify("Failed to disconnect", severity="error")
            return False

        if device_id:
            self.devices = [d for d in self.devices if d.id != device_id]
        else:
            self.devices = []
        self._notify("Disconnected")
        return True
