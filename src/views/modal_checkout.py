from decimal import Decimal, InvalidOperation

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, Select, Switch

from core.models import Receipt
from core.pricing import compute_total, format_price
from utils.pure import generate_markdown_table

PAYMENT_METHODS = ["Cash", "QRIS", "Debit Card", "Transfer"]


class CheckoutModal(ModalScreen[object]):
    """
    Sale summary with payment method, discount and the manual-entry switch.
    Dismisses with the Receipt on success, None otherwise.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal(id="hort-checkout-inputs"):
                with Vertical():
                    yield Label("Payment method")
                    yield Select(
                        [(m, m) for m in PAYMENT_METHODS],
                        value=PAYMENT_METHODS[0],
                        allow_blank=False,
                        id="select-payment",
                    )
                with Vertical():
                    yield Label("Discount")
                    yield Input(
                        "0",
                        id="input-discount",
                        type="number",
                        validators=[Number(minimum=0)],
                    )
                with Vertical():
                    yield Label("Manual entry")
                    yield Switch(value=False, id="switch-manual")
            yield Label("", id="label-total")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Pay", id="btn-submit", variant="primary")

    async def on_mount(self):
        items = self.app.state.session.cart.snapshot()
        rows = [
            [
                i.product.name,
                format_price(i.effective_price),
                i.quantity,
                format_price(i.line_total),
            ]
            for i in items
        ]
        md = generate_markdown_table(
            ["Product Name", "Unit Price", "Quantity", "Total Price"],
            rows,
            ["l", "r", "c", "r"],
        )
        await self.query_one(MarkdownViewer).document.update("### Order Summary\n\n" + md)
        self.update_total()
        self.query_one("#input-discount").focus()

    def _discount(self) -> Decimal:
        raw = self.query_one("#input-discount", Input).value.strip()
        try:
            return Decimal(raw) if raw else Decimal(0)
        except InvalidOperation:
            return Decimal(-1)

    @on(Input.Changed, "#input-discount")
    def update_total(self) -> None:
        items = self.app.state.session.cart.snapshot()
        total = compute_total(items, max(self._discount(), Decimal(0)))
        self.query_one("#label-total", Label).update(f"Total: {format_price(total)}")

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-submit")
    async def handle_submit(self):
        discount = self._discount()
        if discount < 0:
            discount_input = self.query_one("#input-discount", Input)
            discount_input.focus()
            discount_input.add_class("-invalid")
            self.notify("Discount must be a positive number.", severity="error")
            return

        button = self.query_one("#btn-submit", Button)
        button.disabled = True
        result = await self.app.state.session.checkout(
            payment_method=self.query_one("#select-payment", Select).value,
            discount=discount,
            is_manual=self.query_one("#switch-manual", Switch).value,
        )
        button.disabled = False

        if isinstance(result, Receipt):
            self.dismiss(result)
        elif result is not None and result.needs_reconciliation:
            # receipt row exists and the cart is gone; paying again would duplicate it
            if result.stage == "stock":
                message = (
                    f"Receipt {result.receipt_number} saved, but stock was not updated "
                    f"for {len(result.unreconciled)} product(s). Check stock manually."
                )
            else:
                message = (
                    f"Receipt {result.receipt_number} saved without its items. "
                    "Check the receipt and stock manually."
                )
            self.notify(message, severity="warning", timeout=10)
            self.dismiss(None)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
