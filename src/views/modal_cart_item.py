from decimal import Decimal, InvalidOperation

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from core.models import CartItem
from core.pricing import format_price
from utils.pure import generate_markdown_table


class CartItemModal(ModalScreen[bool]):
    """
    Edit quantity and negotiated price of one cart line.
    Leaving the price blank sells at the catalog price.
    Returns True if the cart changed.
    """

    def __init__(self, item: CartItem) -> None:
        super().__init__()
        self._item = item

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical():
                yield Label("Quantity (0 removes the line)")
                yield Input(
                    value=str(self._item.quantity),
                    id="input-qty",
                    type="integer",
                    validators=[Number(minimum=0)],
                )
                yield Label("Price override")
                yield Input(
                    value=""
                    if self._item.final_price is None
                    else str(self._item.final_price),
                    placeholder=str(self._item.product.sell_price),
                    id="input-price",
                    type="number",
                    validators=[Number(minimum=0)],
                )
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Update", id="btn-update", variant="primary")

    async def on_mount(self) -> None:
        p = self._item.product
        rows = [
            ["Name", p.name],
            ["Category", p.category or "-"],
            ["Barcode", p.barcode or "-"],
            ["Sell price", format_price(p.sell_price)],
            ["In stock", p.stock],
        ]
        await self.query_one(MarkdownViewer).document.update(
            f"### {p.name}\n\n" + generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        )
        self.query_one("#input-qty").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Input.Submitted)
    @on(Button.Pressed, "#btn-update")
    def handle_update(self) -> None:
        qty_input = self.query_one("#input-qty", Input)
        price_input = self.query_one("#input-price", Input)

        if not qty_input.value or not qty_input.is_valid:
            qty_input.focus()
            qty_input.add_class("-invalid")
            return

        override = None
        if price_input.value.strip():
            try:
                override = Decimal(price_input.value.strip())
            except InvalidOperation:
                override = None
            if override is None or override < 0:
                price_input.focus()
                price_input.add_class("-invalid")
                return

        self.app.state.session.cart.set_quantity(
            self._item.product.id, int(qty_input.value), override
        )
        self.dismiss(True)
