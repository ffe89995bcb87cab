from typing import Callable, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume, ScreenSuspend
from textual.widgets import Button, DataTable, Input, Label, Rule

from core.models import CartItem, Product, Receipt
from core.pricing import format_price
from utils.messages import CatalogChangedMessage, NewReceiptMessage
from views.base_screen import BaseScreen
from views.modal_cart_item import CartItemModal
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal
from views.modal_receipt import ReceiptModal


class RegisterScreen(BaseScreen):
    """
    Product lookup on the left, the running sale on the right.

    Enter on a product adds one to the cart, Enter on a cart line edits it.
    Submitting a barcode in the search box adds that product directly.
    """

    BINDINGS = [
        Binding("plus", "bump(1)", "+1", show=True, key_display="+"),
        Binding("minus", "bump(-1)", "-1", show=True, key_display="-"),
        Binding("delete", "remove_line", "Remove line", show=True),
        Binding("f9", "checkout", "Checkout", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._shown_products: List[Product] = []
        self._shown_items: List[CartItem] = []
        self._unsubscribe_cart: Optional[Callable[[], None]] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-register"):
            with Vertical(id="div-products"):
                yield Input(
                    id="input-search", placeholder="Search name, category or scan barcode..."
                )
                yield DataTable(id="table-products")
            with Vertical(id="div-cart"):
                yield DataTable(id="table-cart")
                yield Label("Subtotal: -", id="label-cart-total")
                yield Rule(line_style="dashed")
                with Horizontal(id="hort-buttons"):
                    yield Button("Clear Cart", id="btn-clear-cart")
                    yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self) -> None:
        products = self.query_one("#table-products", DataTable)
        products.cursor_type = "row"
        products.zebra_stripes = True
        products.add_columns("Name", "Category", "Price", "Stock")

        cart = self.query_one("#table-cart", DataTable)
        cart.cursor_type = "row"
        cart.add_columns("Item", "Qty", "Price", "Total")

        self.query_one("#input-search").focus()

    # ---------------------------
    # Session wiring
    # ---------------------------

    @on(ScreenResume)
    def handle_resume(self) -> None:
        if self._unsubscribe_cart:
            self._unsubscribe_cart()
            self._unsubscribe_cart = None
        if self.session is None:
            # logged out, LoginScreen is about to cover this screen
            return
        self._unsubscribe_cart = self.session.cart.subscribe(self.render_cart)
        self.render_products()
        self.render_cart()

    @on(ScreenSuspend)
    def handle_suspend(self) -> None:
        if self._unsubscribe_cart:
            self._unsubscribe_cart()
            self._unsubscribe_cart = None

    @on(NewReceiptMessage)
    @on(CatalogChangedMessage)
    def handle_catalog_change(self) -> None:
        self.render_products()

    # ---------------------------
    # Rendering
    # ---------------------------

    def render_products(self) -> None:
        query = self.query_one("#input-search", Input).value
        self._shown_products = list(self.session.catalog.search(query))

        table = self.query_one("#table-products", DataTable)
        table.clear()
        for p in self._shown_products:
            table.add_row(p.name, p.category or "-", format_price(p.sell_price), p.stock)

    def render_cart(self) -> None:
        cart = self.session.cart
        self._shown_items = cart.snapshot()

        table = self.query_one("#table-cart", DataTable)
        cursor = table.cursor_row
        table.clear()
        for item in self._shown_items:
            price = format_price(item.effective_price)
            if item.final_price is not None:
                price += " *"
            table.add_row(
                item.product.name, item.quantity, price, format_price(item.line_total)
            )
        if self._shown_items:
            table.move_cursor(row=min(cursor, len(self._shown_items) - 1))

        self.query_one("#label-cart-total", Label).update(
            f"Subtotal ({len(cart)} lines): {format_price(cart.subtotal)}"
        )

    def _selected_item(self) -> Optional[CartItem]:
        table = self.query_one("#table-cart", DataTable)
        if not self._shown_items or table.cursor_row is None:
            return None
        if 0 <= table.cursor_row < len(self._shown_items):
            return self._shown_items[table.cursor_row]
        return None

    # ---------------------------
    # Handlers
    # ---------------------------

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.render_products()

    @on(Input.Submitted, "#input-search")
    def handle_scan(self, message: Input.Submitted) -> None:
        product = self.session.catalog.find_by_barcode(message.value)
        if product is None:
            if len(self._shown_products) == 1:
                product = self._shown_products[0]
            else:
                self.query_one("#table-products").focus()
                return
        self.add_product(product)
        message.input.value = ""

    @on(DataTable.RowSelected, "#table-products")
    def handle_product_selected(self, event: DataTable.RowSelected) -> None:
        if 0 <= event.cursor_row < len(self._shown_products):
            self.add_product(self._shown_products[event.cursor_row])

    def add_product(self, product: Product) -> None:
        cart = self.session.cart
        in_cart = cart.get(product.id)
        # keep a price override already set on this line
        override = in_cart.final_price if in_cart else None
        cart.add(product, 1, override)
        if cart.get(product.id).quantity > product.stock:
            self.notify(f"Only {product.stock} {product.name} in stock.", severity="warning")

    @on(DataTable.RowSelected, "#table-cart")
    @work()
    async def handle_cart_selected(self) -> None:
        item = self._selected_item()
        if item:
            await self.app.push_screen_wait(CartItemModal(item))

    def action_bump(self, delta: int) -> None:
        item = self._selected_item()
        if item:
            self.session.cart.set_quantity(
                item.product.id, item.quantity + delta, item.final_price
            )

    def action_remove_line(self) -> None:
        item = self._selected_item()
        if item:
            self.session.cart.remove(item.product.id)

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if self.session.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.session.cart.clear()

    @on(Button.Pressed, "#btn-checkout")
    def handle_checkout_button(self) -> None:
        self.action_checkout()

    @work(exclusive=True, group="checkout")
    async def action_checkout(self) -> None:
        if self.session.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return

        receipt = await self.app.push_screen_wait(CheckoutModal())
        if isinstance(receipt, Receipt):
            self.post_message(NewReceiptMessage())
            await self.app.push_screen_wait(ReceiptModal(receipt))
