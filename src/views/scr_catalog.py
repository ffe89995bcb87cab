from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, Checkbox, DataTable, Input, Label

from core.auth import verify_admin_password
from core.models import Product
from core.pricing import format_price
from utils.messages import CatalogChangedMessage
from views.base_screen import BaseScreen
from views.modal_dialog import PasswordDialogModal

FORM_FIELDS = ("name", "category", "barcode", "cost_price", "sell_price", "stock")


class CatalogScreen(BaseScreen):
    """
    Product management. Unlocked with the admin password once per visit.

    Selecting a row fills the form; "Save" then writes only the fields that
    changed. "New" clears the form so "Save" creates a product.
    """

    def __init__(self) -> None:
        super().__init__()
        self._unlocked = False
        self._prompting = False
        self._rows: List[Product] = []
        self._current: Optional[Product] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Filter products...")
            yield DataTable(id="table-catalog")
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Label("Name")
                    yield Input(id="input-name")
                    yield Label("Category")
                    yield Input(id="input-category")
                    yield Label("Barcode")
                    yield Input(id="input-barcode")
                with Vertical():
                    yield Label("Cost price")
                    yield Input(id="input-cost_price", type="number", validators=[Number(minimum=0)])
                    yield Label("Sell price")
                    yield Input(id="input-sell_price", type="number", validators=[Number(minimum=0)])
                    yield Label("Stock")
                    yield Input(id="input-stock", type="integer", validators=[Number(minimum=0)])
                with Vertical(id="div-button"):
                    yield Checkbox("Photocopy service", id="check-photocopy")
                    yield Button("New", id="btn-new")
                    yield Button("Save", id="btn-save", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Category", "Barcode", "Cost", "Price", "Stock")

    @on(ScreenResume)
    def handle_resume(self) -> None:
        # the password modal itself resumes this screen when it closes
        if not self._prompting:
            self.unlock_and_load()

    @work(group="catalog")
    async def unlock_and_load(self) -> None:
        if not self._unlocked:
            self._prompting = True
            try:
                password = await self.app.push_screen_wait(
                    PasswordDialogModal("Admin password required")
                )
            finally:
                self._prompting = False
            if password is None or not verify_admin_password(password):
                if password is not None:
                    self.notify("Wrong admin password.", severity="error")
                await self.app.switch_mode("register")
                return
            self._unlocked = True

        await self.session.catalog.load()
        self.render_table()

    def on_screen_suspend(self) -> None:
        self._unlocked = False

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.render_table()

    def render_table(self) -> None:
        query = self.query_one("#input-search", Input).value
        self._rows = list(self.session.catalog.search(query))
        table = self.query_one(DataTable)
        table.clear()
        for p in self._rows:
            table.add_row(
                p.name,
                p.category or "-",
                p.barcode or "-",
                format_price(p.cost_price),
                format_price(p.sell_price),
                p.stock,
            )

    @on(DataTable.RowSelected)
    def handle_select(self, event: DataTable.RowSelected) -> None:
        if 0 <= event.cursor_row < len(self._rows):
            self.fill_form(self._rows[event.cursor_row])

    def fill_form(self, product: Optional[Product]) -> None:
        self._current = product
        for name in FORM_FIELDS:
            value = getattr(product, name) if product else None
            self.query_one(f"#input-{name}", Input).value = "" if value is None else str(value)
        self.query_one("#check-photocopy", Checkbox).value = bool(
            product and product.is_photocopy
        )
        self.query_one("#input-name").focus()

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self.fill_form(None)

    def read_form(self) -> Optional[Dict[str, Any]]:
        """Form values as product fields, or None after flagging a bad input."""
        fields: Dict[str, Any] = {}
        for name in FORM_FIELDS:
            field_input = self.query_one(f"#input-{name}", Input)
            raw = field_input.value.strip()
            try:
                if name == "stock":
                    fields[name] = int(raw or 0)
                elif name in ("cost_price", "sell_price"):
                    fields[name] = Decimal(raw or 0)
                else:
                    fields[name] = raw or None
            except (ValueError, InvalidOperation):
                field_input.focus()
                field_input.add_class("-invalid")
                return None
        fields["is_photocopy"] = self.query_one("#check-photocopy", Checkbox).value

        if not fields["name"]:
            self.query_one("#input-name").add_class("-invalid")
            self.notify("Product name is required.", severity="error")
            return None
        return fields

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="catalog")
    async def handle_save(self) -> None:
        fields = self.read_form()
        if fields is None:
            return

        catalog = self.session.catalog
        if self._current is None:
            ok = await catalog.create(fields)
        else:
            changes = {
                k: v for k, v in fields.items() if getattr(self._current, k) != v
            }
            if not changes:
                self.notify("Nothing to update.", severity="warning")
                return
            ok = await catalog.update(self._current.id, **changes)

        if ok:
            await catalog.load()
            self.render_table()
            self.fill_form(catalog.get(self._current.id) if self._current else None)
            self.post_message(CatalogChangedMessage())
