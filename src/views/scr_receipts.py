from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from core.models import Receipt
from core.pricing import format_price
from utils.pure import receipt_markdown
from views.base_screen import BaseScreen
from views.modal_receipt import ReceiptModal


class ReceiptsScreen(BaseScreen):
    """
    Transaction history of the current user, newest first.

    Layout:
    - Markdown detail of the highlighted receipt at the top.
    - Receipts table below; Enter opens the receipt for reprinting.
    """

    # shown in the footer only, the table handles enter itself
    BINDINGS = [
        Binding("enter", "noop", "Open / Reprint", show=True, key_display="⏎"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._receipts: List[Receipt] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-receipt-detail", show_table_of_contents=False)
            yield DataTable(id="table-receipts")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Label("", id="label-summary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Invoice", "Date", "Payment", "Total", "Profit")

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @work(exclusive=True, group="receipts")
    async def handle_refresh(self) -> None:
        receipts = await self.session.processor.load_receipts()
        if receipts is None:
            # load failed; keep what is on screen
            return
        self._receipts = receipts

        table = self.query_one(DataTable)
        table.clear()
        for r in receipts:
            table.add_row(
                r.receipt_number or r.id,
                f"{r.timestamp:%d/%m/%Y %H:%M}",
                r.payment_method or "-",
                format_price(r.total),
                format_price(r.profit),
            )

        revenue = sum((r.total for r in receipts), 0)
        profit = sum((r.profit for r in receipts), 0)
        self.query_one("#label-summary", Label).update(
            f"{len(receipts)} receipts | revenue {format_price(revenue)}"
            f" | profit {format_price(profit)}"
        )
        self._render_detail(0)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._render_detail(event.cursor_row)

    @on(DataTable.RowSelected)
    @work()
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        if 0 <= event.cursor_row < len(self._receipts):
            await self.app.push_screen_wait(ReceiptModal(self._receipts[event.cursor_row]))

    def _render_detail(self, idx: int) -> None:
        viewer = self.query_one("#md-receipt-detail", MarkdownViewer)
        if not 0 <= idx < len(self._receipts):
            viewer.document.update("### No transactions yet.")
            return
        viewer.document.update(receipt_markdown(self._receipts[idx], format_price))
