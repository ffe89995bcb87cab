from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

from core.models import Receipt
from core.pricing import format_price
from utils.pure import receipt_markdown


class ReceiptModal(ModalScreen[None]):
    """Shows a finished receipt with a print button."""

    def __init__(self, receipt: Receipt) -> None:
        super().__init__()
        self._receipt = receipt

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("Close", id="btn-quit")
                yield Button("Print", id="btn-print", variant="primary")

    async def on_mount(self) -> None:
        await self.query_one(MarkdownViewer).document.update(
            receipt_markdown(self._receipt, format_price)
        )
        self.query_one("#btn-print").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss()

    @on(Button.Pressed, "#btn-print")
    @work(exclusive=True, group="print")
    async def handle_print(self) -> None:
        button = self.query_one("#btn-print", Button)
        button.disabled = True
        try:
            await self.app.state.session.printer.print(self._receipt)
        finally:
            button.disabled = False

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss()
