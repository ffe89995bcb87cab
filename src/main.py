from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.reactive import reactive
from textual.widgets import LoadingIndicator

from core.printing import PrinterStatusWatcher
from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    QuitRequestedMessage,
    UserLogoutMessage,
)
from utils.state import GlobalState
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_receipts import ReceiptsScreen
from views.scr_register import RegisterScreen

_logger = get_logger(__name__)


class PosApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "register": RegisterScreen,
        "receipts": ReceiptsScreen,
        "catalog": CatalogScreen,
    }

    MENU = {
        "register": "Cashier",
        "receipts": "Transaction History",
        "catalog": "Products",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/login.tcss",
        "styles/register.tcss",
        "styles/receipts.tcss",
        "styles/catalog.tcss",
    ]

    state: GlobalState
    printer_connected = reactive(False)

    def __init__(self):
        super().__init__()
        self.state = GlobalState()
        self._printer_watcher: Optional[PrinterStatusWatcher] = None

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def _set_printer_connected(self, connected: bool) -> None:
        self.printer_connected = connected

    def check_printer(self) -> None:
        if self._printer_watcher:
            self._printer_watcher.check()

    def _stop_printer_watcher(self) -> None:
        if self._printer_watcher:
            self._printer_watcher.stop()
            self._printer_watcher = None

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        self._stop_printer_watcher()
        await self.state.end_session()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        self._stop_printer_watcher()
        await self.state.end_session()
        self.exit()

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage) -> None:
        _logger.debug(f"Mode {message.old_mode} -> {message.new_mode}")

    @work(exclusive=True, group="main")
    async def main_flow(self):
        if self.current_mode in self.MODES and self.current_mode != "register":
            # log in over the register so no gated screen resumes first
            await self.switch_mode("register")

        # LoginScreen starts the register session before it dismisses
        await self.push_screen_wait(LoginScreen())
        session = self.state.session

        self._printer_watcher = PrinterStatusWatcher(
            session.transport, self._set_printer_connected
        )
        self._printer_watcher.start()

        if self.current_mode != "register":
            self.post_message(ModeSwitchedMessage(self.current_mode, "register"))
            await self.switch_mode("register")


def run() -> None:
    PosApp().run()


if __name__ == "__main__":
    run()
