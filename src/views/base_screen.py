from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import ModeSwitchedMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Cashier", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Label("Printer: -", id="label-printer")
        yield Button("Connect printer", id="btn-printer")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.extend(
            [
                ListItem(Label(v), id="list-menu-item-" + k)
                for k, v in self.app.MENU.items()
            ]
        )
        await self.refresh_info()
        # printer state is pushed to the app by PrinterStatusWatcher
        self.watch(self.app, "printer_connected", self.show_printer_status)

    async def refresh_info(self) -> None:
        """Redraw the user block; a screen outlives the login it was built for."""
        self.init_mode = self.app.current_mode

        state = self.app.state
        if state.user:
            rows = [["User", state.user.username], ["Email", state.user.email]]
        else:
            rows = [["User", "Offline"], ["Data", "Kept in memory only"]]
        await self.query_one(Markdown).update(
            generate_markdown_table(None, rows, ["l", "l"])
        )

        self.highlight_item(self.init_mode)

    def show_printer_status(self, connected: bool) -> None:
        label = self.query_one("#label-printer", Label)
        label.update("Printer: connected" if connected else "Printer: offline")
        label.set_class(connected, "-connected")
        self.query_one("#btn-printer", Button).label = (
            "Disconnect printer" if connected else "Connect printer"
        )

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-printer")
    @work(exclusive=True, group="printer")
    async def handle_printer(self) -> None:
        session = self.app.state.session
        if session is None:
            return
        if self.app.printer_connected:
            await session.printer_controller.disconnect()
        else:
            await session.printer_controller.connect()
        self.app.check_printer()

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Log out? Items left in the cart will be discarded.",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = mode_str in item.id


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        self.app.title = "Kasir POS"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in self.app.MENU:
                self.sub_title = self.app.MENU[k]

        self._show_sidebar = show_sidebar

    @property
    def session(self):
        """The register session of whoever is logged in right now."""
        return self.app.state.session

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    async def refresh_sidebar(self) -> None:
        for sidebar in self.query(Sidebar):
            if sidebar.is_mounted:
                await sidebar.refresh_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
